from pydantic import BaseModel
import os


class Settings(BaseModel):
    # Mapbox provider access
    MAPBOX_ACCESS_TOKEN: str = os.getenv("MAPBOX_ACCESS_TOKEN", "")
    MAPBOX_API_BASE_URL: str = os.getenv("MAPBOX_API_BASE_URL", "https://api.mapbox.com")
    MAPBOX_TIMEOUT_S: float = float(os.getenv("MAPBOX_TIMEOUT_S", "10"))

    # Station viewport sync
    STATION_MIN_ZOOM: float = float(os.getenv("STATION_MIN_ZOOM", "12"))  # Stations hidden below this zoom
    STATION_DEBOUNCE_MS: int = int(os.getenv("STATION_DEBOUNCE_MS", "800"))  # Trailing debounce window
    STATION_FETCH_LIMIT: int = int(os.getenv("STATION_FETCH_LIMIT", "100"))  # Provider maximum
    STATION_AVAILABILITY: str = os.getenv("STATION_AVAILABILITY", "AVAILABLE")
    STATION_SEARCH_RADIUS_KM: float = float(os.getenv("STATION_SEARCH_RADIUS_KM", "50"))  # Provider max is 100km

    # EV routing battery model (watt-hours)
    EV_MAX_CHARGE_WH: int = int(os.getenv("EV_MAX_CHARGE_WH", "70000"))
    EV_INITIAL_CHARGE_WH: int = int(os.getenv("EV_INITIAL_CHARGE_WH", "56000"))
    EV_MIN_CHARGE_WH: int = int(os.getenv("EV_MIN_CHARGE_WH", "10500"))  # At destination and at charging stations
    EV_MAX_AC_CHARGING_POWER_W: int = int(os.getenv("EV_MAX_AC_CHARGING_POWER_W", "11500"))
    EV_AUXILIARY_CONSUMPTION_W: int = int(os.getenv("EV_AUXILIARY_CONSUMPTION_W", "1500"))
    EV_ENERGY_CONSUMPTION_CURVE: str = os.getenv(
        "EV_ENERGY_CONSUMPTION_CURVE",
        "10,300;20,130;40,100;60,110;80,120;100,140;120,160;140,180",
    )
    EV_CHARGING_CURVE: str = os.getenv(
        "EV_CHARGING_CURVE",
        "7000,250000;14000,220000;21000,180000;28000,140000;35000,100000;42000,80000;49000,60000;63000,40000",
    )

    # Search box
    SEARCH_LANGUAGE: str = os.getenv("SEARCH_LANGUAGE", "en")
    SEARCH_COUNTRY: str = os.getenv("SEARCH_COUNTRY", "US")
    SEARCH_LIMIT: int = int(os.getenv("SEARCH_LIMIT", "5"))
    SEARCH_TYPES: str = os.getenv("SEARCH_TYPES", "address,place,poi")

    @property
    def mapbox_configured(self) -> bool:
        """True when a Mapbox access token is set."""
        return bool(self.MAPBOX_ACCESS_TOKEN)

    @property
    def station_debounce_seconds(self) -> float:
        return self.STATION_DEBOUNCE_MS / 1000.0


settings = Settings()
