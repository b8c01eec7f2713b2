"""
Schemas for charging stations returned by the station query
"""
from pydantic import BaseModel, Field
from typing import Optional, List


class Station(BaseModel):
    """A charging location as shown on the map"""
    id: str
    lat: float
    lng: float
    name: str
    charger_type: List[str] = Field(default_factory=list, alias="chargerType")
    power_level: float = Field(0.0, ge=0, alias="powerLevel")  # kW
    network: str = "Unknown"
    available: bool = False
    address: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = Field(None, alias="postalCode")
    country: Optional[str] = None
    distance: Optional[float] = None  # km from the query point

    class Config:
        populate_by_name = True


class StationQueryOptions(BaseModel):
    """Optional filters for a station query"""
    limit: Optional[int] = None
    availability: Optional[str] = None  # e.g. "AVAILABLE"
    connector_types: List[str] = Field(default_factory=list)
    operators: List[str] = Field(default_factory=list)
    exclude_operators: List[str] = Field(default_factory=list)
    min_charging_power: Optional[float] = None
    max_charging_power: Optional[float] = None


class Connector(BaseModel):
    id: str
    standard: str
    format: Optional[str] = None
    power_type: Optional[str] = None
    max_voltage: Optional[float] = None
    max_amperage: Optional[float] = None
    max_electric_power: Optional[float] = None


class Evse(BaseModel):
    uid: str
    status: str = "UNKNOWN"
    connectors: List[Connector] = Field(default_factory=list)


class Organization(BaseModel):
    name: str = "Unknown"
    website: Optional[str] = None


class RegularHours(BaseModel):
    weekday: int
    period_begin: str
    period_end: str


class OpeningTimes(BaseModel):
    twentyfourseven: bool = False
    regular_hours: Optional[List[RegularHours]] = None


class PriceComponent(BaseModel):
    type: str
    price: float
    step_size: Optional[int] = None


class TariffElement(BaseModel):
    price_components: List[PriceComponent] = Field(default_factory=list)


class Tariff(BaseModel):
    id: str
    currency: str
    type: Optional[str] = None
    elements: List[TariffElement] = Field(default_factory=list)


class StationDetails(BaseModel):
    """Detailed information for a single charging location"""
    id: str
    name: str
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""
    latitude: float
    longitude: float
    operator: Organization = Field(default_factory=Organization)
    owner: Optional[Organization] = None
    evses: List[Evse] = Field(default_factory=list)
    opening_times: Optional[OpeningTimes] = None
    parking_type: Optional[str] = None
    tariffs: List[Tariff] = Field(default_factory=list)
