"""
Mapbox API client: EV Charge Finder, Directions (EV engine) and Search Box.
https://docs.mapbox.com/api/navigation/ev-charge-finder/
https://docs.mapbox.com/api/navigation/directions/

Failures are raised as MapboxAPIError and never retried here; callers decide
how to degrade.
"""
import logging
import httpx
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from chargeroute.core.config import settings
from chargeroute.schemas.route import VehicleParams
from chargeroute.schemas.search import LocationDetail, LocationSuggestion
from chargeroute.schemas.station import Station, StationDetails, StationQueryOptions
from chargeroute.schemas.viewport import LatLng
from chargeroute.services.connector_types import (
    DEFAULT_ROUTE_CONNECTOR_TYPES,
    UnknownConnectorHandler,
    canonicalize_all,
)
from chargeroute.services.search_session import SearchSession

logger = logging.getLogger(__name__)

DEFAULT_STATION_DISTANCE_KM = 10


class MapboxAPIError(Exception):
    """Raised when a Mapbox request fails (transport error, non-2xx, bad JSON)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _normalize_location_feature(feature: Dict[str, Any]) -> Optional[Station]:
    """Map an EV Charge Finder feature to a Station (first EVSE/connector wins)."""
    properties = feature.get("properties") or {}
    location = properties.get("location") or {}
    coordinates = location.get("coordinates") or {}
    if not location.get("id") or "latitude" not in coordinates or "longitude" not in coordinates:
        return None

    evses = location.get("evses") or []
    evse = evses[0] if evses else {}
    connectors = evse.get("connectors") or []
    connector = connectors[0] if connectors else {}
    proximity = properties.get("proximity") or {}

    return Station(
        id=str(location["id"]),
        lat=float(coordinates["latitude"]),
        lng=float(coordinates["longitude"]),
        name=location.get("name") or "Unknown Charger",
        # Provider connector standards as returned (e.g. IEC_62196_T2_COMBO), not
        # the routing connector types; connector_types.canonicalize does not cover them
        charger_type=[c["standard"] for c in connectors if c.get("standard")],
        power_level=connector.get("max_electric_power") or 0,
        network=(location.get("operator") or {}).get("name") or "Unknown",
        available=evse.get("status") == "AVAILABLE",
        address=location.get("address") or "",
        city=location.get("city"),
        state=location.get("state"),
        postal_code=location.get("postal_code"),
        country=location.get("country"),
        distance=proximity.get("distance"),
    )


def _normalize_location_details(data: Dict[str, Any]) -> Optional[StationDetails]:
    """Map an EV Charge Finder location lookup to StationDetails."""
    properties = data.get("properties") or {}
    location = properties.get("location")
    if not location:
        return None

    coordinates = location.get("coordinates") or {}
    return StationDetails(
        id=str(location["id"]),
        name=location.get("name") or "",
        address=location.get("address") or "",
        city=location.get("city") or "",
        postal_code=location.get("postal_code") or "",
        country=location.get("country") or "",
        latitude=float(coordinates["latitude"]),
        longitude=float(coordinates["longitude"]),
        operator=location.get("operator") or {},
        owner=location.get("owner"),
        evses=location.get("evses") or [],
        opening_times=location.get("opening_times"),
        parking_type=location.get("parking_type"),
        tariffs=properties.get("tariffs") or [],
    )


def _error_message(response: httpx.Response) -> str:
    try:
        message = response.json().get("message")
    except (ValueError, AttributeError):
        message = None
    if message:
        return f"Mapbox API error: {message}"
    return f"Mapbox API error: {response.status_code} {response.reason_phrase}"


def _percent_to_wh(percent: float, capacity_wh: int) -> int:
    return round(capacity_wh * percent / 100)


class MapboxClient:
    """Async client for the Mapbox endpoints used by the map and route planner"""

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._access_token = access_token if access_token is not None else settings.MAPBOX_ACCESS_TOKEN
        self._base_url = (base_url or settings.MAPBOX_API_BASE_URL).rstrip("/")
        self._timeout = timeout or settings.MAPBOX_TIMEOUT_S
        self._http_client = http_client

        if not self._access_token:
            logger.warning("[Mapbox] No access token configured, requests will be rejected")

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        """GET a Mapbox endpoint and return decoded JSON."""
        url = f"{self._base_url}{path}"
        params = {**params, "access_token": self._access_token}

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"[Mapbox] Request error for {path}: {e}")
            raise MapboxAPIError(f"Mapbox request failed: {e}") from e

        if not response.is_success:
            logger.error(f"[Mapbox] HTTP error {response.status_code} for {path}: {response.text[:200]}")
            raise MapboxAPIError(_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"[Mapbox] Invalid JSON from {path}: {e}")
            raise MapboxAPIError("Mapbox API returned invalid JSON", status_code=response.status_code) from e

    async def fetch_charging_stations(
        self,
        lat: float,
        lng: float,
        distance_km: float = DEFAULT_STATION_DISTANCE_KM,
        options: Optional[StationQueryOptions] = None,
    ) -> List[Station]:
        """
        Fetch charging stations around a point.

        Args:
            lat: Latitude
            lng: Longitude
            distance_km: Search radius in kilometers
            options: Optional filters (limit, connector types, operators, power, availability)

        Returns:
            List of Station records (possibly empty)
        """
        params: Dict[str, Any] = {
            "latitude": lat,
            "longitude": lng,
            "distance": distance_km,
        }
        if options:
            if options.limit:
                params["limit"] = options.limit
            if options.connector_types:
                params["connector_types"] = ",".join(options.connector_types)
            if options.operators:
                params["operators"] = ",".join(options.operators)
            if options.exclude_operators:
                params["exclude_operators"] = ",".join(options.exclude_operators)
            if options.min_charging_power is not None:
                params["min_charging_power"] = options.min_charging_power
            if options.max_charging_power is not None:
                params["max_charging_power"] = options.max_charging_power
            if options.availability:
                params["availability"] = options.availability

        logger.info(f"[Mapbox] Station query: lat={lat}, lng={lng}, distance={distance_km}km")
        data = await self._get_json("/ev/v1/locations", params)

        stations = []
        for feature in data.get("features") or []:
            try:
                station = _normalize_location_feature(feature)
            except (ValueError, TypeError) as e:
                logger.warning(f"[Mapbox] Skipping malformed station feature: {e}")
                continue
            if station is None:
                logger.warning("[Mapbox] Skipping station feature without id or coordinates")
                continue
            stations.append(station)
        return stations

    async def fetch_station_details(self, station_id: str) -> Optional[StationDetails]:
        """Fetch details for one charging location; None if the provider does not know it."""
        try:
            data = await self._get_json(f"/ev/v1/locations/{quote(station_id, safe='')}", {})
        except MapboxAPIError as e:
            if e.status_code == 404:
                logger.info(f"[Mapbox] Station {station_id} not found")
                return None
            raise
        try:
            return _normalize_location_details(data)
        except (KeyError, ValueError, TypeError) as e:
            raise MapboxAPIError(f"Malformed station details for {station_id}: {e}") from e

    async def fetch_ev_route(
        self,
        start: LatLng,
        end: LatLng,
        vehicle_params: Optional[VehicleParams] = None,
        on_unknown: Optional[UnknownConnectorHandler] = None,
    ) -> Dict[str, Any]:
        """
        Request an EV route with charging stops.

        Returns the raw directions response; see route_normalizer.normalize.
        """
        vehicle_params = vehicle_params or VehicleParams()
        capacity_wh = settings.EV_MAX_CHARGE_WH

        connector_types = canonicalize_all(vehicle_params.connector_types, on_unknown=on_unknown)
        if not connector_types:
            connector_types = list(DEFAULT_ROUTE_CONNECTOR_TYPES)

        initial_charge_wh = settings.EV_INITIAL_CHARGE_WH
        if vehicle_params.initial_charge is not None:
            initial_charge_wh = _percent_to_wh(vehicle_params.initial_charge, capacity_wh)
        min_charge_wh = settings.EV_MIN_CHARGE_WH
        if vehicle_params.min_charge is not None:
            min_charge_wh = _percent_to_wh(vehicle_params.min_charge, capacity_wh)

        params = {
            "alternatives": "false",
            "annotations": "state_of_charge,duration",
            "geometries": "geojson",
            "language": "en",
            "overview": "full",
            "steps": "true",
            "engine": "electric",
            "ev_initial_charge": initial_charge_wh,
            "ev_max_charge": capacity_wh,
            "energy_consumption_curve": settings.EV_ENERGY_CONSUMPTION_CURVE,
            "ev_charging_curve": settings.EV_CHARGING_CURVE,
            "ev_max_ac_charging_power": settings.EV_MAX_AC_CHARGING_POWER_W,
            "ev_min_charge_at_destination": min_charge_wh,
            "ev_min_charge_at_charging_station": min_charge_wh,
            "auxiliary_consumption": settings.EV_AUXILIARY_CONSUMPTION_W,
            "ev_connector_types": ",".join(connector_types),
        }

        coordinates = f"{start.lng},{start.lat};{end.lng},{end.lat}"
        logger.info(f"[Mapbox] EV route query: {coordinates}, connectors={connector_types}")
        return await self._get_json(f"/directions/v5/mapbox/driving/{coordinates}", params)

    async def suggest(
        self,
        query: str,
        session: SearchSession,
        limit: Optional[int] = None,
        country: Optional[str] = None,
        proximity: str = "ip",
        types: Optional[str] = None,
    ) -> List[LocationSuggestion]:
        """Location suggestions for free-text search."""
        if not query.strip():
            return []

        params = {
            "q": query,
            "session_token": session.token,
            "language": settings.SEARCH_LANGUAGE,
            "limit": limit or settings.SEARCH_LIMIT,
            "country": country or settings.SEARCH_COUNTRY,
            "proximity": proximity,
            "types": types or settings.SEARCH_TYPES,
        }
        data = await self._get_json("/search/searchbox/v1/suggest", params)
        return [LocationSuggestion(**s) for s in data.get("suggestions") or []]

    async def retrieve(self, mapbox_id: str, session: SearchSession) -> Optional[LocationDetail]:
        """
        Coordinates for a suggestion. Ends the search session: the session
        token is refreshed after a successful call.
        """
        data = await self._get_json(
            f"/search/searchbox/v1/retrieve/{quote(mapbox_id, safe='')}",
            {"session_token": session.token},
        )
        session.refresh()

        features = data.get("features") or []
        if not features:
            return None

        feature = features[0]
        properties = feature.get("properties") or {}
        lng, lat = feature["geometry"]["coordinates"][:2]
        return LocationDetail(
            name=properties.get("name") or "",
            latitude=lat,
            longitude=lng,
            address=properties.get("address"),
            full_address=properties.get("full_address"),
            place_formatted=properties.get("place_formatted") or "",
        )
