"""
Schemas for EV routes with charging stops

Route and its parts are immutable; a new route calculation replaces the
whole object.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, List, Tuple

CHARGING_STATION_TYPE = "charging-station"


class Maneuver(BaseModel):
    location: Tuple[float, float]  # [longitude, latitude]
    bearing_before: Optional[float] = None
    bearing_after: Optional[float] = None
    type: str
    modifier: Optional[str] = None
    instruction: str = ""

    class Config:
        frozen = True


class Intersection(BaseModel):
    location: Tuple[float, float]  # [longitude, latitude]
    bearings: Tuple[float, ...] = ()
    entry: Tuple[bool, ...] = ()
    in_index: Optional[int] = None
    out_index: Optional[int] = None

    class Config:
        frozen = True


class Step(BaseModel):
    distance: float  # meters
    duration: float  # seconds
    geometry: Any = None  # encoded polyline or GeoJSON, passed through
    name: str = ""
    mode: str = "driving"
    maneuver: Maneuver
    intersections: Tuple[Intersection, ...] = ()

    class Config:
        frozen = True


class LegAnnotation(BaseModel):
    """Per-sample arrays along a leg"""
    distance: Optional[Tuple[float, ...]] = None
    duration: Optional[Tuple[float, ...]] = None
    speed: Optional[Tuple[float, ...]] = None
    state_of_charge: Optional[Tuple[float, ...]] = None

    class Config:
        frozen = True


class Leg(BaseModel):
    distance: float  # meters
    duration: float  # seconds
    summary: str = ""
    steps: Tuple[Step, ...] = ()
    annotation: Optional[LegAnnotation] = None

    class Config:
        frozen = True


class WaypointMetadata(BaseModel):
    """Provider metadata attached to a waypoint; charge values in provider units"""
    type: str
    name: Optional[str] = None
    charge_time: Optional[float] = None  # seconds
    charge_to: Optional[float] = None  # Wh
    charge_at_arrival: Optional[float] = None  # Wh
    plug_type: Optional[str] = None  # canonical connector type
    current_type: str = ""
    power_kw: Optional[float] = None
    station_id: Optional[str] = None
    provider_names: Optional[Tuple[str, ...]] = None

    class Config:
        frozen = True


class ChargingWaypoint(BaseModel):
    """A waypoint at which the vehicle stops to charge"""
    name: Optional[str] = None
    charge_time_seconds: Optional[float] = None
    charge_to_wh: Optional[float] = None
    charge_at_arrival_wh: Optional[float] = None
    plug_type: Optional[str] = None
    current_type: str = ""
    power_kw: Optional[float] = None
    station_id: Optional[str] = None
    provider_names: Optional[Tuple[str, ...]] = None
    location: Optional[Tuple[float, float]] = None  # [longitude, latitude]

    class Config:
        frozen = True


class Waypoint(BaseModel):
    name: str = ""
    location: Optional[Tuple[float, float]] = None  # [longitude, latitude]
    metadata: Optional[WaypointMetadata] = None

    class Config:
        frozen = True

    @property
    def is_charging_stop(self) -> bool:
        return self.metadata is not None and self.metadata.type == CHARGING_STATION_TYPE

    def as_charging_waypoint(self) -> Optional[ChargingWaypoint]:
        """Project this waypoint to a ChargingWaypoint, or None if it is not a charging stop."""
        if not self.is_charging_stop:
            return None
        meta = self.metadata
        return ChargingWaypoint(
            name=meta.name,
            charge_time_seconds=meta.charge_time,
            charge_to_wh=meta.charge_to,
            charge_at_arrival_wh=meta.charge_at_arrival,
            plug_type=meta.plug_type,
            current_type=meta.current_type,
            power_kw=meta.power_kw,
            station_id=meta.station_id,
            provider_names=meta.provider_names,
            location=self.location,
        )


class Route(BaseModel):
    """A computed EV route with derived charging aggregates"""
    total_distance_meters: float
    total_duration_seconds: float
    geometry: Any = None
    legs: Tuple[Leg, ...] = ()
    waypoints: Tuple[Waypoint, ...] = ()

    class Config:
        frozen = True

    @property
    def charging_waypoints(self) -> Tuple[ChargingWaypoint, ...]:
        # Always derived from waypoints, in order
        return tuple(
            wp.as_charging_waypoint() for wp in self.waypoints if wp.is_charging_stop
        )

    @property
    def total_charging_time_seconds(self) -> float:
        return sum(cw.charge_time_seconds or 0 for cw in self.charging_waypoints)


class VehicleParams(BaseModel):
    """EV parameters for a single route request (not retained)"""
    vehicle_type: Optional[str] = None  # e.g. "tesla_model3"
    range_meters: Optional[float] = Field(None, gt=0)
    initial_charge: Optional[float] = None  # percent
    min_charge: Optional[float] = None  # percent
    max_charge: Optional[float] = None  # percent
    connector_types: List[str] = Field(default_factory=list)  # raw, pre-canonicalization

    @field_validator('initial_charge', 'min_charge', 'max_charge')
    @classmethod
    def validate_percent(cls, v):
        if v is not None and not 0 <= v <= 100:
            raise ValueError('charge must be a percentage between 0 and 100')
        return v
