# Schemas package
from .station import Station, StationQueryOptions, StationDetails
from .route import Route, Leg, Step, Waypoint, ChargingWaypoint, VehicleParams
from .viewport import LatLng, Viewport
from .search import LocationSuggestion, LocationDetail

__all__ = [
    "Station", "StationQueryOptions", "StationDetails",
    "Route", "Leg", "Step", "Waypoint", "ChargingWaypoint", "VehicleParams",
    "LatLng", "Viewport",
    "LocationSuggestion", "LocationDetail",
]
