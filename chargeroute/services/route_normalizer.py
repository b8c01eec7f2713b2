"""
Route normalization: provider directions response -> Route.

The provider response is loosely typed JSON. Field values are carried over
unchanged (meters, seconds, watt-hours); only naming is translated and plug
types are canonicalized. No I/O happens here.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from chargeroute.schemas.route import (
    Intersection,
    Leg,
    LegAnnotation,
    Maneuver,
    Route,
    Step,
    VehicleParams,
    Waypoint,
    WaypointMetadata,
)
from chargeroute.services.connector_types import (
    UnknownConnectorHandler,
    canonicalize,
    canonicalize_all,
)

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34


class RouteNormalizationError(Exception):
    """Raised when a non-empty route response cannot be mapped to a Route"""
    pass


def normalize(
    response: Dict[str, Any],
    vehicle_params: Optional[VehicleParams] = None,
    on_unknown: Optional[UnknownConnectorHandler] = None,
) -> Optional[Route]:
    """
    Convert a directions response into a Route.

    Args:
        response: Provider JSON with `routes[0].{distance,duration,geometry,legs}`
            and waypoints either at the top level or on the route
        vehicle_params: Request parameters; requested connector types are
            checked against the plug types of the charging stops
        on_unknown: Called with each unrecognized plug type

    Returns:
        Route built from the first candidate, or None when the provider found
        no route. Alternative routes are ignored.

    Raises:
        RouteNormalizationError: If the first route is malformed
    """
    if response is None:
        response = {}
    if not isinstance(response, dict):
        raise RouteNormalizationError(f"Expected a JSON object, got {type(response).__name__}")

    routes = response.get("routes") or []
    if not routes:
        logger.info("[RouteNormalizer] Provider returned no routes")
        return None

    try:
        route = routes[0]
        waypoints_source = response.get("waypoints") or route.get("waypoints") or []
        normalized = Route(
            total_distance_meters=route["distance"],
            total_duration_seconds=route["duration"],
            geometry=route.get("geometry"),
            legs=tuple(_map_leg(leg) for leg in route.get("legs") or []),
            waypoints=tuple(_map_waypoint(wp, on_unknown) for wp in waypoints_source),
        )
    except (KeyError, TypeError, AttributeError, ValidationError) as e:
        raise RouteNormalizationError(f"Malformed route response: {e}") from e

    if vehicle_params is not None and vehicle_params.connector_types:
        _check_plug_compatibility(normalized, vehicle_params)

    return normalized


def total_charging_time_seconds(route: Route) -> float:
    """Sum of charge time over the route's charging stops"""
    return route.total_charging_time_seconds


def format_distance(meters: float, imperial: bool = True) -> str:
    """Format a distance, e.g. "10.5 miles" or "16.9 km"."""
    if imperial:
        miles = meters / METERS_PER_MILE
        return f"{miles:.1f} {'mile' if miles == 1 else 'miles'}"
    km = meters / 1000
    return f"{km:.1f} km"


def format_duration(seconds: float) -> str:
    """Format a duration, e.g. "2 hours 30 minutes" or "45 minutes"."""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    minutes_text = f"{minutes} {'minute' if minutes == 1 else 'minutes'}"

    if hours > 0:
        hours_text = f"{hours} {'hour' if hours == 1 else 'hours'}"
        return f"{hours_text} {minutes_text}" if minutes > 0 else hours_text
    return minutes_text


def _map_leg(leg: Dict[str, Any]) -> Leg:
    annotation = leg.get("annotation")
    return Leg(
        distance=leg["distance"],
        duration=leg["duration"],
        summary=leg.get("summary") or "",
        steps=tuple(_map_step(step) for step in leg.get("steps") or []),
        annotation=LegAnnotation(
            distance=annotation.get("distance"),
            duration=annotation.get("duration"),
            speed=annotation.get("speed"),
            state_of_charge=annotation.get("state_of_charge"),
        ) if annotation else None,
    )


def _map_step(step: Dict[str, Any]) -> Step:
    maneuver = step["maneuver"]
    return Step(
        distance=step["distance"],
        duration=step["duration"],
        geometry=step.get("geometry"),
        name=step.get("name") or "",
        mode=step.get("mode") or "driving",
        maneuver=Maneuver(
            location=maneuver["location"],
            bearing_before=maneuver.get("bearing_before"),
            bearing_after=maneuver.get("bearing_after"),
            type=maneuver["type"],
            modifier=maneuver.get("modifier"),
            instruction=maneuver.get("instruction") or "",
        ),
        intersections=tuple(
            Intersection(
                location=intersection["location"],
                bearings=intersection.get("bearings") or (),
                entry=intersection.get("entry") or (),
                in_index=intersection.get("in"),
                out_index=intersection.get("out"),
            )
            for intersection in step.get("intersections") or []
        ),
    )


def _map_waypoint(
    waypoint: Dict[str, Any],
    on_unknown: Optional[UnknownConnectorHandler],
) -> Waypoint:
    metadata = waypoint.get("metadata")
    return Waypoint(
        name=waypoint.get("name") or "",
        location=waypoint.get("location"),
        metadata=_map_metadata(metadata, on_unknown) if metadata else None,
    )


def _map_metadata(
    metadata: Dict[str, Any],
    on_unknown: Optional[UnknownConnectorHandler],
) -> WaypointMetadata:
    plug_type = metadata.get("plug_type")
    return WaypointMetadata(
        type=metadata.get("type") or "",
        name=metadata.get("name"),
        charge_time=metadata.get("charge_time"),
        charge_to=metadata.get("charge_to"),
        charge_at_arrival=metadata.get("charge_at_arrival"),
        plug_type=canonicalize(plug_type, on_unknown=on_unknown) if plug_type else None,
        current_type=metadata.get("current_type") or "",
        power_kw=metadata.get("power_kw"),
        station_id=_optional_str(metadata.get("station_id")),
        provider_names=metadata.get("provider_names"),
    )


def _check_plug_compatibility(
    route: Route,
    vehicle_params: VehicleParams,
) -> None:
    requested: List[str] = canonicalize_all(vehicle_params.connector_types)
    for stop in route.charging_waypoints:
        if stop.plug_type and stop.plug_type not in requested:
            logger.warning(
                f"[RouteNormalizer] Charging stop {stop.station_id} uses {stop.plug_type}, "
                f"not among requested connectors {requested}"
            )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
