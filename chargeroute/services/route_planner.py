"""
Route planning: request an EV route and keep the latest result.

A new calculation supersedes any earlier one; a response for an older request
never replaces the route of a newer one.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from chargeroute.schemas.route import Route, VehicleParams
from chargeroute.schemas.viewport import LatLng, Viewport
from chargeroute.services.geo import recenter_viewport
from chargeroute.services.route_normalizer import RouteNormalizationError, normalize
from chargeroute.utils.sync_logging import log_event

logger = logging.getLogger(__name__)

ROUTE_ERROR_MESSAGE = "An error occurred while calculating the route. Please try again."
NO_ROUTE_MESSAGE = (
    "Could not calculate a route with the given parameters. "
    "Try adjusting your vehicle range or connector types."
)

RouteQuery = Callable[..., Awaitable[Dict[str, Any]]]


class RoutePlanner:
    """Calls the route provider and normalizes its response"""

    def __init__(self, route_query: RouteQuery):
        """
        Args:
            route_query: async (start, end, vehicle_params, on_unknown=...) -> raw
                directions response, e.g. MapboxClient.fetch_ev_route
        """
        self._route_query = route_query
        self._sequence = 0
        self.current_route: Optional[Route] = None
        self.last_error: Optional[str] = None
        self.connector_warnings: List[str] = []

    @staticmethod
    def recenter(start: Optional[LatLng], end: Optional[LatLng]) -> Optional[Viewport]:
        return recenter_viewport(start, end)

    async def calculate(
        self,
        start: LatLng,
        end: LatLng,
        vehicle_params: Optional[VehicleParams] = None,
    ) -> Optional[Route]:
        """
        Calculate a route and make it current if no newer request was issued meanwhile.

        Returns:
            The normalized route, or None when there is no feasible route, the
            provider failed, or the request was superseded.
        """
        self._sequence += 1
        sequence = self._sequence
        warnings: List[str] = []

        try:
            response = await self._route_query(start, end, vehicle_params, on_unknown=warnings.append)
            route = normalize(response, vehicle_params, on_unknown=warnings.append)
        except RouteNormalizationError as e:
            logger.error(f"[RoutePlanner] Could not normalize route response: {e}")
            return self._fail(sequence, ROUTE_ERROR_MESSAGE)
        except Exception as e:
            logger.error(f"[RoutePlanner] Route query failed: {e}", exc_info=True)
            return self._fail(sequence, ROUTE_ERROR_MESSAGE)

        if sequence != self._sequence:
            log_event("route_discarded", {"sequence": sequence, "current_sequence": self._sequence})
            return None

        self.connector_warnings = warnings
        if route is None:
            self.last_error = NO_ROUTE_MESSAGE
            log_event("route_not_found", {"sequence": sequence})
            return None

        self.current_route = route
        self.last_error = None
        log_event("route_calculated", {
            "sequence": sequence,
            "distance_m": route.total_distance_meters,
            "duration_s": route.total_duration_seconds,
            "charging_stops": len(route.charging_waypoints),
            "charging_time_s": route.total_charging_time_seconds,
        })
        return route

    def _fail(self, sequence: int, message: str) -> None:
        if sequence == self._sequence:
            self.last_error = message
            log_event("route_failed", {"sequence": sequence, "message": message}, level=logging.WARNING)
        return None
