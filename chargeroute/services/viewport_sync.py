"""
Viewport-driven charging station sync.

Decides when to query the station provider as the visible map region
changes and merges results into the session StationCache.

State machine per coordinator:

    IDLE -> PENDING_DEBOUNCE -> FETCHING -> IDLE
    IDLE -> FETCHING                      (immediate request, e.g. initial mount)
    any  -> DISPOSED                      (terminal)

Every viewport change supersedes the previous one: the pending debounce timer
is cancelled, the in-flight fetch is cancelled, and a response belonging to a
superseded viewport is never merged into the cache.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from chargeroute.core.config import settings
from chargeroute.schemas.station import Station, StationQueryOptions
from chargeroute.schemas.viewport import LatLng, Viewport
from chargeroute.services.station_cache import StationCache
from chargeroute.utils.sync_logging import log_event

logger = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = "Failed to fetch charging stations. Please try again later."

StationQuery = Callable[[float, float, float, StationQueryOptions], Awaitable[List[Station]]]
ErrorListener = Callable[[str], None]


def _as_station(item: Any) -> Station:
    # Collaborators may return Station records or their JSON form
    if isinstance(item, Station):
        return item
    return Station.model_validate(item)


class SyncState(Enum):
    IDLE = "idle"
    PENDING_DEBOUNCE = "pending_debounce"
    FETCHING = "fetching"
    DISPOSED = "disposed"


class ViewportSyncCoordinator:
    """Debounced, zoom-gated, last-viewport-wins station fetching"""

    def __init__(
        self,
        station_query: StationQuery,
        cache: StationCache,
        min_zoom: Optional[float] = None,
        debounce_seconds: Optional[float] = None,
        query_options: Optional[StationQueryOptions] = None,
        on_error: Optional[ErrorListener] = None,
    ):
        self._station_query = station_query
        self.cache = cache
        self.min_zoom = settings.STATION_MIN_ZOOM if min_zoom is None else min_zoom
        self.debounce_seconds = (
            settings.station_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.query_options = query_options or StationQueryOptions(
            limit=settings.STATION_FETCH_LIMIT,
            availability=settings.STATION_AVAILABILITY,
        )
        self._on_error = on_error

        self.last_error: Optional[str] = None
        self._generation = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._disposed = False

    @property
    def state(self) -> SyncState:
        if self._disposed:
            return SyncState.DISPOSED
        if self._fetch_task is not None and not self._fetch_task.done():
            return SyncState.FETCHING
        if self._debounce_task is not None and not self._debounce_task.done():
            return SyncState.PENDING_DEBOUNCE
        return SyncState.IDLE

    @property
    def is_loading(self) -> bool:
        return self.state == SyncState.FETCHING

    async def on_viewport_changed(
        self,
        center: LatLng,
        zoom: float,
        radius_km: Optional[float] = None,
        immediate: bool = False,
    ) -> None:
        """
        Handle a change of the visible map region.

        Below the minimum zoom nothing is fetched. With `immediate` the fetch
        runs right away and this call returns once it has settled; otherwise a
        trailing debounce timer is (re)armed and the call returns at once.

        Raises:
            ValueError: If `radius_km` is not positive; pending work is left
                untouched in that case
        """
        if self._disposed:
            logger.debug("[ViewportSync] Ignoring viewport change on disposed coordinator")
            return

        if radius_km is None:
            radius_km = settings.STATION_SEARCH_RADIUS_KM
        viewport = Viewport(center=center, zoom=zoom, radius_km=radius_km)

        self._generation += 1
        generation = self._generation
        self._cancel_debounce()
        self._cancel_fetch()

        if zoom < self.min_zoom:
            logger.debug(f"[ViewportSync] Zoom {zoom} below {self.min_zoom}, stations hidden")
            return

        if immediate:
            task = self._spawn_fetch(viewport, generation)
            # asyncio.wait does not raise if a newer viewport cancels the task
            await asyncio.wait({task})
            return

        self._debounce_task = asyncio.create_task(self._debounce(viewport, generation))

    async def dispose(self) -> None:
        """Cancel pending and in-flight work; no cache writes happen afterwards."""
        if self._disposed:
            return
        self._disposed = True
        self._generation += 1

        pending = [t for t in (self._debounce_task, self._fetch_task) if t is not None and not t.done()]
        self._cancel_debounce()
        self._cancel_fetch()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("[ViewportSync] Disposed")

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or fetch is pending."""
        while True:
            pending = [t for t in (self._debounce_task, self._fetch_task) if t is not None and not t.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    def _is_current(self, generation: int) -> bool:
        return not self._disposed and generation == self._generation

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    def _cancel_fetch(self) -> None:
        if self._fetch_task is not None and not self._fetch_task.done():
            self._fetch_task.cancel()

    def _spawn_fetch(self, viewport: Viewport, generation: int) -> asyncio.Task:
        # Single in-flight fetch per coordinator
        self._cancel_fetch()
        self._fetch_task = asyncio.create_task(self._fetch(viewport, generation))
        return self._fetch_task

    async def _debounce(self, viewport: Viewport, generation: int) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if not self._is_current(generation):
            return
        self._spawn_fetch(viewport, generation)

    async def _fetch(self, viewport: Viewport, generation: int) -> None:
        center = viewport.center
        self.last_error = None
        log_event("station_fetch_started", {
            "generation": generation,
            "lat": center.lat,
            "lng": center.lng,
            "radius_km": viewport.radius_km,
            "zoom": viewport.zoom,
        })

        try:
            results = await self._station_query(
                center.lat,
                center.lng,
                viewport.radius_km,
                self.query_options,
            )
            stations = [_as_station(item) for item in results or []]
        except asyncio.CancelledError:
            log_event("station_fetch_cancelled", {"generation": generation})
            raise
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"[ViewportSync] Ignoring failure of superseded fetch: {e}")
                return
            logger.error(f"[ViewportSync] Station query failed: {e}", exc_info=True)
            self._report_error(FETCH_ERROR_MESSAGE)
            return

        if not self._is_current(generation):
            log_event("station_fetch_discarded", {
                "generation": generation,
                "current_generation": self._generation,
            })
            return

        added = self.cache.merge(stations)
        log_event("station_fetch_merged", {
            "generation": generation,
            "received": len(stations),
            "added": len(added),
            "cache_size": len(self.cache),
        })

    def _report_error(self, message: str) -> None:
        self.last_error = message
        log_event("station_fetch_failed", {"message": message}, level=logging.WARNING)
        if self._on_error is None:
            return
        try:
            self._on_error(message)
        except Exception as e:
            logger.error(f"[ViewportSync] Error listener failed: {e}", exc_info=True)
