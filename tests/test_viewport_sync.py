"""
Tests for viewport-driven station sync: zoom gating, debouncing,
supersession of stale fetches, error handling and disposal.
"""
import asyncio
import logging
import pytest
from unittest.mock import AsyncMock, MagicMock

from chargeroute.integrations.mapbox_client import MapboxAPIError
from chargeroute.schemas.station import StationQueryOptions
from chargeroute.schemas.viewport import LatLng
from chargeroute.services.station_cache import StationCache
from chargeroute.services.viewport_sync import (
    FETCH_ERROR_MESSAGE,
    SyncState,
    ViewportSyncCoordinator,
)

DEBOUNCE_S = 0.2
MANHATTAN = LatLng(lat=40.7128, lng=-74.0060)
BROOKLYN = LatLng(lat=40.6782, lng=-73.9442)


def make_coordinator(query, cache=None, **kwargs):
    return ViewportSyncCoordinator(
        station_query=query,
        cache=StationCache() if cache is None else cache,
        min_zoom=12,
        debounce_seconds=DEBOUNCE_S,
        **kwargs,
    )


class TestImmediateFetch:

    @pytest.mark.asyncio
    async def test_immediate_fetch_queries_and_merges(self, make_station):
        station = make_station("A")
        query = AsyncMock(return_value=[station])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14, radius_km=50, immediate=True)

        query.assert_awaited_once()
        lat, lng, radius_km, options = query.call_args[0]
        assert (lat, lng, radius_km) == (MANHATTAN.lat, MANHATTAN.lng, 50)
        assert options == StationQueryOptions(limit=100, availability="AVAILABLE")
        assert coordinator.cache.snapshot() == [station]
        assert coordinator.state == SyncState.IDLE

    @pytest.mark.asyncio
    async def test_listener_notified_after_fetch(self, make_station):
        cache = StationCache()
        listener = MagicMock()
        cache.subscribe(listener)
        coordinator = make_coordinator(AsyncMock(return_value=[make_station("A")]), cache=cache)

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_empty_result_is_not_an_error(self):
        coordinator = make_coordinator(AsyncMock(return_value=[]))

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        assert len(coordinator.cache) == 0
        assert coordinator.last_error is None

    @pytest.mark.asyncio
    async def test_json_station_records_are_merged(self):
        records = [
            {"id": "A", "lat": 40.7128, "lng": -74.006, "name": "Station A",
             "chargerType": ["ccs_combo_type1"], "powerLevel": 150, "network": "ChargeCo",
             "available": True, "address": "1 Main St"},
            {"id": "B", "lat": 40.7, "lng": -74.0, "name": "Station B"},
        ]
        coordinator = make_coordinator(AsyncMock(return_value=records))

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        snapshot = coordinator.cache.snapshot()
        assert [s.id for s in snapshot] == ["A", "B"]
        assert snapshot[0].charger_type == ["ccs_combo_type1"]
        assert coordinator.last_error is None

    @pytest.mark.asyncio
    async def test_explicit_radius_is_used(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14, radius_km=0.5, immediate=True)

        assert query.call_args[0][2] == 0.5

    @pytest.mark.asyncio
    async def test_default_radius(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        assert query.call_args[0][2] == 50


class TestDefaults:

    def test_zoom_gate_and_debounce_window(self):
        coordinator = ViewportSyncCoordinator(AsyncMock(return_value=[]), StationCache())

        assert coordinator.min_zoom == 12
        assert coordinator.debounce_seconds == 0.8
        assert coordinator.query_options == StationQueryOptions(limit=100, availability="AVAILABLE")
        assert coordinator.state == SyncState.IDLE


class TestZoomGating:

    @pytest.mark.asyncio
    async def test_below_min_zoom_does_not_fetch(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 10, immediate=True)
        await coordinator.on_viewport_changed(MANHATTAN, 11.9)
        await asyncio.sleep(DEBOUNCE_S * 2)

        query.assert_not_awaited()
        assert coordinator.state == SyncState.IDLE

    @pytest.mark.asyncio
    async def test_zooming_out_cancels_pending_fetch(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 15)
        assert coordinator.state == SyncState.PENDING_DEBOUNCE

        await coordinator.on_viewport_changed(MANHATTAN, 10)
        assert coordinator.state == SyncState.IDLE

        await asyncio.sleep(DEBOUNCE_S * 2)
        query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exactly_min_zoom_fetches(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 12, immediate=True)

        query.assert_awaited_once()


class TestDebounce:

    @pytest.mark.asyncio
    async def test_changes_within_window_fetch_once_with_last_viewport(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14, radius_km=20)
        await asyncio.sleep(DEBOUNCE_S / 4)
        await coordinator.on_viewport_changed(BROOKLYN, 15, radius_km=30)
        await coordinator.wait_idle()

        query.assert_awaited_once()
        lat, lng, radius_km, _ = query.call_args[0]
        assert (lat, lng, radius_km) == (BROOKLYN.lat, BROOKLYN.lng, 30)

    @pytest.mark.asyncio
    async def test_no_fetch_before_quiet_period(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14)
        await asyncio.sleep(DEBOUNCE_S / 4)

        query.assert_not_awaited()
        assert coordinator.state == SyncState.PENDING_DEBOUNCE

        await coordinator.wait_idle()
        query.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_changes_after_quiet_period_fetch_again(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14)
        await coordinator.wait_idle()
        await coordinator.on_viewport_changed(BROOKLYN, 14)
        await coordinator.wait_idle()

        assert query.await_count == 2


class TestSupersession:

    @pytest.mark.asyncio
    async def test_in_flight_fetch_cancelled_by_newer_viewport(self, make_station):
        stale = make_station("STALE", lat=40.7128)
        fresh = make_station("FRESH", lat=40.6782)
        started = asyncio.Event()
        gate = asyncio.Event()

        async def query(lat, lng, radius_km, options):
            if lat == MANHATTAN.lat:
                started.set()
                await gate.wait()
                return [stale]
            return [fresh]

        coordinator = make_coordinator(query)
        first = asyncio.create_task(coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True))
        await started.wait()
        assert coordinator.is_loading

        await coordinator.on_viewport_changed(BROOKLYN, 14, immediate=True)
        gate.set()
        await first
        await coordinator.wait_idle()

        assert [s.id for s in coordinator.cache.snapshot()] == ["FRESH"]

    @pytest.mark.asyncio
    async def test_stale_response_discarded_when_query_ignores_cancellation(self, make_station):
        stale = make_station("STALE")
        started = asyncio.Event()

        async def stubborn_query(lat, lng, radius_km, options):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                pass
            return [stale]

        coordinator = make_coordinator(stubborn_query)
        await coordinator.on_viewport_changed(MANHATTAN, 14)
        await started.wait()

        # Pan again while the first fetch is in flight
        await coordinator.on_viewport_changed(BROOKLYN, 10)
        await asyncio.sleep(0.05)

        assert len(coordinator.cache) == 0

    @pytest.mark.asyncio
    async def test_only_one_fetch_in_flight(self):
        in_flight = 0
        max_in_flight = 0

        async def query(lat, lng, radius_km, options):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            try:
                await asyncio.sleep(0.05)
                return []
            finally:
                in_flight -= 1

        coordinator = make_coordinator(query)
        tasks = [
            asyncio.create_task(coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True))
            for _ in range(5)
        ]
        await asyncio.gather(*tasks)
        await coordinator.wait_idle()

        assert max_in_flight == 1


class TestErrors:

    @pytest.mark.asyncio
    async def test_query_failure_surfaces_single_error(self, make_station):
        cache = StationCache()
        cache.merge([make_station("A")])
        query = AsyncMock(side_effect=MapboxAPIError("Mapbox API error: 503 Service Unavailable", status_code=503))
        on_error = MagicMock()
        coordinator = make_coordinator(query, cache=cache, on_error=on_error)

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        query.assert_awaited_once()
        on_error.assert_called_once_with(FETCH_ERROR_MESSAGE)
        assert coordinator.last_error == FETCH_ERROR_MESSAGE
        assert [s.id for s in cache.snapshot()] == ["A"]
        assert coordinator.state == SyncState.IDLE

    @pytest.mark.asyncio
    async def test_failure_logged_as_warning_event(self, caplog):
        coordinator = make_coordinator(AsyncMock(side_effect=RuntimeError("boom")))

        with caplog.at_level(logging.INFO, logger="chargeroute.utils.sync_logging"):
            await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        events = {r.getMessage(): r.levelno for r in caplog.records if r.name == "chargeroute.utils.sync_logging"}
        failed = [level for message, level in events.items() if '"event":"station_fetch_failed"' in message]
        assert failed == [logging.WARNING]
        assert any('"event":"station_fetch_started"' in message for message in events)

    @pytest.mark.asyncio
    async def test_malformed_station_record_surfaces_error(self, make_station):
        cache = StationCache()
        cache.merge([make_station("A")])
        records = [
            {"id": "B", "lat": 40.7, "lng": -74.0, "name": "Station B"},
            {"id": "C", "lat": "north", "name": "Station C"},
        ]
        on_error = MagicMock()
        coordinator = make_coordinator(AsyncMock(return_value=records), cache=cache, on_error=on_error)

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        on_error.assert_called_once_with(FETCH_ERROR_MESSAGE)
        assert coordinator.last_error == FETCH_ERROR_MESSAGE
        assert [s.id for s in cache.snapshot()] == ["A"]
        assert coordinator.state == SyncState.IDLE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("radius_km", [0, -5])
    async def test_invalid_radius_raises_and_keeps_pending_work(self, radius_km):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)
        await coordinator.on_viewport_changed(MANHATTAN, 14)

        with pytest.raises(ValueError):
            await coordinator.on_viewport_changed(BROOKLYN, 14, radius_km=radius_km)

        assert coordinator.state == SyncState.PENDING_DEBOUNCE
        await coordinator.wait_idle()
        query.assert_awaited_once()
        assert query.call_args[0][0] == MANHATTAN.lat

    @pytest.mark.asyncio
    async def test_unexpected_exception_does_not_escape(self):
        coordinator = make_coordinator(AsyncMock(side_effect=RuntimeError("boom")))

        await coordinator.on_viewport_changed(MANHATTAN, 14)
        await coordinator.wait_idle()

        assert coordinator.last_error == FETCH_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_failing_error_listener_is_contained(self):
        coordinator = make_coordinator(
            AsyncMock(side_effect=RuntimeError("boom")),
            on_error=MagicMock(side_effect=ValueError("listener broke")),
        )

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        assert coordinator.last_error == FETCH_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_next_successful_fetch_clears_error(self, make_station):
        query = AsyncMock(side_effect=[RuntimeError("boom"), [make_station("A")]])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)
        assert coordinator.last_error is not None

        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)
        assert coordinator.last_error is None
        assert len(coordinator.cache) == 1


class TestDispose:

    @pytest.mark.asyncio
    async def test_dispose_cancels_pending_debounce(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.on_viewport_changed(MANHATTAN, 14)
        await coordinator.dispose()
        await asyncio.sleep(DEBOUNCE_S * 2)

        query.assert_not_awaited()
        assert coordinator.state == SyncState.DISPOSED

    @pytest.mark.asyncio
    async def test_dispose_prevents_in_flight_cache_write(self, make_station):
        started = asyncio.Event()

        async def stubborn_query(lat, lng, radius_km, options):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                pass
            return [make_station("LATE")]

        coordinator = make_coordinator(stubborn_query)
        await coordinator.on_viewport_changed(MANHATTAN, 14)
        await started.wait()

        await coordinator.dispose()

        assert len(coordinator.cache) == 0

    @pytest.mark.asyncio
    async def test_dispose_is_idempotent_and_ignores_later_changes(self):
        query = AsyncMock(return_value=[])
        coordinator = make_coordinator(query)

        await coordinator.dispose()
        await coordinator.dispose()
        await coordinator.on_viewport_changed(MANHATTAN, 14, immediate=True)

        query.assert_not_awaited()
        assert coordinator.state == SyncState.DISPOSED
