"""
Session-scoped station cache.

Stations are keyed by id plus coordinates rounded to 6 decimals, so the same
provider record returned by overlapping viewport queries is stored once.
The cache is append-only for the life of the session: the first record seen
for a key is kept, and nothing is evicted.
"""
import logging
from typing import Callable, Dict, Iterable, List, Set

from chargeroute.schemas.station import Station

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[List[Station]], None]


def station_key(station: Station) -> str:
    """Composite cache key: id plus location hash (~0.11 m precision)"""
    return f"{station.id}_{station.lat:.6f},{station.lng:.6f}"


class StationCache:
    """In-memory, deduplicating station store with change notification"""

    def __init__(self):
        self._stations: Dict[str, Station] = {}
        self._listeners: List[SnapshotListener] = []

    def merge(self, stations: Iterable[Station]) -> Set[str]:
        """
        Add stations whose key is not cached yet.

        Returns:
            Keys actually added (empty when the batch held no new data)
        """
        added: Set[str] = set()
        for station in stations:
            key = station_key(station)
            if key in self._stations:
                continue
            self._stations[key] = station
            added.add(key)

        if added:
            logger.debug(f"[StationCache] Added {len(added)} stations, size={len(self._stations)}")
            self._notify()
        return added

    def snapshot(self) -> List[Station]:
        """All cached stations in insertion order"""
        return list(self._stations.values())

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a listener called with a fresh snapshot after each merge that
        added stations. Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"[StationCache] Snapshot listener failed: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._stations)

    def __contains__(self, key: str) -> bool:
        return key in self._stations

    def stats(self) -> Dict[str, int]:
        return {
            "size": len(self._stations),
            "listeners": len(self._listeners),
        }
