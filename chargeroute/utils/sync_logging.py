"""
Structured logging for station sync and route calculation events.

Each event is one compact JSON line so fetch lifecycles can be followed
by generation (station sync) or sequence number (routing).
"""
import logging
import json
from datetime import datetime, timezone
from typing import Dict, Any

logger = logging.getLogger(__name__)


def log_event(event_name: str, payload: Dict[str, Any], level: int = logging.INFO) -> None:
    """
    Args:
        event_name: e.g. "station_fetch_started", "station_fetch_discarded", "route_calculated"
        payload: Event fields; non-JSON values are written with str()
        level: Log level, failures use WARNING
    """
    if not logger.isEnabledFor(level):
        return

    record = {"at": "chargeroute", "event": event_name}
    record.update(payload)
    record["ts"] = datetime.now(timezone.utc).isoformat()

    logger.log(level, json.dumps(record, separators=(',', ':'), default=str))
