"""
Connector type normalization.

Maps the many spellings of EV plug types used by vehicles, UIs and providers
to the four connector types the routing provider accepts.
"""
import logging
from typing import Any, Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

CCS_COMBO_TYPE1 = "ccs_combo_type1"
CCS_COMBO_TYPE2 = "ccs_combo_type2"
TESLA = "tesla"
CHADEMO = "chademo"

CANONICAL_CONNECTOR_TYPES = (CCS_COMBO_TYPE1, CCS_COMBO_TYPE2, TESLA, CHADEMO)

DEFAULT_CONNECTOR_TYPE = CCS_COMBO_TYPE2

# Routing default when a request names no connector types
DEFAULT_ROUTE_CONNECTOR_TYPES = [CCS_COMBO_TYPE2, CCS_COMBO_TYPE1]

CONNECTOR_ALIASES = {
    "type1": CCS_COMBO_TYPE1,
    "j1772": CCS_COMBO_TYPE1,
    "ccs_type1": CCS_COMBO_TYPE1,
    "type2": CCS_COMBO_TYPE2,
    "mennekes": CCS_COMBO_TYPE2,
    "ccs_type2": CCS_COMBO_TYPE2,
    "ccs": CCS_COMBO_TYPE2,
    "nacs": TESLA,  # NACS is routed as the Tesla connector
}

UnknownConnectorHandler = Callable[[str], None]


def canonicalize(raw_type: Any, on_unknown: Optional[UnknownConnectorHandler] = None) -> str:
    """
    Canonical connector type for `raw_type`.

    Unrecognized values fall back to ccs_combo_type2; the fallback is logged
    and reported through `on_unknown` so callers can surface it. Non-string
    provider values (numbers, lists) are treated as unknown, never as errors.
    """
    raw = "" if raw_type is None else str(raw_type)
    value = raw.strip().lower()

    if value in CANONICAL_CONNECTOR_TYPES:
        return value
    if value in CONNECTOR_ALIASES:
        return CONNECTOR_ALIASES[value]

    logger.warning(f"Unknown connector type: {raw_type!r}, defaulting to {DEFAULT_CONNECTOR_TYPE}")
    if on_unknown is not None:
        on_unknown(raw)
    return DEFAULT_CONNECTOR_TYPE


def canonicalize_all(
    raw_types: Iterable[str],
    on_unknown: Optional[UnknownConnectorHandler] = None,
) -> List[str]:
    """Canonicalize each type and drop duplicates, keeping first-seen order."""
    result: List[str] = []
    for raw_type in raw_types:
        canonical = canonicalize(raw_type, on_unknown=on_unknown)
        if canonical not in result:
            result.append(canonical)
    return result
