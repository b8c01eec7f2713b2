"""
Search session token holder.

Suggest and retrieve calls that belong to one search share a session token
so the provider bills them as a single session. A session ends on retrieve,
after which the token is refreshed.
"""
import logging
import uuid

logger = logging.getLogger(__name__)


class SearchSession:
    """Explicitly constructed search session; pass it to each search call"""

    def __init__(self, token: str = None):
        self._token = token or str(uuid.uuid4())

    @property
    def token(self) -> str:
        return self._token

    def refresh(self) -> str:
        """Start a new session and return its token."""
        self._token = str(uuid.uuid4())
        logger.debug("[SearchSession] Session token refreshed")
        return self._token
