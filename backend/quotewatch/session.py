"""Session token holder shared by the REST fetcher and the coordinator."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .quotes.observers import ObserverRegistry

logger = logging.getLogger(__name__)

USER_AGENT = "QuoteWatch/1.0.0"


class SessionStore:
    """Holds the single opaque session-token string for the current user.

    The token is treated as a capability: it is never parsed. Listeners
    registered with ``on_cleared`` are told when the session is dropped, e.g.
    after the broker rejected the token.
    """

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None
        self._cleared: ObserverRegistry[Callable[[str | None], None]] = ObserverRegistry(
            "session-cleared"
        )

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def set_token(self, token: str) -> None:
        self._token = token or None

    def clear(self, reason: str | None = None) -> None:
        """Drop the token and notify listeners."""
        had_token = self._token is not None
        self._token = None
        if had_token:
            logger.info("Session cleared: %s", reason or "logout")
        self._cleared.notify(reason)

    def on_cleared(self, callback: Callable[[str | None], None]) -> Callable[[], None]:
        return self._cleared.add(callback)

    def auth_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "Authorization": f"Bearer {self._token}" if self._token else "",
        }
