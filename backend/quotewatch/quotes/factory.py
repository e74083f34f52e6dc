"""Factory for wiring the quote-delivery subsystem."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..config import Settings, get_settings
from .coordinator import QuoteCoordinator
from .polling import PollingClient
from .rest_client import BrokerQuoteFetcher
from .streaming import StreamingClient

if TYPE_CHECKING:
    from ..session import SessionStore

logger = logging.getLogger(__name__)


def create_quote_coordinator(
    session: SessionStore,
    settings: Settings | None = None,
) -> QuoteCoordinator:
    """Build a QuoteCoordinator with both transports configured from settings.

    - QUOTEWATCH_ENABLE_STREAMING unset or anything but "false" -> streaming
      is attempted whenever start_tracking() gets a credential
    - Otherwise -> HTTP polling only

    An authentication failure reported by the coordinator clears the session.
    Returns an idle coordinator. Caller must await start_tracking(symbols).
    """
    settings = settings or get_settings()

    fetcher = BrokerQuoteFetcher(
        session,
        base_url=settings.API_BASE_URL,
        timeout=settings.REQUEST_TIMEOUT_SEC,
    )
    polling = PollingClient(fetcher, poll_interval=settings.POLL_INTERVAL_SEC)
    streaming = StreamingClient(
        settings.STREAMER_URL,
        connect_timeout=settings.CONNECT_TIMEOUT_SEC,
        heartbeat_interval=settings.HEARTBEAT_INTERVAL_SEC,
        max_reconnect_attempts=settings.MAX_RECONNECT_ATTEMPTS,
        reconnect_base_delay=settings.RECONNECT_BASE_DELAY_SEC,
        reconnect_max_delay=settings.RECONNECT_MAX_DELAY_SEC,
    )

    if settings.ENABLE_STREAMING:
        logger.info("Quote delivery: streaming via %s, polling fallback", settings.STREAMER_URL)
    else:
        logger.info("Quote delivery: HTTP polling every %.1fs", settings.POLL_INTERVAL_SEC)

    return QuoteCoordinator(
        polling,
        streaming,
        streaming_enabled=settings.ENABLE_STREAMING,
        on_auth_failure=session.clear,
    )
