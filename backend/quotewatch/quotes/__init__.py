"""Quote-delivery subsystem for QuoteWatch.

Public API:
    Quote               - Immutable per-symbol quote snapshot
    QuoteState          - Observable state published by the coordinator
    ConnectionStatus    - disconnected / connecting / connected
    TransportMode       - none / streaming / polling
    QuoteCoordinator    - Picks a transport and owns the quote set
    StreamingClient     - WebSocket push transport with reconnect/backoff
    PollingClient       - HTTP polling fallback transport
    QuoteFetcher        - Abstract interface for HTTP quote providers
    BrokerQuoteFetcher  - QuoteFetcher backed by the broker REST API
    create_quote_coordinator - Factory wiring everything from settings
    create_stream_router - FastAPI router factory for the SSE endpoint
"""

from .coordinator import QuoteCoordinator
from .factory import create_quote_coordinator
from .interface import QuoteFetcher
from .models import ConnectionStatus, Quote, QuoteState, TransportMode
from .polling import PollingClient
from .rest_client import BrokerQuoteFetcher
from .stream import create_stream_router
from .streaming import StreamingClient

__all__ = [
    "Quote",
    "QuoteState",
    "ConnectionStatus",
    "TransportMode",
    "QuoteCoordinator",
    "StreamingClient",
    "PollingClient",
    "QuoteFetcher",
    "BrokerQuoteFetcher",
    "create_quote_coordinator",
    "create_stream_router",
]
