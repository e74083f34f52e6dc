"""Quote coordinator: one observable quote state over two transports."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from types import MappingProxyType

from .errors import AuthenticationError, QuoteServiceError
from .models import (
    EMPTY_QUOTES,
    ConnectionStatus,
    Quote,
    QuoteState,
    TransportMode,
    normalize_symbol,
    normalize_symbols,
)
from .observers import ObserverRegistry
from .polling import PollingClient
from .streaming import AUTH_REJECTED_MESSAGE, MAX_RECONNECT_MESSAGE, StreamingClient

logger = logging.getLogger(__name__)

StateListener = Callable[[QuoteState], None]

# Status messages after which the stream will not come back on its own
_STREAM_GIVE_UP = frozenset({MAX_RECONNECT_MESSAGE, AUTH_REJECTED_MESSAGE})


class QuoteCoordinator:
    """Single entry point for "track quotes for these symbols".

    Owns the QuoteSet and connection status and hides which transport feeds
    them. Streaming is preferred when a credential is supplied and streaming
    is enabled; any streaming failure ends in polling without surfacing an
    error. Only a failing poll populates ``error``.

    Transport choice is an explicit TransportMode. Every transition bumps a
    generation counter; code resuming after an await compares its captured
    generation and backs off if a newer start/stop has happened.

    Lifecycle:
        coordinator = QuoteCoordinator(polling_client, streaming_client)
        dispose = coordinator.subscribe(render)
        await coordinator.start_tracking(["AAPL", "MSFT"], credential=token)
        # ... watchlist changes ...
        await coordinator.start_tracking(["AAPL", "NVDA"], credential=token)
        await coordinator.stop_tracking()
        await coordinator.dispose()
    """

    def __init__(
        self,
        polling_client: PollingClient,
        streaming_client: StreamingClient,
        *,
        streaming_enabled: bool = True,
        on_auth_failure: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._polling = polling_client
        self._streaming = streaming_client
        self._streaming_enabled = streaming_enabled
        self._on_auth_failure = on_auth_failure
        self._clock = clock

        self._state = QuoteState()
        self._mode = TransportMode.NONE
        self._symbols: list[str] = []
        self._tracked: frozenset[str] = frozenset()
        self._generation = 0
        self._detachers: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task] = set()
        self._listeners: ObserverRegistry[StateListener] = ObserverRegistry("quote state")

    # --- Observable state ---

    @property
    def mode(self) -> TransportMode:
        return self._mode

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def get_snapshot(self) -> QuoteState:
        return self._state

    def get_quote(self, symbol: str) -> Quote | None:
        return self._state.quotes.get(normalize_symbol(symbol))

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; it is called right away with the current state."""
        dispose = self._listeners.add(listener)
        try:
            listener(self._state)
        except Exception:
            logger.exception("Error in quote state callback")
        return dispose

    def clear_error(self) -> None:
        self._set_state(error=None)

    # --- Tracking ---

    async def start_tracking(self, symbols: Iterable[str], credential: str | None = None) -> None:
        """Replace the tracked symbol set and pick a transport for it."""
        await self._teardown()
        generation = self._generation

        tracked = normalize_symbols(symbols)
        self._symbols = tracked
        self._tracked = frozenset(tracked)

        if not tracked:
            self._set_state(
                quotes=EMPTY_QUOTES,
                last_updated_at=None,
                is_loading=False,
                is_streaming=False,
                connection_status=ConnectionStatus.DISCONNECTED,
            )
            return

        self._set_state(quotes=self._retained_quotes(self._state.quotes))

        if credential and self._streaming_enabled:
            started = await self._start_streaming(tracked, credential, generation)
            if generation != self._generation or started:
                return
            logger.warning("Quote streaming unavailable, falling back to polling")

        await self._start_polling(tracked, generation)

    async def stop_tracking(self) -> None:
        """Tear down the active transport and clear quotes and error. Idempotent."""
        await self._teardown()
        self._symbols = []
        self._tracked = frozenset()
        self._set_state(
            quotes=EMPTY_QUOTES,
            last_updated_at=None,
            error=None,
            is_loading=False,
            is_streaming=False,
            connection_status=ConnectionStatus.DISCONNECTED,
        )

    async def reset(self) -> None:
        await self.stop_tracking()
        self._publish(QuoteState(version=self._state.version + 1))

    async def dispose(self) -> None:
        await self.reset()
        self._listeners.clear()
        await self._polling.aclose()

    # --- Transport selection ---

    async def _start_streaming(self, symbols: list[str], credential: str, generation: int) -> bool:
        self._mode = TransportMode.STREAMING
        self._set_state(connection_status=ConnectionStatus.CONNECTING, is_streaming=True)
        self._streaming.set_credential(credential)
        self._detachers = [
            self._streaming.on_connection_status(self._on_stream_status),
            self._streaming.on_quote_update(self._on_stream_quote),
        ]

        connected = await self._streaming.connect()
        if generation != self._generation:
            return False

        if connected:
            await self._streaming.subscribe_to_symbols(symbols)
            logger.info("Streaming quotes for %d symbols", len(symbols))
            return True

        await self._detach_transport()
        return False

    async def _start_polling(self, symbols: list[str], generation: int) -> None:
        self._mode = TransportMode.POLLING
        self._detachers = [
            self._polling.on_quotes(self._on_poll_quotes),
            self._polling.on_error(self._on_poll_error),
        ]
        self._set_state(
            is_streaming=False,
            is_loading=True,
            connection_status=ConnectionStatus.DISCONNECTED,
        )
        await self._polling.start_polling(symbols)
        if generation == self._generation and self._mode is TransportMode.POLLING:
            logger.info("Polling quotes for %d symbols", len(symbols))

    async def _fall_back_to_polling(self, generation: int) -> None:
        await self._detach_transport()
        if generation != self._generation:
            return
        await self._start_polling(list(self._symbols), generation)

    async def _abandon_polling(self) -> None:
        await self._polling.stop_polling()

    async def _detach_transport(self) -> None:
        for detach in self._detachers:
            detach()
        self._detachers = []
        self._mode = TransportMode.NONE
        await self._streaming.disconnect()
        await self._polling.stop_polling()

    async def _teardown(self) -> None:
        self._generation += 1
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        await self._detach_transport()

    def _spawn(self, coro, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # --- Transport callbacks ---

    def _on_stream_status(self, connected: bool, error: str | None) -> None:
        if self._mode is not TransportMode.STREAMING:
            return

        if connected:
            self._set_state(connection_status=ConnectionStatus.CONNECTED, is_streaming=True)
            return

        self._set_state(connection_status=ConnectionStatus.DISCONNECTED)
        if error in _STREAM_GIVE_UP:
            logger.warning("Quote stream gave up (%s), falling back to polling", error)
            self._mode = TransportMode.NONE
            self._spawn(self._fall_back_to_polling(self._generation), name="quote-fallback")

    def _on_stream_quote(self, quote: Quote) -> None:
        if self._mode is not TransportMode.STREAMING or quote.symbol not in self._tracked:
            return
        quotes = dict(self._state.quotes)
        quotes[quote.symbol] = quote
        self._set_state(
            quotes=MappingProxyType(quotes),
            last_updated_at=self._clock(),
            is_loading=False,
            error=None,
        )

    def _on_poll_quotes(self, quotes: dict[str, Quote]) -> None:
        if self._mode is not TransportMode.POLLING:
            return
        self._set_state(
            quotes=self._retained_quotes(quotes),
            last_updated_at=self._clock(),
            is_loading=False,
            error=None,
        )

    def _on_poll_error(self, exc: QuoteServiceError) -> None:
        if self._mode is not TransportMode.POLLING:
            return

        message = str(exc) or "Failed to fetch quotes"
        self._set_state(error=message, is_loading=False)

        if isinstance(exc, AuthenticationError):
            # No retry: stop polling and hand the failure to the session owner
            logger.error("Quote polling stopped: %s", message)
            for detach in self._detachers:
                detach()
            self._detachers = []
            self._mode = TransportMode.NONE
            self._spawn(self._abandon_polling(), name="quote-poll-abandon")
            if self._on_auth_failure is not None:
                try:
                    self._on_auth_failure(message)
                except Exception:
                    logger.exception("Error in auth failure callback")

    # --- State ---

    def _retained_quotes(self, quotes: Mapping[str, Quote]) -> Mapping[str, Quote]:
        return MappingProxyType(
            {symbol: quote for symbol, quote in quotes.items() if symbol in self._tracked}
        )

    def _set_state(self, **changes) -> None:
        updated = replace(self._state, **changes)
        if updated == self._state:
            return
        self._publish(replace(updated, version=self._state.version + 1))

    def _publish(self, state: QuoteState) -> None:
        self._state = state
        self._listeners.notify(state)
