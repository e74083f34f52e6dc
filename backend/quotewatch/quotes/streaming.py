"""WebSocket streaming transport for push quote delivery."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import FrameParseError
from .models import ConnectionStatus, Quote, normalize_symbol, normalize_symbols, parse_flag
from .observers import ObserverRegistry

logger = logging.getLogger(__name__)

DEFAULT_STREAMER_URL = "wss://streamer.cert.tastyworks.com"

NO_TOKEN_MESSAGE = "No session token available"
AUTH_REJECTED_MESSAGE = "Authentication rejected"
MAX_RECONNECT_MESSAGE = "Max reconnection attempts reached"

SUBSCRIBE_FIELDS = ",".join(str(i) for i in range(30))

# Streamer quote layout: attribute -> (positional index, named field).
# Provisional: the upstream frame schema has not been verified, so keep every
# assumption about it in this table.
QUOTE_FIELDS: dict[str, tuple[int, str]] = {
    "bid": (1, "BID_PRICE"),
    "ask": (2, "ASK_PRICE"),
    "last": (3, "LAST_PRICE"),
    "change": (7, "NET_CHANGE"),
    "change_percent": (8, "NET_CHANGE_PERCENT"),
}
HALTED_FIELD = "TRADING_HALTED"

QuoteCallback = Callable[[Quote], None]
StatusCallback = Callable[[bool, str | None], None]
Connector = Callable[[str], Awaitable[Any]]


def _field_value(entry: dict | list, index: int, name: str) -> Any:
    if isinstance(entry, list):
        return entry[index] if index < len(entry) else None
    value = entry.get(str(index))
    if value is None or value == "":
        value = entry.get(name)
    return value


def _decimal_text(value: Any, *, field_name: str) -> str:
    if value is None or value == "":
        return "0"
    if isinstance(value, bool):
        raise FrameParseError(f"invalid numeric value for {field_name}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise FrameParseError(f"invalid numeric value for {field_name}: {value!r}") from exc
    if not math.isfinite(number):
        raise FrameParseError(f"non-finite value for {field_name}: {value!r}")
    return value.strip() if isinstance(value, str) else str(value)


def parse_quote_frame(entry: Any) -> Quote:
    """Map one entry of a QUOTE/SUBS frame's ``content`` to a Quote.

    Entries are either objects keyed by ``key`` plus positional (``"1"``,
    ``"2"``...) or named (``BID_PRICE``...) fields, or arrays whose element 0
    is the symbol. Missing numeric fields default to zero.
    """
    if isinstance(entry, list):
        symbol = entry[0] if entry else None
    elif isinstance(entry, dict):
        symbol = entry.get("key") or entry.get("0")
    else:
        raise FrameParseError(f"quote entry must be an object or array, got {type(entry).__name__}")

    if not symbol or not isinstance(symbol, str):
        raise FrameParseError("missing key in quote entry")

    values = {
        attr: _decimal_text(_field_value(entry, index, name), field_name=attr)
        for attr, (index, name) in QUOTE_FIELDS.items()
    }
    halted = parse_flag(entry.get(HALTED_FIELD)) if isinstance(entry, dict) else False
    return Quote(symbol=normalize_symbol(symbol), is_trading_halted=halted, **values)


async def _open_websocket(url: str) -> Any:
    return await websockets.connect(url)


class StreamingClient:
    """Push transport over a persistent WebSocket.

    State machine: disconnected -> connecting -> connected -> disconnected.
    Reconnecting is a timer-driven loop inside ``disconnected``: after an
    unintentional close the client waits ``reconnect_base_delay`` seconds,
    doubling after each failed attempt up to ``reconnect_max_delay``, and
    gives up after ``max_reconnect_attempts`` with MAX_RECONNECT_MESSAGE on
    the status callbacks.

    Lifecycle:
        client = StreamingClient(url)
        client.set_credential(token)
        dispose = client.on_quote_update(handle_quote)
        if await client.connect():
            await client.subscribe_to_symbols(["AAPL", "MSFT"])
        # ...
        await client.disconnect()
    """

    def __init__(
        self,
        url: str = DEFAULT_STREAMER_URL,
        *,
        connector: Connector | None = None,
        connect_timeout: float = 10.0,
        heartbeat_interval: float = 30.0,
        max_reconnect_attempts: int = 5,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._url = url
        self._connector = connector or _open_websocket
        self._connect_timeout = connect_timeout
        self._heartbeat_interval = heartbeat_interval
        self._max_attempts = max_reconnect_attempts
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay
        self._sleep = sleep  # backoff timer only

        self._credential: str | None = None
        self._ws: Any = None
        self._status = ConnectionStatus.DISCONNECTED
        self._subscribed: set[str] = set()
        self._desired: list[str] = []

        self._reconnect_attempts = 0
        self._reconnect_delay = reconnect_base_delay
        self._intentional_close = False
        self._epoch = 0  # bumped by disconnect(); stale connects compare against it

        self._reconnect_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._reader_task: asyncio.Task | None = None

        self._quote_callbacks: ObserverRegistry[QuoteCallback] = ObserverRegistry("quote")
        self._status_callbacks: ObserverRegistry[StatusCallback] = ObserverRegistry(
            "connection status"
        )

    # --- Public API ---

    @property
    def credential(self) -> str | None:
        return self._credential

    def set_credential(self, token: str | None) -> None:
        self._credential = token or None

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and self._status is ConnectionStatus.CONNECTED

    @property
    def subscribed_symbols(self) -> frozenset[str]:
        return frozenset(self._subscribed)

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def on_quote_update(self, callback: QuoteCallback) -> Callable[[], None]:
        return self._quote_callbacks.add(callback)

    def on_connection_status(self, callback: StatusCallback) -> Callable[[], None]:
        return self._status_callbacks.add(callback)

    async def connect(self) -> bool:
        """Open the stream. Resolves False on timeout or transport error."""
        if self.is_connected:
            return True

        if not self._credential:
            self._status_callbacks.notify(False, NO_TOKEN_MESSAGE)
            return False

        self._intentional_close = False
        epoch = self._epoch
        self._status = ConnectionStatus.CONNECTING
        logger.info("Connecting to quote stream: %s", self._url)

        try:
            # wait_for cancels the pending open on timeout, which tears down
            # any half-open socket
            ws = await asyncio.wait_for(self._connector(self._url), timeout=self._connect_timeout)
        except asyncio.TimeoutError:
            logger.warning("Quote stream connect timed out after %.1fs", self._connect_timeout)
            return self._connect_failed(epoch, "Connection timed out")
        except (OSError, WebSocketException) as e:
            logger.warning("Quote stream connect failed: %s", e)
            return self._connect_failed(epoch, f"Connection failed: {e}")

        if self._intentional_close or epoch != self._epoch:
            # disconnect() ran while the open was pending
            await self._close_quietly(ws)
            return False

        if self._ws is not None:
            # A concurrent connect() finished first
            await self._close_quietly(ws)
            return True

        await self._handle_open(ws)
        return self._ws is ws

    async def disconnect(self) -> None:
        """Close the stream on purpose. Never triggers a reconnect. Idempotent."""
        self._intentional_close = True
        self._epoch += 1
        self._cancel_reconnect()
        self._cancel_heartbeat()
        self._cancel_reader()

        ws, self._ws = self._ws, None
        self._status = ConnectionStatus.DISCONNECTED
        self._subscribed.clear()
        self._desired = []

        if ws is not None:
            await self._close_quietly(ws)
            logger.info("Quote stream disconnected by client")

        self._status_callbacks.notify(False, None)

    async def subscribe_to_symbols(self, symbols: list[str]) -> None:
        """Diff the subscribed set against ``symbols`` and send only the changes.

        If the stream is down a connect is attempted first; when that fails
        the call does nothing beyond remembering ``symbols`` for the next
        successful reconnect.
        """
        desired = normalize_symbols(symbols)
        self._desired = desired

        if not self.is_connected:
            if not await self.connect():
                return

        wanted = set(desired)
        for symbol in sorted(self._subscribed - wanted):
            await self._unsubscribe(symbol)

        for symbol in desired:
            if symbol not in self._subscribed:
                await self._subscribe(symbol)

    # --- Connection lifecycle ---

    def _connect_failed(self, epoch: int, message: str) -> bool:
        if epoch == self._epoch and self._ws is None:
            self._status = ConnectionStatus.DISCONNECTED
            self._status_callbacks.notify(False, message)
        return False

    async def _handle_open(self, ws: Any) -> None:
        self._ws = ws
        self._status = ConnectionStatus.CONNECTED
        self._reconnect_attempts = 0
        self._reconnect_delay = self._base_delay
        logger.info("Quote stream connected")

        self._reader_task = asyncio.create_task(self._read_loop(ws), name="quote-stream-reader")
        await self._send(self._auth_message())
        if self._ws is not ws:
            return

        self._cancel_heartbeat()
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(), name="quote-stream-heartbeat"
        )
        self._status_callbacks.notify(True, None)

    def _handle_close(self, ws: Any) -> None:
        if ws is not self._ws:
            return

        self._ws = None
        self._reader_task = None
        self._status = ConnectionStatus.DISCONNECTED
        self._subscribed.clear()
        self._cancel_heartbeat()
        logger.info("Quote stream disconnected")
        self._status_callbacks.notify(False, None)

        if not self._intentional_close and self._credential:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_attempts >= self._max_attempts:
            logger.error(
                "Quote stream: giving up after %d reconnection attempts", self._reconnect_attempts
            )
            self._status_callbacks.notify(False, MAX_RECONNECT_MESSAGE)
            return

        self._cancel_reconnect()
        delay = self._reconnect_delay
        logger.info(
            "Quote stream reconnect in %.1fs (attempt %d/%d)",
            delay,
            self._reconnect_attempts + 1,
            self._max_attempts,
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay), name="quote-stream-reconnect"
        )

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        if self._intentional_close or not self._credential:
            return

        self._reconnect_attempts += 1
        logger.info(
            "Reconnection attempt %d/%d", self._reconnect_attempts, self._max_attempts
        )
        self._cancel_heartbeat()

        connected = await self.connect()
        if self._intentional_close:
            return

        if connected:
            await self.subscribe_to_symbols(list(self._desired))
            return

        self._reconnect_delay = min(self._reconnect_delay * 2, self._max_delay)
        self._schedule_reconnect()

    # --- Inbound ---

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                try:
                    self._handle_message(raw)
                except Exception:
                    logger.exception("Error handling quote stream frame")
                if self._credential is None:
                    # Login was rejected; the streamer will not serve this session
                    await self._close_quietly(ws)
                    break
        except ConnectionClosed as e:
            logger.warning("Quote stream connection lost: %s", e)
        finally:
            self._handle_close(ws)

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Dropping malformed stream frame: %s", e)
            return

        if not isinstance(message, dict):
            logger.warning("Dropping stream frame that is not an object: %r", message)
            return

        service = message.get("service")
        command = message.get("command")

        if service == "QUOTE" and command == "SUBS":
            content = message.get("content") or []
            if not isinstance(content, list):
                logger.warning("Dropping quote frame with non-list content")
                return
            for entry in content:
                try:
                    quote = parse_quote_frame(entry)
                except FrameParseError as e:
                    logger.warning("Dropping quote entry: %s", e)
                    continue
                self._quote_callbacks.notify(quote)
        elif service == "ADMIN":
            if command == "LOGIN" and self._is_rejected_login(message):
                self._handle_auth_rejected(message)
            else:
                logger.debug("Admin message: %s", message)

    @staticmethod
    def _is_rejected_login(message: dict) -> bool:
        content = message.get("content")
        if isinstance(content, list):
            content = content[0] if content else None
        if not isinstance(content, dict):
            return False
        return content.get("code") not in (None, 0, "0")

    def _handle_auth_rejected(self, message: dict) -> None:
        logger.error("Quote stream login rejected: %s", message.get("content"))
        self._credential = None
        self._status_callbacks.notify(False, AUTH_REJECTED_MESSAGE)

    # --- Outbound ---

    def _envelope(
        self, action: str, service: str, command: str, parameters: dict | None = None
    ) -> dict:
        message: dict[str, Any] = {
            "action": action,
            "service": service,
            "command": command,
            "account": self._credential,
            "source": self._credential,
        }
        if parameters is not None:
            message["parameters"] = parameters
        return message

    def _auth_message(self) -> dict:
        return self._envelope(
            "auth",
            "ADMIN",
            "LOGIN",
            {"token": self._credential, "version": "1.0", "qoslevel": 0},
        )

    async def _subscribe(self, symbol: str) -> None:
        # Mark first so an overlapping diff cannot send a second SUBS
        self._subscribed.add(symbol)
        message = self._envelope(
            "subscribe", "QUOTE", "SUBS", {"keys": symbol, "fields": SUBSCRIBE_FIELDS}
        )
        if not await self._send(message):
            self._subscribed.discard(symbol)

    async def _unsubscribe(self, symbol: str) -> None:
        self._subscribed.discard(symbol)
        await self._send(self._envelope("unsubscribe", "QUOTE", "UNSUBS", {"keys": symbol}))

    async def _send(self, message: dict) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(json.dumps(message))
            return True
        except ConnectionClosed as e:
            logger.warning("Quote stream send failed: %s", e)
            return False

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            if self.is_connected:
                await self._send(self._envelope("heartbeat", "ADMIN", "KEEPALIVE"))

    # --- Timers ---

    @staticmethod
    def _cancel(task: asyncio.Task | None) -> None:
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _cancel_reconnect(self) -> None:
        self._cancel(self._reconnect_task)
        self._reconnect_task = None

    def _cancel_heartbeat(self) -> None:
        self._cancel(self._heartbeat_task)
        self._heartbeat_task = None

    def _cancel_reader(self) -> None:
        self._cancel(self._reader_task)
        self._reader_task = None

    async def _close_quietly(self, ws: Any) -> None:
        try:
            await ws.close(code=1000, reason="Client disconnect")
        except (ConnectionClosed, OSError) as e:
            logger.debug("Ignoring error while closing quote stream: %s", e)
