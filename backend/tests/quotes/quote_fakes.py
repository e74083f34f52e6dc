"""In-memory doubles for the streamer socket and the broker REST API."""

import asyncio
import json

from quotewatch.quotes.interface import QuoteFetcher
from quotewatch.quotes.models import Quote

_CLOSED = object()


class FakeWebSocket:
    """Async-iterable socket double: push() inbound frames, inspect ``sent``."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self.close_code: int | None = None
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self.closed:
            self.closed = True
            self.close_code = code
            self._inbox.put_nowait(_CLOSED)

    def push(self, frame) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Server-side close the client did not ask for."""
        self.closed = True
        self._inbox.put_nowait(_CLOSED)

    def commands(self, command: str) -> list[dict]:
        return [message for message in self.sent if message.get("command") == command]

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Connector double; set ``fail`` to refuse connections."""

    def __init__(self) -> None:
        self.sockets: list[FakeWebSocket] = []
        self.calls = 0
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def __call__(self, url: str) -> FakeWebSocket:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise OSError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    @property
    def latest(self) -> FakeWebSocket:
        return self.sockets[-1]


class StubFetcher(QuoteFetcher):
    """Returns queued responses (dicts or exceptions), then ``default``."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.default: dict[str, Quote] = {}
        self.calls: list[list[str]] = []
        self.closed = False
        self.gate: asyncio.Event | None = None

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        self.calls.append(list(symbols))
        if self.gate is not None:
            await self.gate.wait()
        result = self.responses.pop(0) if self.responses else self.default
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


def make_quote(symbol: str, last: str = "100.00", **kwargs) -> Quote:
    kwargs.setdefault("bid", last)
    kwargs.setdefault("ask", last)
    return Quote(symbol=symbol, last=last, updated_at=1707580800.0, **kwargs)


def quote_frame(*entries: dict) -> dict:
    return {"service": "QUOTE", "command": "SUBS", "content": list(entries)}


