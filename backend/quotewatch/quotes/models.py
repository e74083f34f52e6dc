"""Data models for quote delivery."""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class ConnectionStatus(str, Enum):
    """Connection state exposed to consumers."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class TransportMode(str, Enum):
    """Which transport currently feeds the quote set."""

    NONE = "none"
    STREAMING = "streaming"
    POLLING = "polling"


def normalize_symbol(symbol: str) -> str:
    return str(symbol).strip().upper()


def normalize_symbols(symbols: Iterable[str]) -> list[str]:
    """Uppercase, strip and de-duplicate symbols, keeping first-seen order."""
    result: list[str] = []
    seen: set[str] = set()
    for symbol in symbols:
        value = normalize_symbol(symbol)
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def parse_flag(value: Any) -> bool:
    """Broker booleans arrive as JSON booleans or as "true"/"false" strings."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable snapshot of a single symbol's market data.

    Prices are kept as the decimal strings the broker transmits so that no
    precision is lost between the wire and the display layer.
    """

    symbol: str
    bid: str
    ask: str
    last: str
    change: str = "0"
    change_percent: str = "0"
    updated_at: float = field(default_factory=time.time)  # Unix seconds
    is_trading_halted: bool = False

    @property
    def mid(self) -> str:
        """Midpoint of bid and ask."""
        return str((float(self.bid) + float(self.ask)) / 2)

    @classmethod
    def from_rest(cls, payload: Mapping[str, Any], symbol: str | None = None) -> Quote:
        """Build a Quote from a broker market-data record.

        Accepts both the condensed field names (``bid-price``, ``last-price``,
        ``net-change``...) and the full market-data names (``bid``, ``last``).
        Missing values default to ``"0"``.
        """

        def pick(*keys: str) -> str:
            for key in keys:
                value = payload.get(key)
                if value is not None and value != "":
                    return str(value)
            return "0"

        raw_symbol = symbol or payload.get("symbol")
        if not raw_symbol:
            raise ValueError("quote record has no symbol")

        return cls(
            symbol=normalize_symbol(raw_symbol),
            bid=pick("bid-price", "bid"),
            ask=pick("ask-price", "ask"),
            last=pick("last-price", "last"),
            change=pick("net-change", "change"),
            change_percent=pick("net-change-percent", "change-percent"),
            is_trading_halted=parse_flag(payload.get("is-trading-halted")),
        )

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "symbol": self.symbol,
            "bid": self.bid,
            "ask": self.ask,
            "last": self.last,
            "change": self.change,
            "change_percent": self.change_percent,
            "updated_at": self.updated_at,
            "is_trading_halted": self.is_trading_halted,
        }


EMPTY_QUOTES: Mapping[str, Quote] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class QuoteState:
    """Observable state published by the QuoteCoordinator.

    Replaced wholesale on every change; ``version`` increases monotonically.
    """

    # mappingproxy is unhashable before 3.12, so it cannot be a plain default
    quotes: Mapping[str, Quote] = field(default_factory=lambda: EMPTY_QUOTES)
    is_loading: bool = False
    error: str | None = None
    last_updated_at: float | None = None
    is_streaming: bool = False
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    version: int = 0

    def to_dict(self) -> dict:
        return {
            "quotes": {symbol: quote.to_dict() for symbol, quote in self.quotes.items()},
            "is_loading": self.is_loading,
            "error": self.error,
            "last_updated_at": self.last_updated_at,
            "is_streaming": self.is_streaming,
            "connection_status": self.connection_status.value,
            "version": self.version,
        }
