"""Shared data models and payload decoders."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .errors import FrameError


class ConnectionState(Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting..."
    CONNECTED = "Connected"
    ERROR = "Error"

    @property
    def label(self) -> str:
        return self.value


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class PriceEntry:
    symbol: str
    price: float | None = None
    change24h: float | None = None

    @property
    def loading(self) -> bool:
        return self.price is None


@dataclass(frozen=True)
class PriceTick:
    symbol: str
    price: float
    change24h: float

    @classmethod
    def from_payload(cls, payload: dict) -> "PriceTick":
        symbol = payload.get("symbol")
        if not isinstance(symbol, str) or not symbol.strip():
            raise FrameError(f"price update without symbol: {payload!r}")
        price = decode_number(payload.get("price"), "price")
        raw_change = payload.get("change24h")
        change = 0.0 if raw_change is None else decode_number(raw_change, "change24h")
        return cls(symbol=symbol.strip(), price=price, change24h=change)


@dataclass(frozen=True)
class Transaction:
    timestamp: datetime | None
    side: TradeSide
    symbol: str
    amount: float
    price: float
    total: float
    profit_loss: float | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Transaction":
        if not isinstance(payload, dict):
            raise FrameError(f"transaction is not an object: {payload!r}")
        try:
            side = TradeSide(str(payload.get("type", "")).upper())
        except ValueError as exc:
            raise FrameError(f"unknown transaction type: {payload.get('type')!r}") from exc
        amount = decode_number(payload.get("amount"), "amount")
        price = decode_number(payload.get("price"), "price")
        raw_total = payload.get("total")
        total = amount * price if raw_total is None else decode_number(raw_total, "total")
        profit_loss = None
        if side is TradeSide.SELL and payload.get("profitLoss") is not None:
            profit_loss = decode_number(payload.get("profitLoss"), "profitLoss")
        return cls(
            timestamp=parse_timestamp(payload.get("timestamp")),
            side=side,
            symbol=str(payload.get("symbol") or ""),
            amount=amount,
            price=price,
            total=total,
            profit_loss=profit_loss,
        )


@dataclass(frozen=True)
class TradeRequest:
    side: TradeSide
    symbol: str
    amount: float
    price: float

    @property
    def value(self) -> float:
        return self.amount * self.price

    def to_payload(self) -> dict:
        return {
            "type": self.side.value,
            "symbol": self.symbol,
            "amount": self.amount,
            "price": self.price,
        }


@dataclass
class TradeTicket:
    """Trade inputs as entered by the user; cleared after a fill."""

    symbol: str | None = None
    amount: float | None = None

    def clear(self) -> None:
        self.symbol = None
        self.amount = None


@dataclass(frozen=True)
class Notice:
    message: str
    severity: str = "information"
    sticky: bool = False


def decode_holdings(payload: object) -> dict[str, float]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise FrameError(f"portfolio is not an object: {payload!r}")
    return {
        str(symbol): decode_number(amount, str(symbol))
        for symbol, amount in payload.items()
    }


def decode_transactions(payload: object) -> list[Transaction]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise FrameError(f"transactions is not a list: {payload!r}")
    return [Transaction.from_payload(item) for item in payload]


def parse_timestamp(value: object) -> datetime | None:
    # Jackson writes LocalDateTime either as ISO text or as [y, m, d, H, M, S, ns].
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, (list, tuple)) and len(value) >= 3:
        try:
            parts = [int(part) for part in value[:7]]
        except (TypeError, ValueError, OverflowError):
            return None
        if len(parts) == 7:
            parts[6] = parts[6] // 1000
        try:
            return datetime(*parts)
        except (TypeError, ValueError, OverflowError):
            return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def decode_number(value: object, name: str) -> float:
    if isinstance(value, bool):
        raise FrameError(f"{name} is not numeric: {value!r}")
    try:
        num = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError) as exc:
        raise FrameError(f"{name} is not numeric: {value!r}") from exc
    if math.isnan(num) or math.isinf(num):
        raise FrameError(f"{name} is not finite: {value!r}")
    return num
