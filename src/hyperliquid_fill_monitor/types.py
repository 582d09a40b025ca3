from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MonitorKind(str, Enum):
    TRANSACTIONS = "transactions"
    PERPETUALS = "perpetuals"

    @classmethod
    def parse(cls, raw: str | None) -> MonitorKind:
        # Unknown kinds load as transactions.
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.TRANSACTIONS


class MonitorState(str, Enum):
    INITIALIZING = "initializing"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Fill:
    time: int
    oid: int
    coin: str
    side: str
    size: float
    price: float

    @property
    def fill_id(self) -> str:
        return f"{self.time}:{self.oid}"


@dataclass(frozen=True)
class TransactionRecord:
    timestamp: int
    token: str
    side: str
    size: float
    # Not supplied by the exchange fills feed; unverified until sourced.
    leverage: float
    entry_price: float
    address: str

    @classmethod
    def from_fill(cls, fill: Fill, address: str) -> TransactionRecord:
        return cls(
            timestamp=fill.time,
            token=fill.coin,
            side=fill.side,
            size=fill.size,
            leverage=1.0,
            entry_price=fill.price,
            address=address,
        )


@dataclass(frozen=True)
class MonitorSpec:
    address: str
    kind: MonitorKind = MonitorKind.TRANSACTIONS
    active: bool = False

    @property
    def key(self) -> tuple[str, MonitorKind]:
        return (self.address.strip().lower(), self.kind)


@dataclass
class MonitorHealth:
    state: MonitorState = MonitorState.INITIALIZING
    polls: int = 0
    fetch_failures: int = 0
    consecutive_failures: int = 0
    new_fills: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    degraded: bool = False
    last_success_ms: int | None = None


@dataclass(frozen=True)
class NotifyResult:
    sent: int = 0
    failed: int = 0
