from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from .types import TransactionRecord

BEIJING_TZ = timezone(timedelta(hours=8))

_SIDE_LABELS = {
    "buy": "Buy",
    "sell": "Sell",
    "long": "Long",
    "short": "Short",
    "deposit": "Deposit",
    "withdraw": "Withdraw",
    "transfer": "Transfer",
    "send": "Transfer",
    "receive": "Receive",
}

_SIDE_TAGS = {
    "buy": "[LONG]",
    "long": "[LONG]",
    "sell": "[SHORT]",
    "short": "[SHORT]",
    "deposit": "[DEPOSIT]",
    "withdraw": "[WITHDRAW]",
    "transfer": "[TRANSFER]",
    "send": "[TRANSFER]",
    "receive": "[RECEIVE]",
}


def side_label(side: str) -> str:
    return _SIDE_LABELS.get((side or "").lower(), side)


def side_tag(side: str) -> str:
    return _SIDE_TAGS.get((side or "").lower(), "[TRANSACTION]")


def beijing_time(ts_ms: int) -> datetime:
    return datetime.fromtimestamp(ts_ms // 1000, tz=BEIJING_TZ)


def format_time(ts_ms: int) -> str:
    return beijing_time(ts_ms).strftime("%Y-%m-%d %H:%M:%S")


def format_number(value: float) -> str:
    # Shortest round-trip digits, always positional (no exponent).
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def short_address(address: str | None) -> str:
    if not address:
        return "Unknown"
    addr = address.strip()
    if len(addr) <= 10:
        return addr
    return f"{addr[:6]}...{addr[-4:]}"


def mask_key(key: str) -> str:
    return f"{key[:8]}..."


def format_title(record: TransactionRecord) -> str:
    return (
        f"{side_tag(record.side)} {format_time(record.timestamp)} "
        f"{record.token} {side_label(record.side)}"
    )


def format_body(address: str, record: TransactionRecord) -> str:
    return (
        f"Address: {address}\n"
        f"Token: {record.token}\n"
        f"Action: {side_label(record.side)}\n"
        f"Size: {format_number(record.size)}\n"
        f"Price: {format_number(record.entry_price)}\n"
        f"Time: {format_time(record.timestamp)}"
    )
