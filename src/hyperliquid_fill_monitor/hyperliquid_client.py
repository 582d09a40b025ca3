from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import FetchError
from .types import Fill

logger = logging.getLogger(__name__)

# 9999-12-31T00:00:00Z; later times overflow datetime once shifted to UTC+8.
_MAX_TIME_MS = 253_402_214_400_000


class HyperliquidClient:
    def __init__(self, api_url: str, timeout: float = 15.0) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_fills(self, address: str) -> list[Fill]:
        payload = await self._post({"type": "userFills", "user": address})
        if not isinstance(payload, list):
            raise FetchError("Unexpected userFills payload", address=address)
        return parse_fills(payload)

    async def _post(self, body: dict[str, Any]) -> Any:
        try:
            resp = await self._client.post(f"{self.api_url}/info", json=body)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise FetchError(f"Hyperliquid request failed: {exc}", type=body.get("type")) from exc


def parse_fills(records: list[Any]) -> list[Fill]:
    fills: list[Fill] = []
    for record in records:
        fill = _normalize_fill(record)
        if fill is not None:
            fills.append(fill)
    return fills


def _normalize_fill(record: Any) -> Fill | None:
    if not isinstance(record, dict):
        return None

    try:
        time_ms = int(record["time"])
        oid = int(record["oid"])
    except (KeyError, TypeError, ValueError):
        logger.debug("Skipping fill without usable time/oid: %s", record)
        return None

    if not 0 <= time_ms < _MAX_TIME_MS:
        logger.debug("Skipping fill with out-of-range time: %s", record)
        return None

    return Fill(
        time=time_ms,
        oid=oid,
        coin=str(record.get("coin", "")),
        side=str(record.get("side", "")),
        size=_to_float(record.get("sz")),
        price=_to_float(record.get("px")),
    )


def _to_float(value: Any) -> float:
    # Malformed numeric strings are zeroed rather than dropping the fill.
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
