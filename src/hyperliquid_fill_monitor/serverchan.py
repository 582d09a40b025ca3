from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from urllib.parse import urlencode

import httpx

from .errors import FormatError
from .formatting import mask_key
from .types import NotifyResult

logger = logging.getLogger(__name__)

_SCTP_KEY = re.compile(r"sctp(\d+)t")


def build_send_url(key: str) -> str:
    if key.startswith("sctp"):
        match = _SCTP_KEY.search(key)
        if match is None:
            raise FormatError("Invalid sendkey format for sctp", key=mask_key(key))
        return f"https://{match.group(1)}.push.ft07.com/send/{key}.send"
    return f"https://sctapi.ftqq.com/{key}.send"


def encode_form(title: str, body: str) -> str:
    return urlencode([("text", title), ("desp", body)])


class ServerChanNotifier:
    def __init__(self, timeout: float = 15.0) -> None:
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, key: str, title: str, body: str) -> str:
        url = build_send_url(key)
        content = encode_form(title, body).encode("utf-8")
        response = await self._client.post(
            url,
            content=content,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Content-Length": str(len(content)),
            },
        )
        # Only transport and decode failures count; the payload is not inspected.
        return response.text

    async def notify(self, title: str, body: str, keys: Sequence[str]) -> NotifyResult:
        sent = 0
        failed = 0
        for key in keys:
            if not key:
                continue
            try:
                await self.send(key, title, body)
            except FormatError as exc:
                failed += 1
                logger.warning("Skipping notification key: %s", exc)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                failed += 1
                logger.warning("Failed to send notification to %s: %s", mask_key(key), exc)
            else:
                sent += 1
                logger.info("Notification sent to key %s", mask_key(key))
        return NotifyResult(sent=sent, failed=failed)
