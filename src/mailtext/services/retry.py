from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable

import httpx

# Graph throttles with 429 and sheds load with 503/504.
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

_TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class TransientResponseError(Exception):
    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"transient HTTP status {response.status_code}")
        self.response = response


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 8.0

    @classmethod
    def build(cls, max_attempts: int, base_delay_seconds: float, max_delay_seconds: float) -> "RetryPolicy":
        base = max(0.1, float(base_delay_seconds))
        return cls(
            max_attempts=max(1, int(max_attempts)),
            base_delay_seconds=base,
            max_delay_seconds=max(base, float(max_delay_seconds)),
        )

    def backoff(self, attempt: int) -> float:
        return min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))


def retry_after_seconds(response: httpx.Response) -> float | None:
    value = (response.headers.get("Retry-After") or "").strip()
    if not value:
        return None
    if value.isdigit():
        return float(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


async def send_with_retry(
    call: Callable[[], Awaitable[httpx.Response]],
    *,
    operation: str,
    policy: RetryPolicy,
    logger: logging.Logger,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> httpx.Response:
    attempt = 0
    while True:
        attempt += 1
        try:
            response = await call()
            if response.status_code in TRANSIENT_STATUS_CODES:
                raise TransientResponseError(response)
            response.raise_for_status()
            return response
        except (TransientResponseError, *_TRANSIENT_ERRORS) as exc:
            if attempt >= policy.max_attempts:
                if isinstance(exc, TransientResponseError):
                    exc.response.raise_for_status()
                raise
            hinted = retry_after_seconds(exc.response) if isinstance(exc, TransientResponseError) else None
            delay = hinted if hinted is not None else policy.backoff(attempt)
            logger.warning(
                "Retrying Graph request after transient failure",
                extra={
                    "event": "graph_retry_scheduled",
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "delay_seconds": delay,
                    "error": repr(exc),
                },
            )
            await sleep(delay)
