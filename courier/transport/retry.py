"""Bounded exponential-backoff retries around single transport attempts."""

from __future__ import annotations

import asyncio
import typing as typ

from .models import DeliveryReport, EndpointVariant

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from courier.events.models import Payload
    from courier.observability import DeliveryEventLogger

    from .client import TransportClient

type Sleep = cabc.Callable[[float], cabc.Awaitable[None]]

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_S = 1.0


def backoff_delay(retry: int, base_delay_s: float = DEFAULT_BASE_DELAY_S) -> float:
    """Return the delay in seconds before retry number ``retry`` (1-based)."""
    return base_delay_s * 2 ** (retry - 1)


class RetryScheduler:
    """Drive a transport until success, a terminal failure, or exhaustion.

    Server and network errors are retried up to ``max_retries`` times after
    the initial attempt, waiting ``base_delay_s * 2**(n-1)`` seconds before
    retry ``n``. Client errors are returned immediately. The scheduler never
    queues anything; the caller decides what to do with a failed report.

    Parameters
    ----------
    transport
        Transport performing single attempts.
    max_retries
        Retries after the initial attempt.
    base_delay_s
        Delay before the first retry.
    sleep
        Coroutine function used for backoff waits. Tests substitute a
        recorder to avoid real delays.
    event_logger
        Optional structured logger for retry events.

    """

    def __init__(  # noqa: PLR0913
        self,
        transport: TransportClient,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        sleep: Sleep = asyncio.sleep,
        event_logger: DeliveryEventLogger | None = None,
    ) -> None:
        """Store the transport, retry policy, and delay primitive."""
        if max_retries < 0:
            msg = f"max_retries must be >= 0, got {max_retries}"
            raise ValueError(msg)
        self._transport = transport
        self._max_retries = max_retries
        self._base_delay_s = base_delay_s
        self._sleep = sleep
        self._event_logger = event_logger

    @property
    def max_retries(self) -> int:
        """Return the number of retries allowed after the first attempt."""
        return self._max_retries

    async def deliver(
        self,
        payload: Payload,
        variant: EndpointVariant = EndpointVariant.PRODUCTION,
    ) -> DeliveryReport:
        """Send ``payload`` with retries and report the final outcome."""
        retry = 0
        while True:
            result = await self._transport.attempt(payload, variant)
            attempts = retry + 1
            if not result.outcome.retryable or retry >= self._max_retries:
                return DeliveryReport(result=result, attempts=attempts)

            retry += 1
            delay = backoff_delay(retry, self._base_delay_s)
            if self._event_logger is not None:
                self._event_logger.log_retry_scheduled(
                    payload.event_names,
                    retry=retry,
                    max_retries=self._max_retries,
                    delay_s=delay,
                    outcome=result.outcome,
                    status_code=result.status_code,
                )
            await self._sleep(delay)
