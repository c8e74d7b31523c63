"""In-process delivery of module completion events.

Key features:
- Handlers run inline, in subscription order, before ``publish`` returns
- A failing handler never fails the publisher: the failure is logged and the
  event is redelivered to that handler in the background with backoff
- Handlers must be idempotent (the ledger deduplicates by idempotency key,
  progress recompute is a pure recount)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential


if TYPE_CHECKING:
    from src.progress.models import CompletionEvent


logger = structlog.get_logger(__name__)

CompletionHandler = Callable[["CompletionEvent"], Awaitable[object]]


class CompletionEventBus:
    """Delivers completion events to the ledger and enrollment progress."""

    def __init__(self, redelivery_attempts: int = 5, redelivery_base_delay: float = 0.5) -> None:
        """Initialize event bus.

        Args:
            redelivery_attempts: Background attempts per failed delivery
            redelivery_base_delay: Initial backoff in seconds (doubles per attempt)
        """
        self.redelivery_attempts = redelivery_attempts
        self.redelivery_base_delay = redelivery_base_delay

        self._handlers: list[tuple[str, CompletionHandler]] = []
        self._pending: set[asyncio.Task] = set()

        # Counters for monitoring
        self._events_published = 0
        self._deliveries_failed = 0
        self._deliveries_abandoned = 0

    def subscribe(self, name: str, handler: CompletionHandler) -> None:
        self._handlers.append((name, handler))

    @property
    def pending_redeliveries(self) -> int:
        return len(self._pending)

    async def publish(self, event: CompletionEvent) -> None:
        """Deliver ``event`` to every handler.

        Args:
            event: Completion event of a committed transition
        """
        self._events_published += 1
        for name, handler in self._handlers:
            try:
                await handler(event)
            except Exception:
                self._deliveries_failed += 1
                logger.exception(
                    "completion_delivery_failed",
                    handler=name,
                    enrollment_id=str(event.enrollment_id),
                    module_id=str(event.module_id),
                )
                self._schedule_redelivery(name, handler, event)

    def _schedule_redelivery(
        self, name: str, handler: CompletionHandler, event: CompletionEvent
    ) -> None:
        task = asyncio.create_task(
            self._redeliver(name, handler, event),
            name=f"redeliver_{name}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _redeliver(
        self, name: str, handler: CompletionHandler, event: CompletionEvent
    ) -> None:
        await asyncio.sleep(self.redelivery_base_delay)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.redelivery_attempts),
                wait=wait_exponential(multiplier=self.redelivery_base_delay, max=30),
                reraise=True,
            ):
                with attempt:
                    await handler(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._deliveries_abandoned += 1
            logger.exception(
                "completion_redelivery_abandoned",
                handler=name,
                enrollment_id=str(event.enrollment_id),
                module_id=str(event.module_id),
                attempts=self.redelivery_attempts,
            )
            return

        logger.info(
            "completion_redelivered",
            handler=name,
            enrollment_id=str(event.enrollment_id),
            module_id=str(event.module_id),
        )

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for pending redeliveries; cancel what is left after ``timeout``."""
        if not self._pending:
            return
        pending = list(self._pending)
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning("completion_redeliveries_cancelled", count=len(not_done))

        logger.info(
            "completion_bus_drained",
            events_published=self._events_published,
            deliveries_failed=self._deliveries_failed,
            deliveries_abandoned=self._deliveries_abandoned,
        )
