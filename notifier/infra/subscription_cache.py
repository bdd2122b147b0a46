# notifier/infra/subscription_cache.py
"""
In-memory record of the latest delivery outcome per subscription.

Keyed by ``(tenant, subscription_id)``. Every write reflects the most
recent delivery attempt, so concurrent writers for the same key are
serialized under one lock and the last write wins. Unknown
subscriptions are inserted on first write.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from threading import Lock
from typing import Callable

from notifier.infra.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class SubscriptionHealth:
    tenant: str
    subscription_id: str
    times_sent: int = 0
    last_notification: float | None = None
    last_success: float | None = None
    last_success_code: int | None = None
    last_failure: float | None = None
    last_failure_reason: str | None = None
    fails_counter: int = 0

    @property
    def status(self) -> str:
        """``failed`` when the most recent attempt failed, else ``active``."""
        return "failed" if self.fails_counter > 0 else "active"

    def to_dict(self) -> dict:
        return {
            "tenant": self.tenant,
            "subscription_id": self.subscription_id,
            "status": self.status,
            "times_sent": self.times_sent,
            "last_notification": self.last_notification,
            "last_success": self.last_success,
            "last_success_code": self.last_success_code,
            "last_failure": self.last_failure,
            "last_failure_reason": self.last_failure_reason,
            "fails_counter": self.fails_counter,
        }


class InMemorySubscriptionCache:
    """Thread-safe subscription health cache."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._items: dict[tuple[str, str], SubscriptionHealth] = {}
        self._lock = Lock()

    def record_status(
        self,
        tenant: str,
        subscription_id: str,
        error_code: int,
        status_code: int,
        error_text: str,
    ) -> None:
        """
        Store the outcome of one delivery attempt.

        Args:
            error_code: 0 on success, -1 on failure
            status_code: HTTP status received (-1 when none)
            error_text: failure detail ("" on success)
        """
        now = self._clock()
        key = (tenant, subscription_id)

        with self._lock:
            item = self._items.get(key)
            if item is None:
                item = SubscriptionHealth(tenant=tenant, subscription_id=subscription_id)
                self._items[key] = item

            item.times_sent += 1
            item.last_notification = now
            if error_code == 0:
                item.last_success = now
                item.last_success_code = status_code
                item.fails_counter = 0
            else:
                item.last_failure = now
                item.last_failure_reason = error_text
                item.fails_counter += 1

        logger.debug(
            "Subscription status updated: sub=%s, error_code=%d, status_code=%d",
            subscription_id, error_code, status_code,
            extra={"tenant_id": tenant, "subscription_id": subscription_id},
        )

    def get(self, tenant: str, subscription_id: str) -> SubscriptionHealth | None:
        with self._lock:
            item = self._items.get((tenant, subscription_id))
            return replace(item) if item else None

    def snapshot(self) -> list[SubscriptionHealth]:
        with self._lock:
            return [replace(item) for item in self._items.values()]

    def remove(self, tenant: str, subscription_id: str) -> bool:
        with self._lock:
            return self._items.pop((tenant, subscription_id), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
