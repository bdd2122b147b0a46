# notifier/infra/runtime.py
"""
Process-wide dispatch runtime.

Owns the collaborators every worker shares (transport, subscription
health cache, alarm manager, statistics, simulated-notification
counter) and builds one DispatchWorker per batch from them.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from notifier.config import Settings, settings
from notifier.core.dispatch.ports import NotificationTransport
from notifier.core.dispatch.worker import DispatchWorker
from notifier.infra.alarm_manager import NotificationAlarmManager
from notifier.infra.dispatch_pool import DispatchPool
from notifier.infra.logging_config import get_logger
from notifier.infra.metrics import (
    AtomicCounter,
    MetricsCollector,
    NotificationStatistics,
    get_metrics_collector,
)
from notifier.infra.subscription_cache import InMemorySubscriptionCache

logger = get_logger(__name__)


@dataclass
class DispatchRuntime:
    transport: NotificationTransport
    simulated: bool = False
    collector: MetricsCollector = field(default_factory=get_metrics_collector)
    health_cache: InMemorySubscriptionCache = field(default_factory=InMemorySubscriptionCache)
    alarms: NotificationAlarmManager | None = None
    statistics: NotificationStatistics | None = None
    simulated_counter: AtomicCounter = field(default_factory=AtomicCounter)

    def __post_init__(self) -> None:
        if self.alarms is None:
            self.alarms = NotificationAlarmManager(collector=self.collector)
        if self.statistics is None:
            self.statistics = NotificationStatistics(self.collector)

    def new_worker(self) -> DispatchWorker:
        return DispatchWorker(
            self.transport,
            self.health_cache,
            self.alarms,
            self.statistics,
            simulated=self.simulated,
            simulated_counter=self.simulated_counter,
            collector=self.collector,
        )

    def new_pool(self, max_concurrent_batches: int = 10) -> DispatchPool:
        return DispatchPool(self.new_worker, max_concurrent_batches=max_concurrent_batches)

    def reset_statistics(self) -> None:
        self.collector.reset()
        self.simulated_counter.reset()


def build_runtime(s: Settings | None = None) -> DispatchRuntime:
    """Build a runtime from settings with the aiohttp transport."""
    from notifier.transport.http_sender import HttpNotificationTransport

    s = s or settings
    collector = get_metrics_collector()
    runtime = DispatchRuntime(
        transport=HttpNotificationTransport(
            user_agent=s.notification_user_agent,
            max_response_bytes=s.notification_max_response_bytes,
        ),
        simulated=s.simulated_notifications,
        collector=collector,
        alarms=NotificationAlarmManager(relog=s.relog_alarms, collector=collector),
    )
    logger.info(
        f"Dispatch runtime initialized: simulated={s.simulated_notifications}, "
        f"relog_alarms={s.relog_alarms}"
    )
    return runtime


_runtime: DispatchRuntime | None = None


def get_dispatch_runtime() -> DispatchRuntime:
    """Get the global dispatch runtime, built from settings on first use"""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime
