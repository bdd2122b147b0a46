# notifier/infra/alarm_manager.py
"""
Deduplicated notification-failure alarms, one per destination URL.

An alarm is raised on the first failed delivery to a URL and stays
raised until the next successful delivery to the same URL releases it.
Raising an already-raised alarm only refreshes its detail; releasing a
URL with no alarm is a no-op. Both transitions are logged at WARNING
and recorded in the audit log.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from notifier.infra.audit_log import audit_event
from notifier.infra.logging_config import get_logger
from notifier.infra.metrics import MetricsCollector, get_metrics_collector

logger = get_logger(__name__)

ALARM_KIND = "NotificationError"


@dataclass
class Alarm:
    """Standing failure indicator for one destination"""
    destination: str
    detail: str
    raised_at: float
    updated_at: float
    repeats: int = 0

    def to_dict(self) -> dict:
        return {
            "kind": ALARM_KIND,
            "destination": self.destination,
            "detail": self.detail,
            "raised_at": self.raised_at,
            "updated_at": self.updated_at,
            "repeats": self.repeats,
        }


class NotificationAlarmManager:
    """Thread-safe alarm registry keyed by destination URL."""

    def __init__(
        self,
        *,
        relog: bool = False,
        collector: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._relog = relog
        self._collector = collector or get_metrics_collector()
        self._clock = clock
        self._alarms: dict[str, Alarm] = {}
        self._lock = Lock()

    def raise_alarm(self, destination: str, detail: str) -> None:
        """Raise (or refresh) the alarm for ``destination``."""
        now = self._clock()
        with self._lock:
            alarm = self._alarms.get(destination)
            if alarm is None:
                self._alarms[destination] = Alarm(
                    destination=destination,
                    detail=detail,
                    raised_at=now,
                    updated_at=now,
                )
                is_new = True
            else:
                alarm.detail = detail
                alarm.updated_at = now
                alarm.repeats += 1
                is_new = False

        if is_new:
            logger.warning("Raising alarm %s %s: %s", ALARM_KIND, destination, detail)
            audit_event("alarm.raise", destination=destination, detail=detail)
            self._collector.inc_counter("alarms_raised_total", 1, {"kind": ALARM_KIND})
        elif self._relog:
            logger.warning("Repeated %s %s: %s", ALARM_KIND, destination, detail)

    def clear_alarm(self, destination: str) -> None:
        """Release the alarm for ``destination`` if one is raised."""
        with self._lock:
            alarm = self._alarms.pop(destination, None)

        if alarm is None:
            return

        logger.warning("Releasing alarm %s %s", ALARM_KIND, destination)
        audit_event(
            "alarm.clear",
            destination=destination,
            detail=f"after {alarm.repeats + 1} failure(s)",
        )
        self._collector.inc_counter("alarms_released_total", 1, {"kind": ALARM_KIND})

    def is_raised(self, destination: str) -> bool:
        with self._lock:
            return destination in self._alarms

    def get(self, destination: str) -> Alarm | None:
        with self._lock:
            alarm = self._alarms.get(destination)
            return Alarm(**vars(alarm)) if alarm else None

    def active_alarms(self) -> list[Alarm]:
        """Copies of all raised alarms, oldest first"""
        with self._lock:
            alarms = [Alarm(**vars(a)) for a in self._alarms.values()]
        return sorted(alarms, key=lambda a: a.raised_at)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._alarms)
