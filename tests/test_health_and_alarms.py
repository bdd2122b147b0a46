# tests/test_health_and_alarms.py
"""Tests for the subscription health cache and the notification alarm manager."""
from __future__ import annotations

import itertools
import logging
import threading

from notifier.infra.alarm_manager import NotificationAlarmManager
from notifier.infra.metrics import MetricsCollector
from notifier.infra.subscription_cache import InMemorySubscriptionCache


def _clock():
    ticks = itertools.count(1000)
    return lambda: float(next(ticks))


# ============================================================================
# Subscription health cache
# ============================================================================

class TestSubscriptionCache:
    def test_unknown_subscription_inserted(self):
        cache = InMemorySubscriptionCache()
        cache.record_status("t1", "new-sub", 0, 200, "")
        item = cache.get("t1", "new-sub")
        assert item is not None
        assert item.times_sent == 1

    def test_success_then_failure(self):
        cache = InMemorySubscriptionCache(clock=_clock())
        cache.record_status("t1", "s1", 0, 201, "")
        cache.record_status("t1", "s1", -1, -1, "refused")

        item = cache.get("t1", "s1")
        assert item.last_success == 1000.0
        assert item.last_success_code == 201
        assert item.last_failure == 1001.0
        assert item.last_failure_reason == "refused"
        assert item.last_notification == 1001.0
        assert item.status == "failed"
        assert item.fails_counter == 1

    def test_success_resets_fails_counter(self):
        cache = InMemorySubscriptionCache()
        cache.record_status("t1", "s1", -1, -1, "a")
        cache.record_status("t1", "s1", -1, -1, "b")
        assert cache.get("t1", "s1").fails_counter == 2

        cache.record_status("t1", "s1", 0, 200, "")
        item = cache.get("t1", "s1")
        assert item.fails_counter == 0
        assert item.status == "active"
        assert item.last_failure_reason == "b"

    def test_tenants_are_isolated(self):
        cache = InMemorySubscriptionCache()
        cache.record_status("t1", "s1", -1, -1, "down")
        cache.record_status("t2", "s1", 0, 200, "")
        assert cache.get("t1", "s1").status == "failed"
        assert cache.get("t2", "s1").status == "active"

    def test_get_returns_copy(self):
        cache = InMemorySubscriptionCache()
        cache.record_status("t1", "s1", 0, 200, "")
        item = cache.get("t1", "s1")
        item.times_sent = 99
        assert cache.get("t1", "s1").times_sent == 1

    def test_remove_and_clear(self):
        cache = InMemorySubscriptionCache()
        cache.record_status("t1", "s1", 0, 200, "")
        cache.record_status("t1", "s2", 0, 200, "")
        assert cache.remove("t1", "s1") is True
        assert cache.remove("t1", "s1") is False
        assert len(cache) == 1
        cache.clear()
        assert cache.snapshot() == []

    def test_concurrent_writers(self):
        cache = InMemorySubscriptionCache()

        def write(sub_id: str):
            for _ in range(200):
                cache.record_status("t1", sub_id, 0, 200, "")

        threads = [threading.Thread(target=write, args=(f"s{i % 2}",)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cache.get("t1", "s0").times_sent == 800
        assert cache.get("t1", "s1").times_sent == 800


# ============================================================================
# Alarm manager
# ============================================================================

class TestAlarmManager:
    def test_raise_and_clear(self):
        alarms = NotificationAlarmManager(collector=MetricsCollector())
        alarms.raise_alarm("h:80/x", "boom")
        assert alarms.is_raised("h:80/x")
        alarms.clear_alarm("h:80/x")
        assert not alarms.is_raised("h:80/x")

    def test_raise_is_idempotent(self):
        collector = MetricsCollector()
        alarms = NotificationAlarmManager(collector=collector, clock=_clock())
        alarms.raise_alarm("h:80/x", "first")
        alarms.raise_alarm("h:80/x", "second")

        assert alarms.count == 1
        alarm = alarms.get("h:80/x")
        assert alarm.detail == "second"
        assert alarm.raised_at == 1000.0
        assert alarm.updated_at == 1001.0
        assert collector.get_counter("alarms_raised_total", {"kind": "NotificationError"}) == 1

    def test_clear_without_alarm_is_noop(self, caplog):
        collector = MetricsCollector()
        alarms = NotificationAlarmManager(collector=collector)
        caplog.set_level(logging.WARNING)

        alarms.clear_alarm("h:80/x")

        assert caplog.records == []
        assert collector.get_counter("alarms_released_total", {"kind": "NotificationError"}) == 0

    def test_transitions_logged_and_audited(self, caplog):
        alarms = NotificationAlarmManager(collector=MetricsCollector())
        caplog.set_level(logging.INFO)

        alarms.raise_alarm("h:80/x", "boom")
        alarms.clear_alarm("h:80/x")

        messages = [r.getMessage() for r in caplog.records]
        assert "Raising alarm NotificationError h:80/x: boom" in messages
        assert "Releasing alarm NotificationError h:80/x" in messages
        audit = [r for r in caplog.records if r.name == "audit"]
        assert [r.audit_action for r in audit] == ["alarm.raise", "alarm.clear"]
        assert all(r.destination == "h:80/x" for r in audit)

    def test_repeat_logged_only_with_relog(self, caplog):
        caplog.set_level(logging.WARNING, logger="notifier.infra.alarm_manager")

        quiet = NotificationAlarmManager(collector=MetricsCollector())
        quiet.raise_alarm("h:80/x", "a")
        quiet.raise_alarm("h:80/x", "b")
        assert sum("Repeated" in r.getMessage() for r in caplog.records) == 0

        loud = NotificationAlarmManager(relog=True, collector=MetricsCollector())
        loud.raise_alarm("h:80/y", "a")
        loud.raise_alarm("h:80/y", "b")
        assert sum("Repeated" in r.getMessage() for r in caplog.records) == 1

    def test_active_alarms_oldest_first(self):
        alarms = NotificationAlarmManager(collector=MetricsCollector(), clock=_clock())
        alarms.raise_alarm("b:80/", "x")
        alarms.raise_alarm("a:80/", "y")
        assert [a.destination for a in alarms.active_alarms()] == ["b:80/", "a:80/"]
        assert alarms.active_alarms()[0].to_dict()["kind"] == "NotificationError"
