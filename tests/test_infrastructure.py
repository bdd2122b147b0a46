# tests/test_infrastructure.py
"""Tests for infrastructure components: metrics, logging, configuration"""
import json
import logging
import threading

import pytest

from notifier.infra.logging_config import JSONFormatter, LogContext, mask_token


class TestMetrics:
    def test_metrics_counter_increment(self):
        from notifier.infra.metrics import MetricsCollector

        collector = MetricsCollector()
        collector.inc_counter("test_counter", 1)
        collector.inc_counter("test_counter", 2)

        metrics = collector.get_metrics()
        assert metrics["counters"]["test_counter"] == 3

    def test_metrics_histogram_observe(self):
        from notifier.infra.metrics import MetricsCollector

        collector = MetricsCollector()
        collector.observe_histogram("test_histogram", 0.1)
        collector.observe_histogram("test_histogram", 0.2)
        collector.observe_histogram("test_histogram", 0.5)

        stats = collector.get_metrics()["histograms"]["test_histogram"]
        assert stats["count"] == 3
        assert stats["min"] == 0.1
        assert stats["max"] == 0.5

    def test_metrics_with_labels(self):
        from notifier.infra.metrics import MetricsCollector

        collector = MetricsCollector()
        collector.inc_counter("sent", 1, {"mime_type": "json"})
        collector.inc_counter("sent", 2, {"mime_type": "text"})

        assert collector.get_counter("sent", {"mime_type": "json"}) == 1
        assert collector.get_counter("sent", {"mime_type": "text"}) == 2
        assert collector.get_counter("sent", {"mime_type": "xml"}) == 0

    def test_statistics_unknown_mime_type(self):
        from notifier.infra.metrics import MetricsCollector, NotificationStatistics

        stats = NotificationStatistics(MetricsCollector())
        stats.increment("notify_context_sent", "")
        assert stats.count("notify_context_sent", "") == 1
        assert stats.count("notify_context_sent", "unknown") == 1

    def test_timer_records_histogram(self):
        from notifier.infra.metrics import MetricsCollector, Timer

        collector = MetricsCollector()
        with Timer("send_seconds", collector, verb="POST"):
            pass

        assert collector.get_metrics()["histograms"]["send_seconds{verb=POST}"]["count"] == 1

    def test_histogram_keeps_recent_samples_only(self):
        from notifier.infra.metrics import HISTOGRAM_MAX_SAMPLES, MetricsCollector

        collector = MetricsCollector()
        for i in range(HISTOGRAM_MAX_SAMPLES * 2):
            collector.observe_histogram("latency", float(i))

        stats = collector.get_metrics()["histograms"]["latency"]
        assert stats["count"] == HISTOGRAM_MAX_SAMPLES
        assert stats["total"] == HISTOGRAM_MAX_SAMPLES * 2
        assert stats["min"] == float(HISTOGRAM_MAX_SAMPLES)


class TestAtomicCounter:
    def test_inc_returns_previous(self):
        from notifier.infra.metrics import AtomicCounter

        counter = AtomicCounter()
        assert counter.inc() == 0
        assert counter.inc(2) == 1
        assert counter.value == 3

    def test_concurrent_increments(self):
        from notifier.infra.metrics import AtomicCounter

        counter = AtomicCounter()

        def bump():
            for _ in range(1000):
                counter.inc()

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter.value == 8000
        counter.reset()
        assert counter.value == 0


class TestLogging:
    def test_mask_token(self):
        assert mask_token("") == ""
        assert mask_token("abc") == "****"
        assert mask_token("abcdef123456") == "abcd****56"

    def test_log_context_adds_extras(self, caplog):
        logger = logging.getLogger("test.context")
        caplog.set_level(logging.DEBUG, logger="test.context")

        with LogContext(logger, transaction_id="trans-9", subscription_id="sub-9") as log:
            log.info("hello")

        hello = [r for r in caplog.records if r.getMessage() == "hello"][0]
        assert hello.transaction_id == "trans-9"
        assert hello.subscription_id == "sub-9"
        assert not hasattr(hello, "correlator")
        assert caplog.records[-1].getMessage() == "Transaction ended"

    def test_log_context_closed_on_error(self, caplog):
        logger = logging.getLogger("test.context")
        caplog.set_level(logging.DEBUG, logger="test.context")

        with pytest.raises(RuntimeError):
            with LogContext(logger, transaction_id="trans-9") as log:
                raise RuntimeError("boom")

        assert log.closed is True
        assert caplog.records[-1].getMessage() == "Transaction ended"

    def test_json_formatter_includes_context(self):
        record = logging.LogRecord("n", logging.INFO, __file__, 1, "msg", None, None)
        record.transaction_id = "trans-1"
        record.correlator = "corr-1"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "msg"
        assert data["transaction_id"] == "trans-1"
        assert data["correlator"] == "corr-1"
        assert "tenant_id" not in data


class TestSettings:
    def test_defaults(self):
        from notifier.config import Settings
        s = Settings(_env_file=None)
        assert s.simulated_notifications is False
        assert s.relog_alarms is False
        assert s.dispatch_max_concurrent_batches == 10

    def test_json_logs_follow_env(self):
        from notifier.config import Settings
        assert Settings(app_env="prod", _env_file=None).use_json_logs is True
        assert Settings(app_env="dev", _env_file=None).use_json_logs is False
        assert Settings(app_env="dev", log_json=True, _env_file=None).use_json_logs is True

    def test_invalid_env_rejected(self):
        from notifier.config import Settings
        from pydantic import ValidationError
        with pytest.raises(ValidationError):
            Settings(app_env="banana", _env_file=None)

    def test_simulated_mode_forbidden_in_production(self):
        from notifier.config import Settings, validate_or_warn
        s = Settings(app_env="prod", simulated_notifications=True, _env_file=None)
        with pytest.raises(RuntimeError):
            validate_or_warn(s)

    def test_risky_config_warnings(self):
        from notifier.config import Settings, warn_on_risky_config
        s = Settings(app_env="prod", _env_file=None)
        warnings = warn_on_risky_config(s)
        assert any("metrics_token" in w for w in warnings)

        dev = Settings(simulated_notifications=True, _env_file=None)
        assert any("simulated_notifications" in w for w in warn_on_risky_config(dev))

    def test_staging_validates_like_dev(self):
        from notifier.config import Settings
        s = Settings(app_env="staging", simulated_notifications=True, _env_file=None)
        assert s.is_production is False
        assert s.use_json_logs is False
        assert s.validate_required_for_production() == []
        assert not hasattr(s, "is_staging")
