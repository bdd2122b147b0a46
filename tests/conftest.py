# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from notifier.core.dispatch.domain import JobBatch, NotificationJob, TransportResult  # noqa: E402
from notifier.core.dispatch.worker import DispatchWorker  # noqa: E402
from notifier.infra.alarm_manager import NotificationAlarmManager  # noqa: E402
from notifier.infra.metrics import AtomicCounter, MetricsCollector, NotificationStatistics  # noqa: E402
from notifier.infra.subscription_cache import InMemorySubscriptionCache  # noqa: E402


class FakeTransport:
    """Records every send and answers from a per-host script (default: 200 OK)."""

    def __init__(self, results: dict[str, TransportResult | Exception] | None = None):
        self.results = results or {}
        self.calls: list[dict] = []

    async def send(self, origin, host, port, protocol, verb, tenant, service_path,
                   auth_token, resource, content_type, body, correlator,
                   render_format, extra_headers):
        self.calls.append({
            "origin": origin, "host": host, "port": port, "protocol": protocol,
            "verb": verb, "tenant": tenant, "service_path": service_path,
            "auth_token": auth_token, "resource": resource,
            "content_type": content_type, "body": body, "correlator": correlator,
            "render_format": render_format, "extra_headers": extra_headers,
        })
        result = self.results.get(host, TransportResult(result_code=0, status_code=200, body="OK"))
        if isinstance(result, Exception):
            raise result
        return result


def make_job(**overrides) -> NotificationJob:
    """Create a test NotificationJob."""
    fields = dict(
        host="callback.example.com",
        port=8080,
        resource="/notify",
        verb="POST",
        tenant="test_tenant",
        service_path="/rooms",
        content='{"data": []}',
        content_type="application/json",
        subscription_id="sub-1",
        correlator="corr-1",
        mime_type="json",
    )
    fields.update(overrides)
    return NotificationJob(**fields)


@pytest.fixture
def collector():
    return MetricsCollector()


@pytest.fixture
def health_cache():
    return InMemorySubscriptionCache()


@pytest.fixture
def alarms(collector):
    return NotificationAlarmManager(collector=collector)


@pytest.fixture
def statistics(collector):
    return NotificationStatistics(collector)


@pytest.fixture
def simulated_counter():
    return AtomicCounter()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def worker_factory(transport, health_cache, alarms, statistics, simulated_counter, collector):
    """Build a DispatchWorker over the shared fixtures."""
    def _factory(simulated: bool = False, transport_override=None) -> DispatchWorker:
        return DispatchWorker(
            transport_override or transport,
            health_cache,
            alarms,
            statistics,
            simulated=simulated,
            simulated_counter=simulated_counter,
            collector=collector,
        )
    return _factory


@pytest.fixture
def make_batch():
    def _make(*jobs: NotificationJob, transaction_id: str = "trans-1") -> JobBatch:
        return JobBatch(transaction_id, jobs)
    return _make
