# notifier/core/dispatch/ports.py
from __future__ import annotations
from typing import Protocol
from notifier.core.dispatch.domain import TransportResult


class NotificationTransport(Protocol):
    async def send(
        self,
        origin: str,
        host: str,
        port: int,
        protocol: str,
        verb: str,
        tenant: str,
        service_path: str,
        auth_token: str,
        resource: str,
        content_type: str,
        body: str,
        correlator: str,
        render_format: str,
        extra_headers: dict[str, str],
    ) -> TransportResult:
        """
        result_code 0  => exchange completed (status_code and body populated)
        result_code != 0 => failure, body holds the error detail
        """
        ...


class SubscriptionHealthCache(Protocol):
    def record_status(
        self,
        tenant: str,
        subscription_id: str,
        error_code: int,
        status_code: int,
        error_text: str,
    ) -> None: ...


class AlarmManager(Protocol):
    def raise_alarm(self, destination: str, detail: str) -> None: ...
    def clear_alarm(self, destination: str) -> None: ...


class StatisticsSink(Protocol):
    def increment(self, event_kind: str, mime_type: str) -> None: ...


class SimulationCounter(Protocol):
    def inc(self, amount: int = 1) -> int: ...
