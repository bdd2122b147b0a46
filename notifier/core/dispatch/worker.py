# notifier/core/dispatch/worker.py
"""
Dispatch worker: delivers one batch of prepared notifications.

Jobs are processed strictly in hand-off order, one at a time. For each
job the worker sends the request (or, in simulated mode, only counts
it), classifies the result and fans the outcome out to the statistics
sink, the alarm manager and the subscription health cache. Failures are
recorded, never retried and never propagated: ``run()`` always drains
and closes the whole batch.
"""
from __future__ import annotations

from notifier.core.dispatch.domain import (
    Delivered,
    Failed,
    JobBatch,
    NotificationJob,
    Outcome,
    Simulated,
    TransportResult,
    classify,
)
from notifier.core.dispatch.errors import BatchOwnershipError
from notifier.core.dispatch.ports import (
    AlarmManager,
    NotificationTransport,
    SimulationCounter,
    StatisticsSink,
    SubscriptionHealthCache,
)
from notifier.infra.logging_config import LogContext, get_logger, mask_token
from notifier.infra.metrics import MetricsCollector, StatisticEvent, Timer

logger = get_logger(__name__)

ALARM_DETAIL_PREFIX = "notification failure for sender-thread: "


class DispatchWorker:
    """
    Sends the jobs of one batch and records each outcome.

    Usage:
        worker = DispatchWorker(transport, health_cache, alarms, statistics,
                                simulated=False, simulated_counter=counter)
        await worker.run(batch)
    """

    def __init__(
        self,
        transport: NotificationTransport,
        health_cache: SubscriptionHealthCache,
        alarms: AlarmManager,
        statistics: StatisticsSink,
        *,
        simulated: bool = False,
        simulated_counter: SimulationCounter,
        collector: MetricsCollector | None = None,
    ):
        self._transport = transport
        self._health_cache = health_cache
        self._alarms = alarms
        self._statistics = statistics
        self._simulated = simulated
        self._simulated_counter = simulated_counter
        self._collector = collector
        self._busy = False

    async def run(self, batch: JobBatch) -> None:
        """Take ownership of ``batch``, process every job, release everything."""
        if self._busy:
            raise BatchOwnershipError("Dispatch worker is already processing a batch")
        batch.claim(self)
        self._busy = True

        logger.debug(
            f"Sender worker started: transaction={batch.transaction_id}, jobs={len(batch)}",
            extra={"transaction_id": batch.transaction_id},
        )
        try:
            for job in batch.drain():
                try:
                    await self._process(job, batch.transaction_id)
                except Exception as exc:
                    logger.error(
                        f"Notification job aborted: url={job.destination_url}, error={exc}",
                        exc_info=True,
                        extra={"transaction_id": batch.transaction_id},
                    )
                finally:
                    batch.release(job)
        finally:
            released = batch.released_count
            batch.close()
            self._busy = False

        logger.debug(
            f"Sender worker finished: transaction={batch.transaction_id}, released={released}",
            extra={"transaction_id": batch.transaction_id},
        )

    async def _process(self, job: NotificationJob, transaction_id: str) -> None:
        url = job.destination_url

        with LogContext(
            logger,
            transaction_id=transaction_id,
            correlator=job.correlator or None,
            tenant_id=job.tenant,
            service_path=job.service_path or None,
            subscription_id=job.subscription_id or None,
        ) as log:
            log.debug(
                "sending to: host='%s', port=%d, verb=%s, tenant='%s', service-path: '%s', "
                "xauthToken: '%s', path='%s', content-type: %s",
                job.host, job.port, job.verb, job.tenant, job.service_path,
                mask_token(job.auth_token), job.resource, job.content_type,
            )

            if self._simulated:
                log.debug("simulated notifications enabled, skipping outgoing request")
                self._simulated_counter.inc()
                outcome: Outcome = Simulated()
            else:
                outcome = await self._send(job, log)
                try:
                    self._record(job, url, outcome)
                except Exception as exc:
                    log.error(f"Recording notification outcome failed: {exc}", exc_info=True)

            self._log_summary(log, job, url, outcome)

    async def _send(self, job: NotificationJob, log: LogContext) -> Outcome:
        try:
            with Timer("notification_send_seconds", self._collector, verb=job.verb):
                result = await self._transport.send(
                    job.origin,
                    job.host,
                    job.port,
                    job.protocol,
                    job.verb,
                    job.tenant,
                    job.service_path,
                    job.auth_token,
                    job.resource,
                    job.content_type,
                    job.content,
                    job.correlator,
                    job.render_format,
                    dict(job.extra_headers),
                )
        except Exception as exc:
            error_msg = f"{exc.__class__.__name__}: {exc}"[:500]
            log.warning(f"Transport raised instead of returning a result: {error_msg}")
            result = TransportResult(result_code=-1, body=error_msg)

        return classify(result)

    def _record(self, job: NotificationJob, url: str, outcome: Outcome) -> None:
        if isinstance(outcome, Delivered):
            self._statistics.increment(StatisticEvent.NOTIFY_CONTEXT_SENT.value, job.mime_type)
            self._alarms.clear_alarm(url)
            if not job.registration:
                self._health_cache.record_status(
                    job.tenant, job.subscription_id, 0, outcome.status_code, "",
                )
        elif isinstance(outcome, Failed):
            self._alarms.raise_alarm(url, ALARM_DETAIL_PREFIX + outcome.error)
            if not job.registration:
                self._health_cache.record_status(
                    job.tenant, job.subscription_id, -1, -1, outcome.error,
                )

    @staticmethod
    def _log_summary(log: LogContext, job: NotificationJob, url: str, outcome: Outcome) -> None:
        # Status code when one was received, otherwise the error text; never both
        if isinstance(outcome, Delivered) and outcome.status_code != -1:
            log.info(
                "Notification delivered (subId: %s): %s %s, response code: %s",
                job.subscription_id, job.verb, url, outcome.status_code,
            )
        else:
            if isinstance(outcome, Failed):
                error_text = outcome.error
            elif isinstance(outcome, Delivered):
                error_text = outcome.body
            else:
                error_text = ""
            log.info(
                "Notification not delivered (subId: %s): %s %s, error: '%s'",
                job.subscription_id, job.verb, url, error_text,
            )
