# notifier/core/dispatch/domain.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Union

from notifier.core.dispatch.errors import BatchOwnershipError, InvalidJobError


# ============================================================================
# NOTIFICATION JOB
# ============================================================================

@dataclass
class NotificationJob:
    """
    One prepared outbound callback: destination, scoping headers, payload.

    ``registration`` jobs forward context to another broker and carry no
    subscription; every other job must name the subscription it serves.
    """
    host: str
    port: int
    resource: str
    verb: str
    tenant: str
    content: str
    content_type: str
    subscription_id: str = ""
    protocol: str = "http:"
    service_path: str = ""
    auth_token: str = ""
    render_format: str = ""
    correlator: str = ""
    mime_type: str = "json"
    origin: str = ""
    extra_headers: dict[str, str] = field(default_factory=dict)
    registration: bool = False

    # Set once by JobBatch.release()
    released: bool = field(default=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.host:
            raise InvalidJobError("Notification job requires a host")
        if not 0 < self.port <= 65535:
            raise InvalidJobError(f"Invalid port for notification job: {self.port}")
        if not self.registration and not self.subscription_id:
            raise InvalidJobError("Subscription notification job requires subscription_id")

    @property
    def destination_url(self) -> str:
        """Alarm and log key for the destination: ``host:port/resource``."""
        return f"{self.host}:{self.port}{self.resource}"


# ============================================================================
# JOB BATCH (single-owner container)
# ============================================================================

class JobBatch:
    """
    Ordered jobs sharing one transaction id, owned by exactly one worker.

    The producer builds the batch and hands it over; the worker claims it,
    drains it in order, releases each job after processing and closes the
    batch. A batch cannot be claimed twice or reused after close.
    """

    def __init__(self, transaction_id: str, jobs: Iterable[NotificationJob]):
        self.transaction_id = transaction_id
        self._pending: deque[NotificationJob] = deque(jobs)
        self.size = len(self._pending)
        self.released_count = 0
        self.closed = False
        self._owner: Optional[object] = None

    def claim(self, owner: object) -> None:
        if self.closed:
            raise BatchOwnershipError(f"Batch {self.transaction_id} is already closed")
        if self._owner is not None:
            raise BatchOwnershipError(f"Batch {self.transaction_id} is already owned")
        self._owner = owner

    @property
    def owner(self) -> Optional[object]:
        return self._owner

    @property
    def pending(self) -> int:
        return len(self._pending)

    def drain(self) -> Iterator[NotificationJob]:
        """Yield pending jobs in hand-off order, removing each as it is taken."""
        if self._owner is None:
            raise BatchOwnershipError(f"Batch {self.transaction_id} must be claimed before draining")
        while self._pending and not self.closed:
            yield self._pending.popleft()

    def release(self, job: NotificationJob) -> None:
        if job.released:
            raise BatchOwnershipError("Notification job released twice")
        job.released = True
        self.released_count += 1

    def close(self) -> None:
        """Release any job left behind and drop the container."""
        if self.closed:
            raise BatchOwnershipError(f"Batch {self.transaction_id} closed twice")
        while self._pending:
            self.release(self._pending.popleft())
        self.closed = True
        self._owner = None

    def __len__(self) -> int:
        return self.size


# ============================================================================
# TRANSPORT RESULT / OUTCOME
# ============================================================================

@dataclass(frozen=True)
class TransportResult:
    """What the transport returns: result_code 0 means the exchange completed."""
    result_code: int
    status_code: int = -1
    body: str = ""

    @property
    def ok(self) -> bool:
        return self.result_code == 0


@dataclass(frozen=True)
class Delivered:
    status_code: int
    body: str = ""


@dataclass(frozen=True)
class Failed:
    error: str


@dataclass(frozen=True)
class Simulated:
    pass


Outcome = Union[Delivered, Failed, Simulated]


def classify(result: TransportResult) -> Outcome:
    if result.ok:
        return Delivered(status_code=result.status_code, body=result.body)
    return Failed(error=result.body)
