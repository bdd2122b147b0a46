# notifier/infra/audit_log.py
"""
Audit logging for delivery health transitions.

Alarm raise/release events are written to a dedicated logger named
"audit" (separate from the application log) so they can be routed to
their own sink via logging configuration.
"""
from __future__ import annotations

import logging

_audit_logger = logging.getLogger("audit")


def audit_event(action: str, *, destination: str | None = None, detail: str = "") -> None:
    """
    Record an audit event.

    Args:
        action: Action name (e.g., "alarm.raise", "alarm.clear")
        destination: Notification URL affected (if applicable)
        detail: Human-readable detail
    """
    _audit_logger.info(
        f"AUDIT: {action} destination={destination or '-'} {detail}",
        extra={
            "audit_action": action,
            "destination": destination or "",
            "detail": detail,
        },
    )
