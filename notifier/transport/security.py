# notifier/transport/security.py
"""
Access control for the operations endpoints.

- Constant-time token comparison (timing attack prevention)
- Token prefix only in logs
"""
import hmac

from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from notifier.config import settings
from notifier.infra.logging_config import get_logger

logger = get_logger(__name__)

metrics_bearer_scheme = HTTPBearer(
    scheme_name="Metrics Token",
    description="Bearer token for statistics and alarm endpoints",
    auto_error=False,
)


def constant_time_compare(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def require_metrics_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(metrics_bearer_scheme),
):
    """
    Dependency for statistics/alarm endpoints.

    If METRICS_TOKEN is set, a matching Bearer token is required.
    Without a token the endpoints are open (dev / private network).

    Usage:
        @app.get("/statistics", dependencies=[Depends(require_metrics_auth)])
        def statistics():
            ...
    """
    if not settings.metrics_token:
        return

    if not credentials:
        logger.warning("Metrics endpoint accessed without token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not constant_time_compare(credentials.credentials, settings.metrics_token):
        logger.warning(
            "Invalid metrics token attempt",
            extra={"token_prefix": credentials.credentials[:4] if len(credentials.credentials) >= 4 else "***"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
