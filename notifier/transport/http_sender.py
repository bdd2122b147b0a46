# notifier/transport/http_sender.py
"""
HTTP transport for outbound notifications.

Result classification:
- Any completed HTTP exchange   → result_code 0 (status and body returned,
  whatever the status code is; 4xx/5xx are left to observers)
- Unsupported protocol          → result_code -1, no request sent
- Connection error / timeout    → result_code -1, body holds the error text

HTTP session lifecycle:
- Uses the shared notification session from notifier.infra.http_client.
- Call close_all_sessions() during application shutdown.
"""
from __future__ import annotations

import asyncio
from typing import Callable

import aiohttp

from notifier.config import settings
from notifier.core.dispatch.domain import TransportResult
from notifier.infra.http_client import get_notification_session
from notifier.infra.logging_config import get_logger
from notifier.infra.metrics import inc_counter

logger = get_logger(__name__)

_SCHEMES = {"http": "http", "http:": "http", "https": "https", "https:": "https"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_url(protocol: str, host: str, port: int, resource: str) -> str | None:
    """Build the request URL, or None when the protocol is not supported."""
    scheme = _SCHEMES.get((protocol or "").strip().lower())
    if scheme is None:
        return None
    if resource and not resource.startswith("/"):
        resource = f"/{resource}"
    return f"{scheme}://{host}:{port}{resource}"


def build_headers(
    *,
    tenant: str,
    service_path: str,
    auth_token: str,
    content_type: str,
    correlator: str,
    render_format: str,
    user_agent: str,
    extra_headers: dict[str, str] | None = None,
) -> dict[str, str]:
    """Scoping and tracing headers; extra headers override the defaults."""
    headers = {"User-Agent": user_agent}
    if content_type:
        headers["Content-Type"] = content_type
    if tenant:
        headers["Fiware-Service"] = tenant
    if service_path:
        headers["Fiware-ServicePath"] = service_path
    if auth_token:
        headers["X-Auth-Token"] = auth_token
    if correlator:
        headers["Fiware-Correlator"] = correlator
    if render_format:
        headers["Ngsiv2-AttrsFormat"] = render_format
    if extra_headers:
        headers.update(extra_headers)
    return headers


async def _safe_response_text(resp: aiohttp.ClientResponse, max_len: int) -> str:
    """Read response body as text, truncated for logs and alarms."""
    try:
        text = await resp.text(errors="replace")
        return text[:max_len]
    except Exception:
        return "<unreadable>"


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class HttpNotificationTransport:
    """aiohttp implementation of the notification transport."""

    def __init__(
        self,
        *,
        session_factory: Callable[[], aiohttp.ClientSession] = get_notification_session,
        user_agent: str | None = None,
        max_response_bytes: int | None = None,
    ):
        self._session_factory = session_factory
        self._user_agent = user_agent or settings.notification_user_agent
        self._max_response_bytes = max_response_bytes or settings.notification_max_response_bytes

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
        url = build_url(protocol, host, port, resource)
        if url is None:
            inc_counter("notification_transport_errors_total", reason="protocol")
            return TransportResult(result_code=-1, body=f"unsupported protocol: '{protocol}'")

        headers = build_headers(
            tenant=tenant,
            service_path=service_path,
            auth_token=auth_token,
            content_type=content_type,
            correlator=correlator,
            render_format=render_format,
            user_agent=self._user_agent,
            extra_headers=extra_headers,
        )
        data = body.encode("utf-8") if body else None

        try:
            session = self._session_factory()
            async with session.request(verb.upper(), url, data=data, headers=headers) as resp:
                text = await _safe_response_text(resp, self._max_response_bytes)
                inc_counter(
                    "notification_http_responses_total",
                    status_class=f"{resp.status // 100}xx",
                )
                logger.debug(
                    f"Notification response: from={origin or '-'}, url={url}, status={resp.status}",
                    extra={"correlator": correlator, "tenant_id": tenant},
                )
                return TransportResult(result_code=0, status_code=resp.status, body=text)

        except asyncio.TimeoutError:
            inc_counter("notification_transport_errors_total", reason="timeout")
            return TransportResult(result_code=-1, body=f"timeout sending to {url}")
        except aiohttp.ClientError as exc:
            inc_counter("notification_transport_errors_total", reason="connection")
            detail = str(exc) or exc.__class__.__name__
            return TransportResult(result_code=-1, body=detail)
