# notifier/transport/http_app.py
"""
Operations HTTP surface for the notification dispatcher.

- Public: /health
- Metrics auth: /statistics, /alarms, /subscriptions/{tenant}/{id}/status

The dispatch runtime and worker pool live on ``app.state`` and are
created in the lifespan; shutdown drains in-flight batches before the
shared HTTP sessions are closed.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request, Depends

from notifier.config import settings, validate_or_warn
from notifier.infra.logging_config import setup_logging, get_logger
from notifier.infra.runtime import DispatchRuntime, get_dispatch_runtime
from notifier.transport.security import require_metrics_auth

setup_logging(
    level=settings.log_level,
    use_json=settings.use_json_logs,
)

logger = get_logger(__name__)


def get_runtime(request: Request) -> DispatchRuntime:
    """Get dispatch runtime from app state"""
    return request.app.state.runtime


def create_app(runtime: DispatchRuntime | None = None) -> FastAPI:
    """Build the FastAPI app; ``runtime`` defaults to the process-wide one."""

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        logger.info(f"Starting notifier: env={settings.app_env}")
        validate_or_warn(settings)

        rt = runtime or get_dispatch_runtime()
        fastapi_app.state.runtime = rt
        fastapi_app.state.pool = rt.new_pool(settings.dispatch_max_concurrent_batches)
        logger.info(
            f"Dispatch pool ready: max_concurrent_batches={settings.dispatch_max_concurrent_batches}"
        )

        yield

        logger.info("Shutting down notifier")
        await fastapi_app.state.pool.stop()

        from notifier.infra.http_client import close_all_sessions
        await close_all_sessions()
        logger.info("Notifier shutdown complete")

    fastapi_app = FastAPI(
        title="Notifier",
        description="Notification dispatch worker",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )

    @fastapi_app.get("/health")
    def health():
        """Basic health check - PUBLIC endpoint."""
        return {"status": "healthy"}

    @fastapi_app.get("/statistics", dependencies=[Depends(require_metrics_auth)])
    def statistics(request: Request, rt: DispatchRuntime = Depends(get_runtime)):
        """Counters, histograms and the simulated-notification count"""
        data = rt.collector.get_metrics()
        data["simulated_notifications"] = rt.simulated_counter.value
        data["in_flight_batches"] = request.app.state.pool.in_flight
        return data

    @fastapi_app.delete("/statistics", dependencies=[Depends(require_metrics_auth)])
    def reset_statistics(rt: DispatchRuntime = Depends(get_runtime)):
        rt.reset_statistics()
        logger.info("Statistics reset via API")
        return {"status": "reset"}

    @fastapi_app.get("/alarms", dependencies=[Depends(require_metrics_auth)])
    def alarms(rt: DispatchRuntime = Depends(get_runtime)):
        active = rt.alarms.active_alarms()
        return {"count": len(active), "alarms": [a.to_dict() for a in active]}

    @fastapi_app.get(
        "/subscriptions/{tenant}/{subscription_id}/status",
        dependencies=[Depends(require_metrics_auth)],
    )
    def subscription_status(
        tenant: str,
        subscription_id: str,
        rt: DispatchRuntime = Depends(get_runtime),
    ):
        item = rt.health_cache.get(tenant, subscription_id)
        if item is None:
            raise HTTPException(status_code=404, detail="Subscription not found")
        return item.to_dict()

    return fastapi_app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "notifier.transport.http_app:app",
        host="0.0.0.0",
        port=8099,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,
        server_header=False,
        date_header=False,
    )
