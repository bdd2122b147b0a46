# notifier/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool | None = None  # None = JSON in prod, console elsewhere

    # Dispatch
    simulated_notifications: bool = False      # Skip outgoing requests, only count them
    relog_alarms: bool = False                 # Log every repeated raise of an already-raised alarm
    dispatch_max_concurrent_batches: int = 10  # Batches processed in parallel by the pool

    # Notification transport
    notification_timeout_seconds: float = 5.0
    notification_connect_timeout_seconds: float = 2.0
    notification_pool_limit: int = 50
    notification_max_response_bytes: int = 8192  # Response body kept for logs/alarms
    notification_user_agent: str = "notifier/1.0"

    # Security
    metrics_token: str | None = None  # Bearer token for /statistics and /alarms

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def use_json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.is_production

    def validate_required_for_production(self) -> list[str]:
        """Return settings that make the service unusable in production"""
        if not self.is_production:
            return []

        problems = []
        if self.simulated_notifications:
            problems.append("simulated_notifications must be false")
        if self.notification_timeout_seconds <= 0:
            problems.append("notification_timeout_seconds must be positive")
        return problems


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.simulated_notifications:
        warnings.append("simulated_notifications=True: no notification will leave this process.")

    if s.is_production and not s.metrics_token:
        warnings.append("prod: metrics_token is not set (statistics and alarms endpoints are open).")

    if s.dispatch_max_concurrent_batches < 1:
        warnings.append("dispatch_max_concurrent_batches < 1: treated as 1.")

    if s.notification_connect_timeout_seconds > s.notification_timeout_seconds:
        warnings.append("notification_connect_timeout_seconds exceeds the total notification timeout.")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Invalid settings for production: {', '.join(missing)}")

    from notifier.infra.logging_config import get_logger
    logger = get_logger(__name__)
    for msg in warn_on_risky_config(s):
        logger.warning("[config] %s", msg)


settings = Settings()
