#rollout_engine\config.py

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Rollout engine configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROLLOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Multiplier for every configured wait; 0 disables waiting
    time_scale: float = Field(default=1.0, ge=0)

    # Monitoring windows (seconds, before time_scale)
    monitor_window_seconds: float = Field(default=120, ge=0)
    ab_monitor_window_seconds: float = Field(default=300, ge=0)
    shadow_compare_window_seconds: float = Field(default=300, ge=0)
    replica_update_wait_seconds: float = Field(default=5, ge=0)
    cleanup_wait_seconds: float = Field(default=0, ge=0)

    # Canary defaults
    default_canary_increment: int = Field(default=10, gt=0, le=100)
    default_canary_duration_minutes: float = Field(default=5, ge=0)

    # Control calls wait this long for the owning task
    join_timeout_seconds: float = Field(default=30, gt=0)

    # Collaborators
    runtime_agent_url: Optional[str] = None
    runtime_agent_timeout: int = 30
    notification_webhook_url: Optional[str] = None

    # Process
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    def scaled(self, seconds: float) -> float:
        """Apply ``time_scale`` to a wait expressed in seconds."""
        return max(0.0, seconds * self.time_scale)

    def scaled_minutes(self, minutes: float) -> float:
        return self.scaled(minutes * 60)
