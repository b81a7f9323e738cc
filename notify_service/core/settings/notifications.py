"""Notification engine settings: retry policy, sweeps and fallbacks.

Environment variables use NOTIFY_ prefix.
Example: NOTIFY_MAX_ATTEMPTS=5, NOTIFY_BACKOFF_BASE_SECONDS=30
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationSettings(BaseSettings):
    """Delivery engine configuration.

    Controls the retry schedule for failed deliveries, the cadence and size of
    background sweeps, and channel behavior when nobody is subscribed.
    """

    # Retry configuration
    max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Total delivery attempts per (notification, subscription, channel)",
    )
    backoff_base_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Base delay; attempt N waits base * 2**N seconds",
    )
    backoff_max_seconds: float = Field(
        default=21600.0,
        gt=0.0,
        description="Upper bound for a single backoff delay (6 hours default)",
    )

    # Channel sender calls
    sender_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Timeout applied to every channel sender call",
    )

    # Sweeps
    sweep_batch_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum rows examined per sweep tick",
    )
    claim_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Age after which an unreleased claim may be taken over by another worker",
    )
    retry_sweep_interval_seconds: int = Field(
        default=60,
        ge=1,
        description="Interval between scheduled retry sweeps",
    )
    digest_sweep_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Interval between scheduled digest sweeps",
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Register sweep jobs with the in-process scheduler",
    )

    # Routing
    fallback_channels: list[str] = Field(
        default_factory=lambda: ["in_app"],
        min_length=1,
        description="Channels used when a recipient has no matching subscription",
    )
    email_enabled: bool = Field(
        default=True,
        description="Feature flag for outbound email; disabled sends are logged as failures",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_backoff_increases(self) -> NotificationSettings:
        """Reject caps that would flatten the schedule before the last attempt.

        Retries must back off strictly: the delay for attempt N+1 has to exceed
        the delay for attempt N for every attempt up to max_attempts.
        """
        delays = [self.backoff_delay_seconds(n) for n in range(1, self.max_attempts + 1)]
        if any(later <= earlier for earlier, later in zip(delays, delays[1:], strict=False)):
            msg = (
                f"backoff_max_seconds={self.backoff_max_seconds} caps the retry delay "
                f"before attempt {self.max_attempts}; raise the cap or lower max_attempts"
            )
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def _check_claim_outlives_send(self) -> NotificationSettings:
        """A claim must not go stale while its holder is still inside a send."""
        if self.claim_timeout_seconds <= self.sender_timeout_seconds:
            msg = (
                f"claim_timeout_seconds={self.claim_timeout_seconds} must exceed "
                f"sender_timeout_seconds={self.sender_timeout_seconds}"
            )
            raise ValueError(msg)
        return self

    def backoff_delay_seconds(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt``."""
        # Exponent bounded so long-failing digests cannot overflow a float
        return min(self.backoff_base_seconds * (2 ** min(attempt, 64)), self.backoff_max_seconds)


__all__ = ["NotificationSettings"]
