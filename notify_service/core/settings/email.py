"""Email channel settings for SMTP delivery.

Environment variables use EMAIL_ prefix.
Example: EMAIL_SMTP_HOST=smtp.example.com, EMAIL_SMTP_PORT=587
"""

from __future__ import annotations

from pydantic import EmailStr, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    """SMTP relay configuration used by the email channel sender."""

    smtp_host: str | None = Field(
        default=None,
        max_length=255,
        description="SMTP server hostname; email sends fail when unset",
    )
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (587 for TLS, 465 for SSL, 25 for plain)",
    )
    smtp_username: str | None = Field(
        default=None,
        max_length=255,
        description="SMTP authentication username",
    )
    smtp_password: SecretStr | None = Field(
        default=None,
        description="SMTP authentication password",
    )
    use_tls: bool = Field(
        default=True,
        description="Use STARTTLS. Set False for implicit SSL or plain SMTP",
    )
    use_ssl: bool = Field(
        default=False,
        description="Use implicit SSL/TLS (port 465). Mutually exclusive with use_tls",
    )
    default_from_email: EmailStr | None = Field(
        default=None,
        description="Sender address; falls back to smtp_username",
    )
    default_from_name: str = Field(
        default="Notifications",
        max_length=100,
        description="Sender display name",
    )
    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="SMTP connection timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_tls_mode(self) -> EmailSettings:
        if self.use_tls and self.use_ssl:
            msg = "use_tls and use_ssl are mutually exclusive"
            raise ValueError(msg)
        return self

    @property
    def is_configured(self) -> bool:
        """Whether a relay host and a sender address are available."""
        return bool(self.smtp_host and self.sender_address)

    @property
    def sender_address(self) -> str | None:
        """Envelope sender: explicit from-address, else the SMTP username."""
        return self.default_from_email or self.smtp_username


__all__ = ["EmailSettings"]
