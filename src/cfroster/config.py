"""Application configuration loaded from the environment.

Runtime-tunable sync settings (cron expression, batch size, delays) are
persisted in the Sync Configuration record instead; this module only covers
process-level settings that are fixed for the lifetime of the server.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

ENV_PREFIX = "CFROSTER_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _env_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class AppConfig:
    """Process-level configuration.

    Attributes:
        db_path: SQLite database file (":memory:" for an in-memory store).
        codeforces_base_url: Base URL of the Codeforces API.
        codeforces_timeout: Timeout in seconds for Codeforces requests.
        scheduler_enabled: Whether to start the recurring timers on startup.
        inactivity_enabled: Whether to install the daily inactivity check.
        inactivity_cron: Crontab expression for the inactivity check.
        inactivity_timezone: Timezone for the inactivity cron expression.
        inactivity_threshold_days: Days without a submission before a student
            counts as inactive.
        reminder_cooldown_hours: Minimum hours between two reminders.
        smtp_host: SMTP server host. Empty disables email delivery.
        smtp_port: SMTP server port.
        smtp_username: SMTP login.
        smtp_password: SMTP password.
        smtp_use_tls: Whether to STARTTLS after connecting.
        email_from: Sender address for outgoing mail.
        cors_origins: Allowed CORS origins for the admin UI.
        host: Interface the API server binds to.
        port: Port the API server listens on.
    """

    db_path: str = "cfroster.db"
    codeforces_base_url: str = "https://codeforces.com/api"
    codeforces_timeout: float = 15.0
    scheduler_enabled: bool = True
    inactivity_enabled: bool = True
    inactivity_cron: str = "0 10 * * *"
    inactivity_timezone: str = "UTC"
    inactivity_threshold_days: int = 7
    reminder_cooldown_hours: int = 24
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_from: str = "noreply@cfroster.local"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Build a config from CFROSTER_* environment variables.

        Unset variables keep their defaults.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            The loaded AppConfig.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            return env.get(f"{ENV_PREFIX}{name}")

        overrides: dict[str, object] = {}
        for name, convert in (
            ("DB_PATH", str),
            ("CODEFORCES_BASE_URL", str),
            ("CODEFORCES_TIMEOUT", float),
            ("SCHEDULER_ENABLED", _env_bool),
            ("INACTIVITY_ENABLED", _env_bool),
            ("INACTIVITY_CRON", str),
            ("INACTIVITY_TIMEZONE", str),
            ("INACTIVITY_THRESHOLD_DAYS", int),
            ("REMINDER_COOLDOWN_HOURS", int),
            ("SMTP_HOST", str),
            ("SMTP_PORT", int),
            ("SMTP_USERNAME", str),
            ("SMTP_PASSWORD", str),
            ("SMTP_USE_TLS", _env_bool),
            ("EMAIL_FROM", str),
            ("CORS_ORIGINS", _env_list),
            ("HOST", str),
            ("PORT", int),
        ):
            raw = get(name)
            if raw is not None:
                overrides[name.lower()] = convert(raw)

        return cls(**overrides)  # type: ignore[arg-type]
