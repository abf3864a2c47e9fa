"""RAG Tracker configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

# Environment overrides: env var -> config attribute
_ENV_OVERRIDES: dict[str, str] = {
    "RAGTRACKER_LOG_LEVEL": "log_level",
    "RAGTRACKER_RETENTION_MONTHS": "retention_months",
    "RAGTRACKER_SMTP_HOST": "smtp_host",
    "RAGTRACKER_SMTP_PORT": "smtp_port",
    "RAGTRACKER_SMTP_USER": "smtp_user",
    "RAGTRACKER_SMTP_PASSWORD": "smtp_password",
    "RAGTRACKER_SMTP_USE_TLS": "smtp_use_tls",
    "RAGTRACKER_EMAIL_FROM": "email_from",
    "RAGTRACKER_FRONTEND_URL": "frontend_url",
    "RAGTRACKER_JWT_SECRET": "jwt_secret",
}

_SAVED_KEYS = (
    "log_level",
    "retention_months",
    "history_weeks",
    "wal_mode",
    "smtp_host",
    "smtp_port",
    "smtp_use_tls",
    "email_from",
    "frontend_url",
    "token_exp_minutes",
    "schedule_timezone",
    "reminder_cron",
    "dashboard_cron",
)


@dataclass
class Config:
    """RAG Tracker configuration."""

    workspace_path: Path = field(default_factory=lambda: Path.home() / ".ragtracker")
    log_level: str = "INFO"
    wal_mode: bool = True

    # Reports older than this are purged and never returned by queries
    retention_months: int = 6
    # Width of trend and heatmap columns
    history_weeks: int = 26

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_from: str = "RAG Tracker <no-reply@company.com>"
    frontend_url: str = "http://localhost:5173"

    jwt_secret: str = "test-secret-key-do-not-use"
    token_exp_minutes: int = 7 * 24 * 60

    # Consumed by the external scheduler
    schedule_timezone: str = "Europe/Amsterdam"
    reminder_cron: str = "0 9 * * 5"
    dashboard_cron: str = "0 17 * * 5"

    def __post_init__(self) -> None:
        _check_retention(self.retention_months)

    @classmethod
    def load(cls, workspace_path: Path | None = None) -> Config:
        """Load config from defaults, env vars, then the workspace YAML file."""
        config = cls()

        if workspace_path:
            config.workspace_path = workspace_path

        env_path = os.environ.get("RAGTRACKER_WORKSPACE")
        if env_path:
            config.workspace_path = Path(env_path)

        for env_name, attr in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                config._set(attr, value)

        config_file = config.workspace_path / "config.yaml"
        if config_file.exists():
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
            for key, value in data.items():
                if hasattr(config, key):
                    config._set(key, value)

        _check_retention(config.retention_months)
        return config

    def _set(self, key: str, value: object) -> None:
        expected_type = type(getattr(self, key))
        if expected_type is Path:
            setattr(self, key, Path(str(value)))
        elif expected_type is bool and isinstance(value, str):
            setattr(self, key, value.strip().lower() in {"1", "true", "yes", "on"})
        else:
            setattr(self, key, expected_type(value))

    @property
    def db_path(self) -> Path:
        return self.workspace_path / "ragtracker.db"

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host)

    def save(self) -> None:
        """Save current config to YAML. Secrets are never written."""
        self.workspace_path.mkdir(parents=True, exist_ok=True)
        config_file = self.workspace_path / "config.yaml"
        data = {key: getattr(self, key) for key in _SAVED_KEYS}
        with open(config_file, "w") as f:
            yaml.dump(data, f, default_flow_style=False)


def _check_retention(months: int) -> None:
    if months < 1:
        raise ValueError(f"retention_months must be at least 1, got {months}")
