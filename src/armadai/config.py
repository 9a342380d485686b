from __future__ import annotations

import os

from pydantic import BaseModel, Field

ANTHROPIC_API_BASE = "https://api.anthropic.com/v1"
GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_API_BASE = "https://api.openai.com/v1"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class ArmadaiConfig(BaseModel):
    # Backend endpoints
    anthropic_base_url: str = Field(default_factory=lambda: os.getenv("ANTHROPIC_BASE_URL", ANTHROPIC_API_BASE))
    google_base_url: str = Field(default_factory=lambda: os.getenv("GOOGLE_BASE_URL", GOOGLE_API_BASE))
    openai_base_url: str = Field(default_factory=lambda: os.getenv("OPENAI_BASE_URL", OPENAI_API_BASE))
    proxy_base_url: str | None = Field(default_factory=lambda: os.getenv("ARMADAI_PROXY_URL"))

    # Secrets file lookup (plain YAML, see credential_store)
    secrets_dir: str = Field(default_factory=lambda: os.getenv("ARMADAI_SECRETS_DIR", "config"))

    # Execution
    http_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("ARMADAI_HTTP_TIMEOUT_SECONDS", "120"))
    )
    cli_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("ARMADAI_CLI_TIMEOUT_SECONDS", "300"))
    )
    default_max_tokens: int = Field(default_factory=lambda: int(os.getenv("ARMADAI_DEFAULT_MAX_TOKENS", "4096")))

    # Observability
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "console"))
    enable_metrics: bool = Field(default_factory=lambda: _env_bool("ENABLE_METRICS", "false"))
    metrics_bind: str = Field(default_factory=lambda: os.getenv("METRICS_BIND", "127.0.0.1"))
    metrics_port: int = Field(default_factory=lambda: int(os.getenv("METRICS_PORT", "9109")))

    # Run history
    history_db: str = Field(default_factory=lambda: os.getenv("ARMADAI_HISTORY_DB", "data/armadai.db"))
    record_history: bool = Field(default_factory=lambda: _env_bool("ARMADAI_RECORD_HISTORY", "true"))
