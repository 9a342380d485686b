from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml

log = structlog.get_logger()

SECRETS_FILENAME = "providers.secret.yaml"


class SecretsStore(Protocol):
    def api_key(self, provider: str) -> str | None: ...


@dataclass(frozen=True)
class ProviderCredentials:
    api_key: str
    org_id: str | None = None


class FileSecretsStore:
    """
    Plain YAML credential file, read lazily on first lookup:

        providers:
          anthropic:
            api_key: sk-...
    """

    def __init__(self, config_dir: str | Path):
        self.path = Path(config_dir) / SECRETS_FILENAME
        self._providers: dict[str, ProviderCredentials] | None = None

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> dict[str, ProviderCredentials]:
        raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path} must contain a mapping.")
        providers: dict[str, Any] = raw.get("providers") or {}
        out: dict[str, ProviderCredentials] = {}
        for name, entry in providers.items():
            if isinstance(entry, dict) and entry.get("api_key"):
                out[str(name)] = ProviderCredentials(api_key=str(entry["api_key"]), org_id=entry.get("org_id"))
        log.warning("secrets_loaded_unencrypted", path=str(self.path))
        return out

    def api_key(self, provider: str) -> str | None:
        if self._providers is None:
            self._providers = self.load() if self.exists() else {}
        creds = self._providers.get(provider)
        return creds.api_key if creds else None
