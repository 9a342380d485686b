from __future__ import annotations

import logging
import re
import sys
from collections.abc import Callable, Mapping, MutableMapping
from typing import Any, TypeAlias, cast

import structlog


_SENSITIVE_KEYS = {
    "authorization",
    "x-api-key",
    "x-goog-api-key",
    "api_key",
    "apikey",
    "credentials",
    "key",
}

# Substring matches against lower-cased keys.
_SENSITIVE_FRAGMENTS = ("api_key", "apikey", "secret", "password")

# Google's generate-content endpoints carry the credential in the query string.
_QUERY_KEY_RE = re.compile(r"([?&]key=)[^&\s]+")

ProcessorReturn: TypeAlias = Mapping[str, Any] | str | bytes | bytearray | tuple[Any, ...]
Processor: TypeAlias = Callable[[Any, str, MutableMapping[str, Any]], ProcessorReturn]


def redact_text(value: str, *, secrets: list[str]) -> str:
    out = value
    for secret in secrets:
        if secret and secret in out:
            out = out.replace(secret, "[REDACTED]")
    return _QUERY_KEY_RE.sub(r"\1[REDACTED]", out)


def _is_sensitive_key(key: Any) -> bool:
    name = str(key).lower()
    return name in _SENSITIVE_KEYS or any(fragment in name for fragment in _SENSITIVE_FRAGMENTS)


def _redact(obj: Any, *, secrets: list[str]) -> Any:
    if isinstance(obj, str):
        return redact_text(obj, secrets=secrets)
    if isinstance(obj, (list, tuple)):
        return type(obj)(_redact(v, secrets=secrets) for v in obj)
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if _is_sensitive_key(k) else _redact(v, secrets=secrets) for k, v in obj.items()
        }
    if isinstance(obj, BaseException):
        return redact_text(str(obj), secrets=secrets)
    return obj


def _make_redaction_processor(*, secrets: list[str]) -> Processor:
    # `secrets` is read on every event so keys resolved after setup are still redacted.
    def _processor(_logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> ProcessorReturn:
        known = [s for s in secrets if isinstance(s, str) and s]
        return cast(dict[str, Any], _redact(dict(event_dict), secrets=known))

    return _processor


def configure_logging(level: str = "INFO", fmt: str = "console", *, secrets: list[str] | None = None) -> None:
    """Route structlog output to stderr so stdout only carries chain results."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, stream=sys.stderr)

    processors: list[Processor] = [
        cast(Processor, structlog.contextvars.merge_contextvars),
        cast(Processor, structlog.processors.add_log_level),
        cast(Processor, structlog.processors.TimeStamper(fmt="iso")),
    ]

    if secrets is not None:
        processors.append(_make_redaction_processor(secrets=secrets))

    if fmt == "json":
        processors.append(cast(Processor, structlog.processors.JSONRenderer()))
    else:
        processors.append(cast(Processor, structlog.dev.ConsoleRenderer(colors=False)))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
