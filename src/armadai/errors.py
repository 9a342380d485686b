from __future__ import annotations

from collections.abc import Iterable


class ProviderError(Exception):
    """Base error for agent execution failures."""


class ConfigurationError(ProviderError):
    pass


class UnknownProviderError(ConfigurationError):
    def __init__(self, name: str, known: Iterable[str]):
        self.name = name
        self.known = sorted(known)
        super().__init__(f"Unknown provider: {name!r} (known providers: {', '.join(self.known)})")


class AgentNotFoundError(ConfigurationError):
    pass


class AuthenticationError(ProviderError):
    pass


class RateLimitError(ProviderError):
    def __init__(self, retry_after_seconds: int | None = None, message: str = "Rate limited"):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class UpstreamHTTPError(ProviderError):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class UpstreamConnectionError(ProviderError):
    """The request never produced an HTTP response."""


class UpstreamProtocolError(ProviderError):
    """Unexpected upstream response shape / contract mismatch."""


class RequestTimeoutError(ProviderError):
    """Backend call exceeded its deadline."""


class CommandError(ProviderError):
    """A CLI backend could not be spawned or exited non-zero."""


class UnsupportedFeatureError(ProviderError):
    """Backend is declared but not implemented."""


def is_model_not_found(exc: BaseException) -> bool:
    """Heuristic: does this error mean the requested model does not exist?

    Vendors disagree on structured codes, so this inspects the message text.
    """
    text = str(exc).lower()
    if "404" in text and "not found" in text:
        return True
    return "model" in text and ("not_found" in text or "invalid" in text)
