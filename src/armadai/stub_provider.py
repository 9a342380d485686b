from __future__ import annotations

from .contracts import CompletionRequest, CompletionResponse, ProviderMetadata, TextChunks
from .errors import UnsupportedFeatureError


class StubProvider:
    """Placeholder for a declared backend whose wire protocol is not implemented yet."""

    def __init__(self, name: str, *, base_url: str | None = None, api_key: str | None = None, models: tuple[str, ...] = ()):
        self.name = name
        self.base_url = base_url
        self.api_key = api_key
        self._models = models

    def metadata(self) -> ProviderMetadata:
        return ProviderMetadata(name=self.name, models=self._models, supports_streaming=False)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        raise UnsupportedFeatureError(f"Provider {self.name!r} is not yet implemented")

    async def stream(self, request: CompletionRequest) -> TextChunks:
        raise UnsupportedFeatureError(f"Provider {self.name!r} is not yet implemented")
