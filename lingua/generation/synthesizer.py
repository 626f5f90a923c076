"""
Content synthesizer interface and the Gemini-backed implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from config import Settings
from lingua.integrations.gemini_client import GeminiClient, GeminiError, GeminiRequest


class SynthesisError(Exception):
    """The synthesizer could not produce a payload."""


@dataclass(frozen=True)
class SynthesisRequest:
    prompt: str
    response_schema: dict[str, Any]
    schema_id: str


class ContentSynthesizer(Protocol):
    async def synthesize(self, request: SynthesisRequest) -> dict[str, Any]:
        """Return a payload shaped like request.response_schema or raise SynthesisError."""
        ...


class GeminiSynthesizer:
    """ContentSynthesizer backed by Gemini JSON mode."""

    def __init__(self, client: GeminiClient, temperature: float = 0.7):
        self.client = client
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings) -> GeminiSynthesizer:
        client = GeminiClient(
            api_key=settings.gemini_api_key,
            model=settings.ai_model,
            base_url=settings.gemini_base_url,
            timeout_seconds=settings.synthesis_timeout_seconds,
        )
        return cls(client, temperature=settings.synthesis_temperature)

    async def synthesize(self, request: SynthesisRequest) -> dict[str, Any]:
        try:
            return await self.client.generate_json(
                GeminiRequest(
                    prompt=request.prompt,
                    response_schema=request.response_schema,
                    temperature=self.temperature,
                )
            )
        except GeminiError as e:
            raise SynthesisError(str(e)) from e

    async def close(self) -> None:
        await self.client.close()
