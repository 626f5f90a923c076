"""
Gemini REST client.

Thin async wrapper around the generateContent endpoint that requests JSON
output constrained by a response schema. Used by both the content
synthesizer and the free-form judgment assistant.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger


class GeminiError(Exception):
    """Transport failure or unusable reply from Gemini."""


@dataclass
class GeminiRequest:
    """Request payload for a JSON-mode generateContent call."""

    prompt: str
    response_schema: dict[str, Any] | None = None
    temperature: float = 0.7
    max_output_tokens: int = 2048
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "responseMimeType": "application/json",
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
        }
        if self.response_schema:
            generation_config["responseSchema"] = self.response_schema
        return {
            "contents": [{"role": "user", "parts": [{"text": self.prompt}]}],
            "generationConfig": generation_config,
            **self.extra,
        }


class GeminiClient:
    """HTTP client for the Gemini generateContent API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_seconds: float = 30.0,
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name, e.g. gemini-2.0-flash
            base_url: REST API base URL
            timeout_seconds: Per-request HTTP timeout
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def generate_json(self, request: GeminiRequest) -> dict[str, Any]:
        """
        Run one generateContent call and parse the JSON object it returns.

        Raises:
            GeminiError: On transport failure, non-2xx status, or a reply
                without a parseable JSON object.
        """
        if not self.api_key:
            raise GeminiError("Gemini API key is not configured")

        try:
            response = await self.client.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json=request.to_dict(),
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning(f"Gemini timeout: {e}")
            raise GeminiError(f"Gemini request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Gemini returned status {e.response.status_code}")
            raise GeminiError(f"Gemini returned status {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.warning(f"Gemini request error: {e}")
            raise GeminiError(f"Gemini request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Gemini returned a non-JSON body ({response.headers.get('content-type')})")
            raise GeminiError(f"Gemini reply is not JSON: {e}") from e
        return parse_json_reply(_extract_text(data))


def _extract_text(data: dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        reason = data.get("promptFeedback", {}).get("blockReason") if isinstance(data, dict) else None
        raise GeminiError(f"Gemini reply has no content (block reason: {reason})") from e
    text = "".join(part.get("text", "") for part in parts)
    if not text.strip():
        raise GeminiError("Empty response from Gemini")
    return text


def parse_json_reply(text: str) -> dict[str, Any]:
    """Extract a JSON object from raw model text, tolerating code fences."""
    code_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if code_match:
        json_str = code_match.group(1).strip()
    else:
        json_match = re.search(r"\{[\s\S]*\}", text)
        if not json_match:
            raise GeminiError("No JSON object found in Gemini reply")
        json_str = json_match.group(0)

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise GeminiError(f"JSON parse error: {e}") from e
    if not isinstance(data, dict):
        raise GeminiError(f"Expected a JSON object, got {type(data).__name__}")
    return data
