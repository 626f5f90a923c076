"""
Unit tests for the Gemini client and the adapters built on it.
"""

import json

import pytest
import pytest_asyncio
from httpx import Request, Response, TimeoutException

from lingua.generation.synthesizer import GeminiSynthesizer, SynthesisError, SynthesisRequest
from lingua.integrations.gemini_client import GeminiClient, GeminiError, GeminiRequest, parse_json_reply
from lingua.marking.judge import GeminiJudge, JudgmentError, JudgmentRequest, JudgmentVerdict


def gemini_reply(payload, wrap=False):
    """Build a generateContent response body carrying payload as text."""
    text = json.dumps(payload)
    if wrap:
        text = f"Here you go:\n```json\n{text}\n```"
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest_asyncio.fixture
async def client():
    """Gemini client instance."""
    client = GeminiClient(api_key="test-key", model="gemini-test", base_url="https://gemini.test/v1beta/")
    yield client
    await client.close()


class TestGeminiRequest:
    """Tests for GeminiRequest dataclass."""

    def test_to_dict(self):
        """JSON mode and response schema go into generationConfig."""
        data = GeminiRequest(prompt="Hallo", response_schema={"type": "OBJECT"}, temperature=0.2).to_dict()

        assert data["contents"][0]["parts"][0]["text"] == "Hallo"
        config = data["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"] == {"type": "OBJECT"}
        assert config["temperature"] == 0.2


class TestParseJsonReply:
    def test_plain_object(self):
        assert parse_json_reply('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert parse_json_reply('Sure!\n```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_no_object(self):
        with pytest.raises(GeminiError):
            parse_json_reply("I cannot help with that.")

    def test_array_rejected(self):
        with pytest.raises(GeminiError):
            parse_json_reply("```json\n[1, 2]\n```")


class TestGeminiClient:
    """Tests for GeminiClient class."""

    @pytest.mark.asyncio
    async def test_generate_json_success(self, client, monkeypatch):
        """Request hits the model endpoint and the reply text is parsed."""
        seen = {}

        async def mock_post(url, **kwargs):
            seen["url"] = url
            seen["params"] = kwargs.get("params")
            return Response(200, json=gemini_reply({"score": 80}, wrap=True), request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)

        result = await client.generate_json(GeminiRequest(prompt="x"))

        assert result == {"score": 80}
        assert seen["url"] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
        assert seen["params"] == {"key": "test-key"}

    @pytest.mark.asyncio
    async def test_server_error(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(503, json={"error": "overloaded"}, request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(GeminiError, match="503"):
            await client.generate_json(GeminiRequest(prompt="x"))

    @pytest.mark.asyncio
    async def test_timeout(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            raise TimeoutException("Timeout")

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(GeminiError, match="timed out"):
            await client.generate_json(GeminiRequest(prompt="x"))

    @pytest.mark.asyncio
    async def test_blocked_prompt(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            body = {"promptFeedback": {"blockReason": "SAFETY"}}
            return Response(200, json=body, request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(GeminiError, match="SAFETY"):
            await client.generate_json(GeminiRequest(prompt="x"))

    @pytest.mark.asyncio
    async def test_non_json_body(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(
                200,
                text="<html>proxy error</html>",
                headers={"content-type": "text/html"},
                request=Request("POST", url),
            )

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(GeminiError, match="not JSON"):
            await client.generate_json(GeminiRequest(prompt="x"))

        with pytest.raises(SynthesisError):
            await GeminiSynthesizer(client).synthesize(
                SynthesisRequest(prompt="p", response_schema={}, schema_id="true-false")
            )

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        client = GeminiClient(api_key="", model="gemini-test")
        try:
            with pytest.raises(GeminiError, match="not configured"):
                await client.generate_json(GeminiRequest(prompt="x"))
        finally:
            await client.close()


class TestAdapters:
    """Synthesizer and judge wrap client errors in their own types."""

    @pytest.mark.asyncio
    async def test_synthesizer_returns_payload(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            assert kwargs["json"]["generationConfig"]["responseSchema"] == {"type": "OBJECT"}
            return Response(200, json=gemini_reply({"statement": "x"}), request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)
        synthesizer = GeminiSynthesizer(client)

        payload = await synthesizer.synthesize(
            SynthesisRequest(prompt="p", response_schema={"type": "OBJECT"}, schema_id="true-false")
        )

        assert payload == {"statement": "x"}

    @pytest.mark.asyncio
    async def test_synthesizer_error(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            raise TimeoutException("Timeout")

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(SynthesisError):
            await GeminiSynthesizer(client).synthesize(
                SynthesisRequest(prompt="p", response_schema={}, schema_id="true-false")
            )

    @pytest.mark.asyncio
    async def test_judge_parses_verdict(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            assert kwargs["json"]["generationConfig"]["temperature"] == 0.0
            verdict = {"isCorrect": True, "score": 140, "feedback": " Gut ", "correctAnswer": "Ich bin"}
            return Response(200, json=gemini_reply(verdict), request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)

        verdict = await GeminiJudge(client).judge(JudgmentRequest(prompt="p", answer="a"))

        assert verdict == JudgmentVerdict(score=100, is_correct=True, rationale="Gut", correct_answer="Ich bin")

    @pytest.mark.asyncio
    async def test_judge_rejects_verdict_without_score(self, client, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(200, json=gemini_reply({"is_correct": True}), request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(JudgmentError):
            await GeminiJudge(client).judge(JudgmentRequest(prompt="p", answer="a"))
