"""Tests for LLMClient implementations."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ssfu.llm import (
    DEFAULT_GEMINI_MODEL,
    GeminiLLMClient,
    GroqLLMClient,
    UnexpectedResponseError,
    build_llm_client,
)


def groq_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestGroqLLMClient:
    """Tests for GroqLLMClient wrapper."""

    def test_default_model(self) -> None:
        client = GroqLLMClient(MagicMock())
        assert client.model == "llama-3.1-70b-versatile"

    @pytest.mark.asyncio
    async def test_complete_with_prompt_only(self) -> None:
        """Should call Groq with just the user prompt."""
        mock_groq = MagicMock()
        mock_groq.chat.completions.create = AsyncMock(return_value=groq_response("Confía"))

        client = GroqLLMClient(mock_groq, model="test-model")
        result = await client.complete("Hola")

        assert result == "Confía"
        mock_groq.chat.completions.create.assert_called_once_with(
            model="test-model",
            messages=[{"role": "user", "content": "Hola"}],
        )

    @pytest.mark.asyncio
    async def test_complete_with_system_prompt(self) -> None:
        mock_groq = MagicMock()
        mock_groq.chat.completions.create = AsyncMock(return_value=groq_response("ok"))

        client = GroqLLMClient(mock_groq)
        await client.complete("Hola", system="Eres breve")

        messages = mock_groq.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Eres breve"}
        assert messages[1] == {"role": "user", "content": "Hola"}

    @pytest.mark.asyncio
    async def test_none_content_is_empty(self) -> None:
        mock_groq = MagicMock()
        mock_groq.chat.completions.create = AsyncMock(return_value=groq_response(None))

        assert await GroqLLMClient(mock_groq).complete("Hola") == ""

    @pytest.mark.asyncio
    async def test_no_choices_raises(self) -> None:
        response = MagicMock()
        response.choices = []
        mock_groq = MagicMock()
        mock_groq.chat.completions.create = AsyncMock(return_value=response)

        with pytest.raises(UnexpectedResponseError):
            await GroqLLMClient(mock_groq).complete("Hola")


class TestGeminiLLMClient:
    """Tests for the Gemini REST client."""

    @pytest.mark.asyncio
    async def test_posts_prompt_and_reads_candidate(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": "Sigue adelante"}]}}]},
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GeminiLLMClient("secret", http_client=http)
            result = await client.complete("Hola")

        assert result == "Sigue adelante"
        (request,) = seen
        assert request.url.path.endswith(f"/{DEFAULT_GEMINI_MODEL}:generateContent")
        assert request.url.params["key"] == "secret"
        body = json.loads(request.content)
        assert body == {"contents": [{"role": "user", "parts": [{"text": "Hola"}]}]}

    @pytest.mark.asyncio
    async def test_system_instruction(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await GeminiLLMClient("k", http_client=http).complete("Hola", system="Breve")

        assert bodies[0]["systemInstruction"] == {"parts": [{"text": "Breve"}]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"candidates": []},
            {"candidates": [{"content": {}}]},
            {"candidates": None},
            {"candidates": [{"content": {"parts": [{"text": None}]}}]},
            {"candidates": [{"content": {"parts": [{"text": 42}]}}]},
        ],
    )
    async def test_unexpected_structure(self, body) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))

        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(UnexpectedResponseError):
                await GeminiLLMClient("k", http_client=http).complete("Hola")

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={}))

        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(httpx.HTTPStatusError):
                await GeminiLLMClient("k", http_client=http).complete("Hola")


class TestBuildLLMClient:
    def test_groq(self) -> None:
        client = build_llm_client("groq", api_key="test-key")
        assert isinstance(client, GroqLLMClient)

    def test_gemini_with_model(self) -> None:
        client = build_llm_client("Gemini", model="gemini-x", api_key="k")
        assert isinstance(client, GeminiLLMClient)
        assert client.model == "gemini-x"
        assert client.url.endswith("/gemini-x:generateContent")

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            build_llm_client("openai")
