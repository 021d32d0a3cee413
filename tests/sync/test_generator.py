"""Tests for SolutionGenerator."""

import asyncio
import json

import httpx
import pytest

from ssfu.llm import GeminiLLMClient, UnexpectedResponseError
from ssfu.signals import Signal
from ssfu.sync import (
    FALLBACK_ERROR,
    FALLBACK_UNEXPECTED,
    SolutionGenerator,
    build_prompt,
)

CONTRACTION = Signal(
    text="Se cayó el cliente",
    thought="no va a funcionar",
    feeling="miedo",
    body_sensation="nudo",
    id=1,
    user_id="u1",
)
EXPANSION = Signal(
    text="Llegó una resonancia",
    feeling="calma",
    id=2,
    user_id="u1",
)


class SlowLLM:
    async def complete(self, prompt: str, system: str | None = None) -> str:
        await asyncio.sleep(10)
        return "tarde"


def read_events(json_logger) -> list[dict]:
    if not json_logger.log_path.exists():
        return []
    with open(json_logger.log_path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_prompt_describes_both_signals():
    prompt = build_prompt(CONTRACTION, EXPANSION)
    assert "- Evento: Se cayó el cliente" in prompt
    assert "- Sensación Corporal: nudo" in prompt
    assert "- Evento: Llegó una resonancia" in prompt
    assert prompt.index("Contracción:") < prompt.index("Expansión (Resonancia):")
    assert "en español" in prompt


def test_prompt_renders_missing_fields_empty():
    prompt = build_prompt(CONTRACTION, Signal(text="resonancia"))
    assert "- Pensamiento: \n" in prompt
    assert "None" not in prompt


class TestGenerate:
    """Tests for generate()."""

    @pytest.mark.asyncio
    async def test_returns_model_text(self, llm_factory):
        llm = llm_factory(response="  Confía en la ayuda inesperada.\n")
        generator = SolutionGenerator(llm)

        solution = await generator.generate(CONTRACTION, EXPANSION)

        assert solution.text == "Confía en la ayuda inesperada."
        assert solution.ok
        assert len(llm.calls) == 1
        assert "no va a funcionar" in llm.calls[0]

    @pytest.mark.asyncio
    async def test_exception_falls_back(self, json_logger, llm_factory):
        generator = SolutionGenerator(llm_factory(error=RuntimeError("network down")))

        solution = await generator.generate(CONTRACTION, EXPANSION)

        assert solution.text == FALLBACK_ERROR
        assert not solution.ok
        (event,) = read_events(json_logger)
        assert event["event"] == "generator_error"
        assert event["error"] == "network down"
        assert event["user_id"] == "u1"
        assert event["extra"]["kind"] == "error"

    @pytest.mark.asyncio
    async def test_unexpected_response_falls_back(self, json_logger, llm_factory):
        generator = SolutionGenerator(llm_factory(error=UnexpectedResponseError("no candidates")))

        solution = await generator.generate(CONTRACTION, EXPANSION)

        assert solution.text == FALLBACK_UNEXPECTED
        assert not solution.ok
        assert read_events(json_logger)[0]["extra"]["kind"] == "unexpected"

    @pytest.mark.asyncio
    async def test_gemini_null_text_falls_back(self):
        body = {"candidates": [{"content": {"parts": [{"text": None}]}}]}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))

        async with httpx.AsyncClient(transport=transport) as http:
            generator = SolutionGenerator(GeminiLLMClient("k", http_client=http))
            solution = await generator.generate(CONTRACTION, EXPANSION)

        assert solution.text == FALLBACK_UNEXPECTED
        assert not solution.ok

    @pytest.mark.asyncio
    async def test_blank_text_falls_back(self, llm_factory):
        generator = SolutionGenerator(llm_factory(response="   "))

        solution = await generator.generate(CONTRACTION, EXPANSION)

        assert solution.text == FALLBACK_UNEXPECTED
        assert not solution.ok

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, json_logger):
        generator = SolutionGenerator(SlowLLM(), timeout=0.01)

        solution = await generator.generate(CONTRACTION, EXPANSION)

        assert solution.text == FALLBACK_ERROR
        assert read_events(json_logger)[0]["extra"]["kind"] == "timeout"

    @pytest.mark.asyncio
    async def test_uses_injected_logger(self, tmp_path, llm_factory):
        from ssfu.logging import JSONLLogger

        own = JSONLLogger(log_dir=tmp_path / "own")
        generator = SolutionGenerator(llm_factory(error=ValueError("x")), json_logger=own)

        await generator.generate(CONTRACTION, EXPANSION)

        assert read_events(own)[0]["event"] == "generator_error"
