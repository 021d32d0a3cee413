"""Shared fixtures."""

from pathlib import Path

import pytest

import ssfu.logging as ssfu_logging
from ssfu.journal import Journal
from ssfu.logging import JSONLLogger
from ssfu.session import SessionManager
from ssfu.signals import JournalDatabase
from ssfu.sync import SolutionGenerator, SyncConfig, Synchronizer


@pytest.fixture(autouse=True)
def json_logger(tmp_path: Path, monkeypatch) -> JSONLLogger:
    """Route the global JSONL logger to a temporary directory."""
    logger = JSONLLogger(log_dir=tmp_path / "logs")
    monkeypatch.setattr(ssfu_logging, "_logger", logger)
    return logger


class FakeLLM:
    """LLMClient that records prompts and answers with a fixed text."""

    def __init__(self, response: str = "Confía en el proceso.", error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[str] = []

    async def complete(self, prompt: str, system: str | None = None) -> str:
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def llm_factory() -> type[FakeLLM]:
    """The FakeLLM class, for tests that need a custom response or error."""
    return FakeLLM


@pytest.fixture
def journal(tmp_path: Path, fake_llm: FakeLLM) -> Journal:
    """Journal on a temporary database that evaluates without delay."""
    db = JournalDatabase(tmp_path / "journal.db")
    db.init_db()
    sessions = SessionManager()
    synchronizer = Synchronizer(
        db.history,
        SolutionGenerator(fake_llm),
        sessions,
        config=SyncConfig(delay_seconds=0),
    )
    yield Journal(db, synchronizer, sessions)
    db.close()
