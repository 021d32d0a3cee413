"""Tests for CLI."""

import pytest

from ssfu.cli import CLI, format_event
from ssfu.journal import Journal
from ssfu.session import IDLE_MESSAGE
from ssfu.signals import Category, SynchronizationEvent


@pytest.fixture
def cli(journal: Journal) -> CLI:
    return CLI(journal=journal, user_id="local")


def event(user_id: str = "local") -> SynchronizationEvent:
    return SynchronizationEvent(
        message=Category.PERSONAL.message,
        solution="Sigue la señal.",
        category=Category.PERSONAL,
        user_id=user_id,
    )


def test_new_user_id(journal: Journal) -> None:
    """Test user ID generation."""
    cli = CLI(journal=journal)
    assert cli.user_id.startswith("cli-")
    assert len(cli.user_id) == 12  # "cli-" + 8 hex chars


def test_format_event() -> None:
    text = format_event(event())
    assert "[PERSONAL]" in text
    assert "Solución: Sigue la señal." in text


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["/exit", "/quit", "exit", "QUIT"])
async def test_handle_command_exit(cli: CLI, command: str) -> None:
    """Test exit commands return False."""
    assert await cli._handle_command(command) is False


@pytest.mark.asyncio
async def test_handle_command_help(cli: CLI, capsys) -> None:
    assert await cli._handle_command("/help") is True
    assert "/history" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_unknown_command_continues(cli: CLI) -> None:
    assert await cli._handle_command("/unknown") is True


@pytest.mark.asyncio
async def test_list_empty(cli: CLI, capsys) -> None:
    await cli._handle_command("/list")
    assert "Aún no se han añadido señales" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_add_signal_then_list(cli: CLI, capsys) -> None:
    await cli._add_signal("Llamada inesperada; sentimiento: miedo; categoría: Financiero")
    assert "guardada (Financiero)" in capsys.readouterr().out

    await cli._handle_command("/list")
    out = capsys.readouterr().out
    assert "Llamada inesperada" in out
    assert "Sentimiento: miedo" in out


@pytest.mark.asyncio
async def test_add_invalid_signal(cli: CLI, capsys) -> None:
    await cli._add_signal("sentimiento: miedo")
    assert "❌" in capsys.readouterr().out
    assert cli.journal.signals("local") == []


@pytest.mark.asyncio
async def test_detection_is_printed(cli: CLI, capsys) -> None:
    await cli._add_signal("Se cayó el cliente; pensamiento: miedo")
    await cli._add_signal("Una resonancia; sentimiento: calma")
    await cli.journal.synchronizer.wait_idle("local")

    out = capsys.readouterr().out
    assert "[PERSONAL]" in out
    assert "Confía en el proceso." in out

    await cli._handle_command("/history")
    assert "Solución: Confía en el proceso." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_status(cli: CLI, capsys) -> None:
    await cli._handle_command("/status")
    assert IDLE_MESSAGE in capsys.readouterr().out


@pytest.mark.asyncio
async def test_clear(cli: CLI, capsys) -> None:
    await cli._add_signal("algo")
    await cli._handle_command("/clear")

    assert "eliminados" in capsys.readouterr().out
    assert cli.journal.signals("local") == []


def test_events_of_other_users_not_printed(cli: CLI, capsys) -> None:
    cli._on_event(event(user_id="someone-else"))
    assert capsys.readouterr().out == ""

    cli._on_event(event())
    assert "Sigue la señal." in capsys.readouterr().out
