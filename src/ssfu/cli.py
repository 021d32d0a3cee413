"""CLI interface for SSFU."""

import asyncio
import os
import uuid

from .config import SsfuConfig, apply_env, load_config
from .journal import Journal
from .logging import configure_logger, get_logger
from .signals import SignalParseError, format_signal, parse_draft
from .signals.models import SynchronizationEvent

BANNER = """
╔══════════════════════════════════════════╗
║              ✨ SSFU v0.1.0              ║
║   Señales y resonancias del universo     ║
╚══════════════════════════════════════════╝

Escribe una señal y pulsa Enter. Campos opcionales, una línea por campo
o separados por ';':
  Se cayó el cliente grande; pensamiento: no va a funcionar;
  sentimiento: miedo; sensación: nudo; categoría: Financiero

Commands:
  /list         - Show signals
  /history      - Show synchronization history
  /status       - Show synchronization status
  /clear        - Delete all signals and history
  /help         - Show this help
  /exit, /quit  - Exit the CLI
"""


def format_event(event: SynchronizationEvent) -> str:
    """Render a synchronization event for display."""
    return f"{event.message}\nSolución: {event.solution}"


class CLI:
    """Interactive command-line interface for the journal."""

    def __init__(
        self,
        journal: Journal | None = None,
        config: SsfuConfig | None = None,
        user_id: str | None = None,
    ) -> None:
        if journal is None:
            config = config or apply_env(load_config())
            journal = Journal.from_config(config)

        self.journal = journal
        self.user_id = user_id or self._new_user_id()
        self.logger = get_logger()
        self.journal.synchronizer.add_listener(self._on_event)

    def _new_user_id(self) -> str:
        """Generate a new user ID."""
        return f"cli-{uuid.uuid4().hex[:8]}"

    def _on_event(self, event: SynchronizationEvent) -> None:
        if event.user_id != self.user_id:
            return
        print("\n" + "─" * 40)
        print(format_event(event))
        print("─" * 40)

    def _format_signals(self) -> str:
        signals = self.journal.signals(self.user_id)
        if not signals:
            return "Aún no se han añadido señales. Intenta escribir una."
        return "\n\n".join(format_signal(s) for s in signals)

    def _format_history(self) -> str:
        history = self.journal.history(self.user_id)
        if not history:
            return "Sin sincronizaciones todavía."
        return "\n\n".join(format_event(e) for e in history)

    async def _add_signal(self, message: str) -> None:
        """Parse a message and store it as a signal."""
        try:
            draft = parse_draft(message)
        except SignalParseError as e:
            print(f"\n❌ {e}")
            return

        saved = await self.journal.add_signal(self.user_id, draft)
        if saved is None:
            print("\n❌ No se pudo guardar la señal.")
            return

        print(f"\n✓ Señal #{saved.id} guardada ({saved.category.value})")

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        cmd = command.lower().strip()

        if cmd in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 ¡Hasta luego!")
            self.logger.log("session_end", user_id=self.user_id)
            return False

        if cmd == "/list":
            print("\n" + self._format_signals())
            return True

        if cmd == "/history":
            print("\n" + self._format_history())
            return True

        if cmd == "/status":
            print("\n" + self.journal.state(self.user_id).status_text())
            return True

        if cmd == "/clear":
            if await self.journal.clear(self.user_id):
                print("\n✓ Señales e historial eliminados.")
            else:
                print("\n❌ No se pudo limpiar el diario.")
            return True

        if cmd == "/help":
            print(BANNER)
            return True

        return True  # Unknown command, continue

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        print(f"Usuario: {self.user_id}\n")

        self.journal.open_user(self.user_id)
        loop = asyncio.get_running_loop()

        try:
            while True:
                try:
                    # Keep the loop free so scheduled synchronizations can run
                    user_input = (await loop.run_in_executor(None, input, "señal> ")).strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._add_signal(user_input)

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    break

                except EOFError:
                    print("\n👋 ¡Hasta luego!")
                    break
        finally:
            await self.journal.synchronizer.wait_idle(self.user_id)
            await self.journal.close()


async def run_cli(user_id: str | None = None) -> None:
    """Run the CLI with configuration from disk and environment."""
    config = apply_env(load_config())
    configure_logger(log_dir=config.log_dir)

    api_key_var = "GEMINI_API_KEY" if config.llm_provider == "gemini" else "GROQ_API_KEY"
    if not os.getenv(api_key_var):
        print(f"❌ Error: {api_key_var} environment variable not set")
        print("Please set it in your .env file or environment")
        return

    cli = CLI(config=config, user_id=user_id or os.getenv("SSFU_USER_ID", "local"))
    await cli.run()
