"""Telegram bot integration for SSFU."""

import logging
import os

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..config import SsfuConfig, apply_env, load_config
from ..journal import Journal
from ..logging import get_logger
from ..signals import SignalParseError, format_signal, parse_draft
from ..signals.models import SynchronizationEvent

logger = logging.getLogger(__name__)


WELCOME_MESSAGE = """
✨ *SSFU*

Captura las señales y resonancias del universo para encontrar la sincronización.

*Comandos disponibles:*
/start - Mostrar este mensaje
/senales - Ver tus señales
/historial - Ver el historial de sincronización
/estado - Estado de la sincronización
/limpiar - Borrar señales e historial

*Cómo añadir una señal:*
Escribe el evento en la primera línea y, si quieres, añade:
pensamiento: ...
sentimiento: ...
sensación: ...
categoría: Personal o Financiero
"""

MAX_MESSAGE_LENGTH = 4096


def truncate_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Cut text to Telegram's message size limit."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 20] + "\n... [truncado]"


def format_event(event: SynchronizationEvent) -> str:
    """Format a synchronization event for Telegram."""
    return truncate_message(f"🔮 {event.message}\n\n💡 Solución: {event.solution}")


class TelegramBot:
    """Telegram bot for SSFU. Each chat is one journal user."""

    def __init__(
        self,
        token: str | None = None,
        config: SsfuConfig | None = None,
        journal: Journal | None = None,
    ) -> None:
        self.token = token or os.getenv("TELEGRAM_TOKEN")
        if not self.token:
            raise ValueError("TELEGRAM_TOKEN not set")

        if journal is None:
            journal = Journal.from_config(config or apply_env(load_config()))

        self.journal = journal
        self.journal.synchronizer.add_listener(self._on_event)
        self.json_logger = get_logger()
        self._app: Application | None = None

    def _get_user_id(self, update: Update) -> str:
        assert update.effective_chat is not None
        return str(update.effective_chat.id)

    async def _on_event(self, event: SynchronizationEvent) -> None:
        """Push an emitted synchronization to its chat."""
        if self._app is None or event.user_id is None:
            return
        await self._app.bot.send_message(chat_id=event.user_id, text=format_event(event))

    async def _handle_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Open the chat's journal and show the help text."""
        assert update.message is not None
        user_id = self._get_user_id(update)

        self.journal.open_user(user_id)
        self.json_logger.log("telegram_start", user_id=user_id)

        await update.message.reply_text(
            WELCOME_MESSAGE,
            parse_mode=ParseMode.MARKDOWN,
        )

    async def _handle_signals(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /senales command."""
        assert update.message is not None
        user_id = self._get_user_id(update)

        signals = self.journal.signals(user_id)
        if not signals:
            await update.message.reply_text(
                "Aún no se han añadido señales. Intenta escribir una."
            )
            return

        text = "\n\n".join(format_signal(s) for s in signals)
        await update.message.reply_text(truncate_message(text))

    async def _handle_history(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /historial command."""
        assert update.message is not None
        user_id = self._get_user_id(update)

        history = self.journal.history(user_id)
        if not history:
            await update.message.reply_text("Sin sincronizaciones todavía.")
            return

        text = "\n\n".join(format_event(e) for e in history)
        await update.message.reply_text(truncate_message(text))

    async def _handle_status(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /estado command."""
        assert update.message is not None
        user_id = self._get_user_id(update)

        state = self.journal.state(user_id)
        await update.message.reply_text(state.status_text())

    async def _handle_clear(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /limpiar command."""
        assert update.message is not None
        user_id = self._get_user_id(update)

        if await self.journal.clear(user_id):
            self.json_logger.log("telegram_clear", user_id=user_id)
            await update.message.reply_text("✨ Señales e historial eliminados.")
        else:
            await update.message.reply_text("❌ No se pudo limpiar. Intenta de nuevo.")

    async def _handle_message(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle incoming messages: each one is a new signal."""
        assert update.message is not None
        assert update.message.text is not None

        user_id = self._get_user_id(update)
        sessions = self.journal.sessions

        acquired, error = sessions.try_acquire(user_id)
        if not acquired:
            await update.message.reply_text(error or "Ocupado")
            return

        try:
            self.json_logger.log(
                "telegram_message",
                user_id=user_id,
                message_length=len(update.message.text),
            )

            try:
                draft = parse_draft(update.message.text)
            except SignalParseError as e:
                await update.message.reply_text(f"❌ {e}")
                return

            saved = await self.journal.add_signal(user_id, draft)
            if saved is None:
                await update.message.reply_text("❌ No se pudo guardar la señal.")
                return

            await update.message.reply_text(
                f"✓ Señal guardada en {saved.category.value}."
            )

        except Exception as e:
            logger.exception("Error processing message")
            self.json_logger.log("telegram_error", user_id=user_id, error=str(e))
            await update.message.reply_text(f"❌ Error: {e}")

        finally:
            sessions.release(user_id)

    async def _post_shutdown(self, application: Application) -> None:
        """Close the journal once polling has stopped."""
        await self.journal.close()

    def build_app(self) -> Application:
        """Create the application and register the journal handlers."""
        self._app = (
            Application.builder()
            .token(self.token)
            .post_shutdown(self._post_shutdown)
            .build()
        )

        # Add handlers
        self._app.add_handler(CommandHandler("start", self._handle_start))
        self._app.add_handler(CommandHandler("senales", self._handle_signals))
        self._app.add_handler(CommandHandler("historial", self._handle_history))
        self._app.add_handler(CommandHandler("estado", self._handle_status))
        self._app.add_handler(CommandHandler("limpiar", self._handle_clear))
        self._app.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, self._handle_message)
        )

        return self._app

    def run(self) -> None:
        """Poll for updates until interrupted."""
        app = self.build_app()

        logger.info("Starting Telegram bot...")
        app.run_polling()
