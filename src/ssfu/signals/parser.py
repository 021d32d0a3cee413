"""Parser for signals written as free text.

A signal message is a set of lines. Lines of the form ``key: value`` fill
the matching field; any other line is part of the event text. A single
line may use ``;`` instead of newlines::

    Se cayó el cliente grande
    pensamiento: esto no va a funcionar
    sentimiento: miedo
    categoría: Financiero
"""

import re
import unicodedata

from .models import Category, Signal, SignalDraft


class SignalParseError(Exception):
    """Raised when a message cannot be turned into a signal."""

    pass


FIELD_ALIASES: dict[str, str] = {
    "evento": "text",
    "texto": "text",
    "senal": "text",
    "event": "text",
    "text": "text",
    "pensamiento": "thought",
    "thought": "thought",
    "sentimiento": "feeling",
    "feeling": "feeling",
    "sensacion": "body_sensation",
    "sensacion corporal": "body_sensation",
    "cuerpo": "body_sensation",
    "body": "body_sensation",
    "categoria": "category",
    "category": "category",
}

_KEY_LINE = re.compile(r"^\s*([^:]{1,30}?)\s*:\s*(.*)$")


def _normalize_key(key: str) -> str:
    """Lowercase and strip accents so 'Categoría' matches 'categoria'."""
    decomposed = unicodedata.normalize("NFKD", key.strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _split_lines(content: str) -> list[str]:
    """Split on newlines, or on ';' for single-line messages."""
    lines = content.splitlines()
    if len(lines) <= 1:
        lines = content.split(";")
    return [line.strip() for line in lines if line.strip()]


def parse_draft(content: str) -> SignalDraft:
    """Parse message content into a SignalDraft.

    Args:
        content: The raw message text.

    Returns:
        A draft with every recognized field filled.

    Raises:
        SignalParseError: If the category is unknown or the event text is empty.
    """
    draft = SignalDraft()
    text_parts: list[str] = []

    for line in _split_lines(content):
        match = _KEY_LINE.match(line)
        field = FIELD_ALIASES.get(_normalize_key(match.group(1))) if match else None

        if match is None or field is None:
            text_parts.append(line)
            continue

        value = match.group(2).strip()
        if field == "text":
            text_parts.append(value)
        elif field == "category":
            try:
                draft.category = Category.parse(value)
            except ValueError as e:
                raise SignalParseError(str(e)) from e
        else:
            setattr(draft, field, value)

    draft.text = " ".join(part for part in text_parts if part)

    if draft.is_empty():
        raise SignalParseError("A signal needs an event text")

    return draft


def parse_signal(content: str, user_id: str | None = None) -> Signal:
    """Parse message content into an unsaved Signal."""
    return parse_draft(content).to_signal(user_id)


def format_signal(signal: Signal) -> str:
    """Render a signal for display."""
    lines = [
        f"Categoría: {signal.category.value}",
        signal.text,
        f"Pensamiento: {signal.thought or 'N/A'}",
        f"Sentimiento: {signal.feeling or 'N/A'}",
        f"Sensación Corporal: {signal.body_sensation or 'N/A'}",
    ]
    if signal.timestamp:
        lines.append(signal.timestamp)
    return "\n".join(lines)
