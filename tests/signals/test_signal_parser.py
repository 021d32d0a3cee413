"""Tests for the signal message parser."""

import pytest

from ssfu.signals import (
    Category,
    Signal,
    SignalParseError,
    format_signal,
    parse_draft,
    parse_signal,
)


class TestParseDraft:
    """Tests for parse_draft."""

    def test_plain_text(self):
        draft = parse_draft("Hoy llovió")
        assert draft.text == "Hoy llovió"
        assert draft.thought == ""
        assert draft.category is Category.PERSONAL

    def test_all_fields_multiline(self):
        draft = parse_draft(
            "Se cayó el cliente grande\n"
            "pensamiento: esto no va a funcionar\n"
            "sentimiento: miedo\n"
            "sensación: nudo en el estómago\n"
            "categoría: Financiero"
        )
        assert draft.text == "Se cayó el cliente grande"
        assert draft.thought == "esto no va a funcionar"
        assert draft.feeling == "miedo"
        assert draft.body_sensation == "nudo en el estómago"
        assert draft.category is Category.FINANCIAL

    def test_semicolon_separated(self):
        draft = parse_draft("Llamada inesperada; sentimiento: calma; categoria: personal")
        assert draft.text == "Llamada inesperada"
        assert draft.feeling == "calma"
        assert draft.category is Category.PERSONAL

    def test_keys_ignore_case_and_accents(self):
        draft = parse_draft("algo\nSENSACIÓN CORPORAL: calor\nPensamiento: ok")
        assert draft.body_sensation == "calor"
        assert draft.thought == "ok"

    def test_english_aliases(self):
        draft = parse_draft("event: a call\nfeeling: calm\ncategory: financial")
        assert draft.text == "a call"
        assert draft.feeling == "calm"
        assert draft.category is Category.FINANCIAL

    def test_unknown_key_is_event_text(self):
        draft = parse_draft("Nota: algo raro pasó\nsentimiento: miedo")
        assert draft.text == "Nota: algo raro pasó"

    def test_text_lines_are_joined(self):
        draft = parse_draft("primera parte\nsentimiento: calma\nsegunda parte")
        assert draft.text == "primera parte segunda parte"

    def test_unknown_category_raises(self):
        with pytest.raises(SignalParseError, match="Unknown category"):
            parse_draft("algo\ncategoría: Salud")

    def test_empty_text_raises(self):
        with pytest.raises(SignalParseError):
            parse_draft("sentimiento: miedo\npensamiento: nada")

    def test_blank_message_raises(self):
        with pytest.raises(SignalParseError):
            parse_draft("   ")


def test_parse_signal_sets_owner():
    signal = parse_signal("evento; sentimiento: calma", user_id="u1")
    assert isinstance(signal, Signal)
    assert signal.user_id == "u1"
    assert signal.feeling == "calma"


class TestFormatSignal:
    def test_missing_fields_show_na(self):
        text = format_signal(Signal(text="evento"))
        assert "Categoría: Personal" in text
        assert "Pensamiento: N/A" in text
        assert "Sentimiento: N/A" in text
        assert "Sensación Corporal: N/A" in text

    def test_includes_values(self):
        text = format_signal(
            Signal(text="evento", feeling="calma", timestamp="2024-01-01T10:00:00.000Z")
        )
        assert "Sentimiento: calma" in text
        assert "2024-01-01T10:00:00.000Z" in text
