"""
Unit tests for the derivation engine: parsing, fallbacks and call ordering.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from companion.core import prompts
from companion.core.derivation import (
    DerivationEngine,
    build_transcript,
    clean_title,
    fallback_title,
    parse_questions,
    parse_themes,
)
from companion.llm.base import LLMProvider, LLMResponse
from companion.models.session import ChatMessage, TherapySession

from conftest import FakeClock, make_messages

DATE = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def provider_with(*replies):
    """Provider mock answering the prompts in order; Exceptions are raised."""
    provider = AsyncMock(spec=LLMProvider)
    provider.generate_content.side_effect = [
        reply if isinstance(reply, Exception) else LLMResponse(content=reply, model="gemini")
        for reply in replies
    ]
    return provider


def sent_prompts(provider):
    return [c.args[0] for c in provider.generate_content.call_args_list]


class TestParsing:

    def test_transcript_labels_roles(self):
        transcript = build_transcript(make_messages(("user", "Hoi"), ("assistant", "Hallo!")))
        assert transcript == "Gebruiker: Hoi\n\nAssistent: Hallo!"

    def test_themes_split_trim_and_cap(self):
        assert parse_themes(" Acceptatie, waarden ,\"defusie\", mindfulness, emoties.") == [
            "acceptatie", "waarden", "defusie", "mindfulness",
        ]

    def test_themes_drop_empty_and_duplicates(self):
        assert parse_themes("waarden,, waarden,\nactie") == ["waarden", "actie"]

    def test_questions_strip_numbering_and_blank_lines(self):
        text = "1. Wat wil ik echt?\n\n- Wat houdt me tegen?\n3) Wat is mijn volgende stap?\nExtra vraag?"
        assert parse_questions(text) == [
            "Wat wil ik echt?",
            "Wat houdt me tegen?",
            "Wat is mijn volgende stap?",
        ]

    def test_clean_title_strips_quotes(self):
        assert clean_title('"Ruimte voor onrust"') == "Ruimte voor onrust"
        assert clean_title("Titel: „Zachtheid”") == "Zachtheid"

    def test_clean_title_truncates_to_thirty(self):
        title = clean_title("Een veel te lange titel voor deze sessie vandaag")
        assert len(title) <= 30
        assert title.endswith("...")


class TestFallbackTitle:

    def test_short_first_user_message_used_verbatim(self):
        messages = make_messages(("assistant", "Welkom"), ("user", "Ik voel me vandaag gespannen"))
        assert fallback_title(messages, DATE) == "Ik voel me vandaag gespannen"

    def test_first_sentence_when_message_too_long(self):
        messages = make_messages(("user", "Ik voel me erg gespannen. Het werk wordt me echt te veel."))
        assert fallback_title(messages, DATE) == "Ik voel me erg gespannen"

    def test_first_words_when_sentence_too_long(self):
        messages = make_messages((
            "user",
            "Sinds mijn verhuizing naar de andere kant van het land voel ik me eenzaam",
        ))
        assert fallback_title(messages, DATE) == "Sinds mijn verhuizing naar de..."

    def test_date_title_without_user_message(self):
        messages = make_messages(("assistant", "Welkom"), ("user", "   "))
        assert fallback_title(messages, DATE) == "Gesprek op 19 oktober 2026"


class TestDerivationEngine:

    @pytest.mark.asyncio
    async def test_short_transcript_uses_detailed_prompt(self):
        provider = provider_with("  Een korte samenvatting.  ")
        engine = DerivationEngine(provider)
        assert await engine.summarize("Gebruiker: Hoi") == "Een korte samenvatting."
        assert "3 tot 4 zinnen" in sent_prompts(provider)[0]

    @pytest.mark.asyncio
    async def test_long_transcript_uses_concise_prompt(self):
        provider = provider_with("Samenvatting.")
        engine = DerivationEngine(provider)
        await engine.summarize("x" * (prompts.SUMMARY_LENGTH_THRESHOLD + 1))
        assert "maximaal 2 zinnen" in sent_prompts(provider)[0]

    @pytest.mark.asyncio
    async def test_summary_fallback_on_error(self):
        engine = DerivationEngine(provider_with(RuntimeError("quota")))
        assert await engine.summarize("Gebruiker: Hoi") == prompts.FALLBACK_SUMMARY

    @pytest.mark.asyncio
    async def test_summary_fallback_on_empty_reply(self):
        engine = DerivationEngine(provider_with("   "))
        assert await engine.summarize("Gebruiker: Hoi") == prompts.FALLBACK_SUMMARY

    @pytest.mark.asyncio
    async def test_theme_prompt_lists_vocabulary(self):
        provider = provider_with("waarden, acceptatie")
        engine = DerivationEngine(provider)
        assert await engine.extract_themes("Gebruiker: Hoi") == ["waarden", "acceptatie"]
        for theme in prompts.ACT_THEMES:
            assert theme in sent_prompts(provider)[0]

    @pytest.mark.asyncio
    async def test_theme_extraction_failure_returns_empty(self):
        engine = DerivationEngine(provider_with(RuntimeError("boom")))
        assert await engine.extract_themes("Gebruiker: Hoi") == []

    @pytest.mark.asyncio
    async def test_questions_padded_with_time_based_and_generic(self):
        clock = FakeClock()
        engine = DerivationEngine(provider_with("Wat wil ik echt?"), clock=clock)
        questions = await engine.generate_reflective_questions("Gebruiker: Hoi", ["emoties"])
        assert questions == [
            "Wat wil ik echt?",
            prompts.time_based_question(clock()),
            prompts.FILLER_QUESTIONS[0],
        ]

    @pytest.mark.asyncio
    async def test_theme_questions_pad_first(self):
        engine = DerivationEngine(provider_with("Wat wil ik echt?"), clock=FakeClock())
        questions = await engine.generate_reflective_questions(
            "Gebruiker: Hoi", ["gedachten", "acceptatie", "waarden"]
        )
        assert questions == [
            "Wat wil ik echt?",
            "Welke kleine actie kun je nemen die in lijn is met je waarden?",
            "Welk moeilijk gevoel kun je vandaag met meer zachtheid observeren?",
        ]

    def test_theme_question_table(self):
        assert prompts.theme_questions(["perspectief"]) == [
            "Hoe zou je situatie eruit zien als je het vanuit een afstand kon bekijken?"
        ]
        assert prompts.theme_questions(["defusie", "gedachten"]) == [
            "Welke gedachte kun je vandaag wat losser vasthouden?"
        ]
        assert prompts.theme_questions([]) == []

    @pytest.mark.asyncio
    async def test_questions_failure_returns_defaults(self):
        engine = DerivationEngine(provider_with(RuntimeError("boom")))
        questions = await engine.generate_reflective_questions("Gebruiker: Hoi", [])
        assert questions == prompts.DEFAULT_REFLECTIVE_QUESTIONS

    @pytest.mark.asyncio
    async def test_title_prompt_context_is_capped(self):
        provider = provider_with("Rust in onrust")
        engine = DerivationEngine(provider)
        transcript = "y" * (prompts.TITLE_CONTEXT_CHARS + 500)
        title = await engine.generate_title("Samenvatting", transcript, [], DATE)
        assert title == "Rust in onrust"
        assert "y" * (prompts.TITLE_CONTEXT_CHARS + 1) not in sent_prompts(provider)[0]

    @pytest.mark.asyncio
    async def test_title_failure_falls_back_to_first_sentence(self):
        engine = DerivationEngine(provider_with(RuntimeError("boom")))
        messages = make_messages(("user", "Ik voel me erg gespannen. Het werk wordt me te veel."))
        title = await engine.generate_title("s", build_transcript(messages), messages, DATE)
        assert title == "Ik voel me erg gespannen"

    @pytest.mark.asyncio
    async def test_generate_summary_order_and_content(self):
        clock = FakeClock(DATE.replace(minute=25))
        provider = provider_with(
            "Gebruiker verkende spanning op het werk.",
            "acceptatie, waarden, defusie, actie, emoties",
            "Wat vraagt mijn spanning van mij?\nWat is belangrijk voor mij?\nWelke stap zet ik?",
            "'Spanning en waarden'",
        )
        engine = DerivationEngine(provider, clock=clock)
        session = TherapySession(
            id="s1",
            date=DATE,
            messages=make_messages(("user", "Ik ben gespannen"), ("assistant", "Vertel eens meer")),
        )

        summary = await engine.generate_summary(session)

        assert summary.id == "s1"
        assert summary.summary == "Gebruiker verkende spanning op het werk."
        assert summary.key_themes == ["acceptatie", "waarden", "defusie", "actie"]
        assert len(summary.reflective_questions) == 3
        assert summary.title == "Spanning en waarden"
        assert summary.duration == 25
        assert summary.date == DATE

        sent = sent_prompts(provider)
        assert "samenvatting" in sent[0].lower()
        assert "ACT-thema" in sent[1]
        assert "acceptatie, waarden, defusie, actie" in sent[2]
        assert "Gebruiker verkende spanning op het werk." in sent[3]

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_the_others(self):
        provider = provider_with(
            "Samenvatting.",
            RuntimeError("themes down"),
            "Vraag een?\nVraag twee?\nVraag drie?",
            "Titel",
        )
        engine = DerivationEngine(provider)
        session = TherapySession(id="s1", messages=make_messages(("user", "Hoi"), ("assistant", "Hallo")))
        summary = await engine.generate_summary(session)
        assert summary.summary == "Samenvatting."
        assert summary.key_themes == []
        assert summary.reflective_questions == ["Vraag een?", "Vraag twee?", "Vraag drie?"]
        assert summary.title == "Titel"

    @pytest.mark.asyncio
    async def test_without_provider_everything_falls_back(self):
        engine = DerivationEngine(None)
        session = TherapySession(
            id="s1", date=DATE,
            messages=[ChatMessage(role="user", content="Hallo"), ChatMessage(role="assistant", content="Hoi")],
        )
        summary = await engine.generate_summary(session)
        assert summary.summary == prompts.FALLBACK_SUMMARY
        assert summary.key_themes == []
        assert summary.reflective_questions == prompts.DEFAULT_REFLECTIVE_QUESTIONS
        assert summary.title == "Hallo"
