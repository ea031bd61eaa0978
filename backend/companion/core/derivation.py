"""
Derivation Engine - turns a finished conversation into a summary, themes,
reflective questions and a title.

Every artifact is its own generative-text call with its own deterministic
fallback, so one failed call never costs the others.
"""

import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ..llm.base import LLMProvider
from ..models.session import ChatMessage, SessionSummary, TherapySession, MAX_THEMES, calculate_duration, utc_now
from ..utils.dates import conversation_title
from . import prompts
from .exceptions import DerivationError

logger = logging.getLogger(__name__)

QUESTION_COUNT = 3
TITLE_MAX_CHARS = 30
TITLE_MAX_WORDS = 5
FIRST_SENTENCE_MAX_CHARS = 35

_QUOTE_CHARS = "\"'`“”„‘’«»"
_LIST_MARKER = re.compile(r"^(\d+[.)]|[-*•])\s*")
_SENTENCE_END = re.compile(r"[.!?]")


def build_transcript(messages: Sequence[ChatMessage]) -> str:
    """Role-tagged transcript, one block per message."""
    lines = []
    for message in messages:
        label = prompts.USER_LABEL if message.role == "user" else prompts.ASSISTANT_LABEL
        lines.append(f"{label}: {message.content}")
    return "\n\n".join(lines)


def parse_themes(text: str) -> List[str]:
    """Comma-separated model output -> at most MAX_THEMES labels."""
    themes: List[str] = []
    for part in text.replace("\n", ",").split(","):
        theme = part.strip().strip(_QUOTE_CHARS + ".").strip().lower()
        if theme and theme not in themes:
            themes.append(theme)
    return themes[:MAX_THEMES]


def parse_questions(text: str) -> List[str]:
    """Newline-separated model output -> at most QUESTION_COUNT questions."""
    questions = []
    for line in text.split("\n"):
        line = _LIST_MARKER.sub("", line.strip()).strip()
        if line:
            questions.append(line)
    return questions[:QUESTION_COUNT]


def clean_title(text: str) -> str:
    title = text.strip().splitlines()[0] if text.strip() else ""
    if title.lower().startswith("titel:"):
        title = title[len("titel:"):]
    title = title.strip().strip(_QUOTE_CHARS).strip()
    if len(title) > TITLE_MAX_CHARS:
        title = title[:TITLE_MAX_CHARS - 3].rstrip() + "..."
    return title


def fallback_title(messages: Sequence[ChatMessage], date: datetime) -> str:
    """
    Title without the model: the first user message if it is short, else
    its first sentence, else its first few words.
    """
    first = next(
        (m.content.strip() for m in messages if m.role == "user" and m.content.strip()),
        None,
    )
    if not first:
        return conversation_title(date)
    if len(first) <= TITLE_MAX_CHARS:
        return first

    sentence = _SENTENCE_END.split(first, 1)[0].strip()
    if sentence and len(sentence) <= FIRST_SENTENCE_MAX_CHARS:
        return sentence

    return " ".join(first.split()[:TITLE_MAX_WORDS]) + "..."


class DerivationEngine:
    """
    Produces SessionSummary objects for the session manager.

    Works without a provider too; every artifact then takes its fallback.
    """

    def __init__(
        self,
        llm_provider: Optional[LLMProvider] = None,
        model: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            llm_provider: Generative-text provider, None to always use fallbacks
            model: Model override passed on every call
            clock: Source of "now", for durations and time-based questions
        """
        self._llm_provider = llm_provider
        self.model = model
        self._clock = clock

    async def _generate(self, prompt: str, temperature: float = 0.7) -> str:
        if self._llm_provider is None:
            raise DerivationError("No LLM provider configured")
        try:
            response = await self._llm_provider.generate_content(
                prompt, model=self.model, temperature=temperature
            )
        except Exception as e:
            raise DerivationError(f"Generation failed: {e}") from e
        text = (response.content or "").strip()
        if not text:
            raise DerivationError("Generation returned no text")
        return text

    async def summarize(self, transcript: str) -> str:
        if len(transcript) > prompts.SUMMARY_LENGTH_THRESHOLD:
            prompt = prompts.concise_summary_prompt(transcript)
        else:
            prompt = prompts.detailed_summary_prompt(transcript)
        try:
            return await self._generate(prompt, temperature=0.5)
        except DerivationError as e:
            logger.warning(f"Summary generation failed, using fallback: {e}")
            return prompts.FALLBACK_SUMMARY

    async def extract_themes(self, transcript: str) -> List[str]:
        try:
            return parse_themes(await self._generate(prompts.themes_prompt(transcript), temperature=0.2))
        except DerivationError as e:
            logger.warning(f"Theme extraction failed, no themes: {e}")
            return []

    async def generate_reflective_questions(self, transcript: str, themes: List[str]) -> List[str]:
        try:
            text = await self._generate(prompts.reflective_questions_prompt(transcript, themes))
        except DerivationError as e:
            logger.warning(f"Question generation failed, using defaults: {e}")
            return list(prompts.DEFAULT_REFLECTIVE_QUESTIONS)

        questions = parse_questions(text)
        fillers = (
            prompts.theme_questions(themes)
            + [prompts.time_based_question(self._clock())]
            + prompts.FILLER_QUESTIONS
        )
        for filler in fillers:
            if len(questions) >= QUESTION_COUNT:
                break
            if filler not in questions:
                questions.append(filler)
        return questions

    async def generate_title(
        self,
        summary: str,
        transcript: str,
        messages: Sequence[ChatMessage],
        date: datetime,
    ) -> str:
        try:
            title = clean_title(await self._generate(prompts.title_prompt(summary, transcript), temperature=0.8))
            if title:
                return title
            logger.warning("Title generation returned only punctuation, using fallback")
        except DerivationError as e:
            logger.warning(f"Title generation failed, using fallback: {e}")
        return fallback_title(messages, date)

    async def generate_summary(self, session: TherapySession) -> SessionSummary:
        """
        Build all derived artifacts for ``session``.

        Themes come before questions (they ground them) and the summary
        before the title (the title prompt reads it). Never raises on model
        failure.
        """
        transcript = build_transcript(session.messages)

        summary_text = await self.summarize(transcript)
        themes = await self.extract_themes(transcript)
        questions = await self.generate_reflective_questions(transcript, themes)
        title = await self.generate_title(summary_text, transcript, session.messages, session.date)

        logger.info(
            f"Derived summary for session {session.id}",
            extra={"extra_fields": {
                "session_id": session.id,
                "themes": themes,
                "message_count": len(session.messages),
            }}
        )

        return SessionSummary(
            id=session.id,
            title=title,
            date=session.date,
            duration=calculate_duration(session.date, self._clock()),
            key_themes=themes,
            summary=summary_text,
            reflective_questions=questions,
        )
