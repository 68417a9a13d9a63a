"""Enrichment actions selected by the ``action`` key of a queue item.

The set is closed: each action declares its output schema, few-shot
examples, instructions, and how a validated record becomes draft notes.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

from pydantic import BaseModel

from vocab_anki_sync.domain.entities.note import PartOfSpeech, VocabularyNote
from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import ValidationFailure

from .schemas import EnrichedWord, SplitPhrase

_VALID_POS = {pos.value for pos in PartOfSpeech}

_CASA = EnrichedWord(
    content="casa",
    translation="house",
    part_of_speech="noun",
    gender="feminine",
    example="A casa é grande.",
    explanation="Also used for 'home': estar em casa.",
)
_CORRER = EnrichedWord(
    content="correr",
    translation="to run",
    part_of_speech="verb",
    example="Eu gosto de correr no parque.",
)
_O = EnrichedWord(
    content="o",
    translation="the",
    part_of_speech="article",
    gender="masculine",
    example="O livro está na mesa.",
)
_LIVRO = EnrichedWord(
    content="livro",
    translation="book",
    part_of_speech="noun",
    gender="masculine",
    example="Li um livro ontem.",
)


class EnrichmentAction(ABC):
    """One variant of enrichment."""

    name: ClassVar[str]
    schema: ClassVar[type[BaseModel]]
    instructions: ClassVar[str]

    @abstractmethod
    def examples(self) -> list[BaseModel]:
        """Few-shot instances of ``schema``."""

    @abstractmethod
    def to_drafts(self, record: BaseModel) -> list[VocabularyNote]:
        """Map a validated record to draft notes, in fan-out order."""


def _draft(word: EnrichedWord) -> VocabularyNote:
    return VocabularyNote(
        content=word.content,
        translation=word.translation,
        part_of_speech=word.part_of_speech.strip().lower(),
        gender=(word.gender or None),
        example=word.example,
        explanation=word.explanation,
    )


class EnrichWordAction(EnrichmentAction):
    """Enrich a single word into one note."""

    name = "enrich_word"
    schema = EnrichedWord
    instructions = (
        "Describe the single word you are given: its dictionary form, translation, "
        "part of speech, grammatical gender if it is a noun, one example sentence "
        "and a short explanation."
    )

    def examples(self) -> list[BaseModel]:
        return [_CASA, _CORRER]

    def to_drafts(self, record: BaseModel) -> list[VocabularyNote]:
        return [_draft(EnrichedWord.model_validate(record))]


class SplitPhraseAction(EnrichmentAction):
    """Split a phrase into one note per word, preserving word order."""

    name = "split_phrase"
    schema = SplitPhrase
    instructions = (
        "Split the phrase you are given into its words and describe each one, "
        "keeping the order in which they appear. Do not repeat a word."
    )

    def examples(self) -> list[BaseModel]:
        return [SplitPhrase(words=[_O, _LIVRO])]

    def to_drafts(self, record: BaseModel) -> list[VocabularyNote]:
        phrase = SplitPhrase.model_validate(record)
        return [_draft(word) for word in phrase.words]


ACTIONS: dict[str, EnrichmentAction] = {
    action.name: action for action in (EnrichWordAction(), SplitPhraseAction())
}


def resolve_action(params: Mapping[str, Any], default: str) -> EnrichmentAction:
    """Pick the action named by ``params["action"]``, or ``default``.

    Raises:
        ValidationFailure: If the name is not a known action
    """
    name = params.get("action") or default
    action = ACTIONS.get(str(name))
    if action is None:
        msg = f"Unknown enrichment action: {name!r}"
        raise ValidationFailure(
            msg,
            suggestion=f"Use one of: {', '.join(sorted(ACTIONS))}",
            error_code=ErrorCode.ENR_UNKNOWN_ACTION.value,
        )
    return action


def validate_drafts(drafts: list[VocabularyNote]) -> None:
    """Semantic checks the schema cannot express.

    Raises:
        ValidationFailure: Listing every problem found
    """
    problems: list[str] = []
    if not drafts:
        problems.append("enrichment produced no notes")

    seen: set[str] = set()
    for index, draft in enumerate(drafts):
        if not draft.content.strip():
            problems.append(f"note {index}: content is empty")
        if not draft.translation.strip():
            problems.append(f"note {index}: translation is empty")
        if draft.part_of_speech not in _VALID_POS:
            problems.append(
                f"note {index}: unknown part of speech {draft.part_of_speech!r}"
            )
        key = draft.content.strip().casefold()
        if key and key in seen:
            problems.append(f"note {index}: duplicate content {draft.content!r}")
        seen.add(key)

    if problems:
        raise ValidationFailure(
            "Enrichment output failed validation: " + "; ".join(problems),
            error_code=ErrorCode.ENR_VALIDATION.value,
            context={"problems": problems},
        )
