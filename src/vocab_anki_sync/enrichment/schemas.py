"""Structured output models requested from the language model."""

from pydantic import BaseModel, ConfigDict, Field


class EnrichedWord(BaseModel):
    """One vocabulary entry as produced by the model."""

    model_config = ConfigDict(title="enriched_word", str_strip_whitespace=True)

    content: str = Field(description="The word in its dictionary form")
    translation: str = Field(description="Translation into the learner's language")
    part_of_speech: str = Field(
        description="noun, verb, adjective, adverb, pronoun, preposition, "
        "conjunction, article, numeral, interjection or phrase"
    )
    gender: str | None = Field(
        default=None, description="Grammatical gender for nouns, otherwise null"
    )
    example: str = Field(default="", description="Short example sentence")
    explanation: str = Field(default="", description="Usage notes for the learner")


class SplitPhrase(BaseModel):
    """A phrase broken into its individual words, in phrase order."""

    model_config = ConfigDict(title="split_phrase")

    words: list[EnrichedWord] = Field(
        min_length=1, description="One entry per word, in the order they appear"
    )
