"""Prompt construction for enrichment requests."""

import json
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

SYSTEM_TEMPLATE = """\
You are a lexicographer helping a {native_language} speaker learn {target_language}.
{instructions}
Respond with a single JSON object that follows the provided schema. Do not add
commentary or markdown fences."""


def build_system_prompt(
    instructions: str, target_language: str, native_language: str
) -> str:
    return SYSTEM_TEMPLATE.format(
        instructions=instructions.strip(),
        target_language=target_language,
        native_language=native_language,
    )


def build_user_prompt(
    raw_input: str,
    examples: Sequence[BaseModel],
    params: Mapping[str, Any] | None = None,
) -> str:
    """Render few-shot example outputs, request parameters, then the input."""
    blocks = [f"Example output: {example.model_dump_json()}" for example in examples]
    if params:
        rendered = json.dumps(dict(params), ensure_ascii=False, sort_keys=True, default=str)
        blocks.append(f"Parameters: {rendered}")
    blocks.append(f"Input: {raw_input.strip()}")
    return "\n\n".join(blocks)
