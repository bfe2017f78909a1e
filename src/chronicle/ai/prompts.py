"""Prompt templates for the continuation provider."""

from __future__ import annotations

CONTINUATION_INSTRUCTIONS = (
    "You are a helpful writing assistant. Continue the following text naturally. "
    "Maintain the tone and style of the existing text. Do not repeat the last sentence "
    "provided. Just provide the continuation text immediately without any "
    "conversational filler."
)

_DELIMITER = "---"


def build_continuation_prompt(current_text: str) -> str:
    """Wrap ``current_text`` in the continuation instructions."""

    return f"{CONTINUATION_INSTRUCTIONS}\n\n{_DELIMITER}\n{current_text}\n{_DELIMITER}"


__all__ = ["CONTINUATION_INSTRUCTIONS", "build_continuation_prompt"]
