"""Utility functions."""

import json
from typing import List


def _reject_constant(name: str):
    raise ValueError(f"Non-standard JSON constant: {name}")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


def extract_json(text: str) -> dict:
    """
    Return the first JSON object embedded in model output.

    Prose or ```json fences around the object are ignored; decoding starts
    at the first ``{`` and stops at its matching close.
    Raises ValueError when there is no object or it does not parse.
    """
    if not text:
        raise ValueError("Empty model output")

    start = text.find("{")
    if start == -1 or text.find("}", start) == -1:
        raise ValueError("No JSON object detected")

    try:
        parsed, _ = _decoder.raw_decode(text, start)
    except ValueError as e:
        raise ValueError(f"Malformed JSON object: {e}") from e

    return parsed


def split_ingredients(text: str) -> List[str]:
    """Comma-separated model output -> ordered ingredient names (duplicates kept)."""
    if not text:
        return []
    return [item.strip() for item in text.split(",") if item.strip()]
