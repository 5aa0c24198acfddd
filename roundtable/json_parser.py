"""Pull a JSON object out of free-form model output."""

import json
import re

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)(?:```|$)", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_INVISIBLE_RE = re.compile(r"[\ufeff\u200b-\u200d\u2060]")


def extract_json_object(text: str) -> dict:
    """Return the first JSON object found in *text*.

    Handles markdown code fences (closed or truncated), leading prose, trailing
    commas and zero-width characters.

    Raises:
        ValueError: If no JSON object can be parsed.
    """
    cleaned = text.strip()
    fenced = _FENCE_RE.search(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object in model output")

    candidate = _INVISIBLE_RE.sub("", cleaned[start:end + 1])
    candidate = _TRAILING_COMMA_RE.sub(r"\1", candidate)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed JSON in model output: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ValueError("Model output JSON is not an object")
    return parsed


def clamp_unit(value: object, default: float = 0.5) -> float:
    """Coerce *value* to a float in [0, 1]."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0.0, min(1.0, number))


def string_list(value: object, limit: int = 20) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item][:limit]
