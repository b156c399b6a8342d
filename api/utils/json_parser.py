"""
JSON recovery for model responses.

Schema-constrained calls usually return clean JSON, but truncated or
fenced output still shows up. Recovery order:
  1. json.loads on the trimmed text
  2. strip ``` fences, then parse the outermost [...] (if it opens before
     any object) or the outermost {...}
"""

import json
import logging
import re
from typing import Any, Optional

from api.production.errors import ResponseParseError

logger = logging.getLogger("json_parser")

_FENCE_RE = re.compile(r"```json\s*|```")


def _outermost_span(text: str) -> Optional[str]:
    start_arr = text.find("[")
    end_arr = text.rfind("]")
    start_obj = text.find("{")
    end_obj = text.rfind("}")

    if start_arr != -1 and end_arr > start_arr and (start_obj == -1 or start_arr < start_obj):
        return text[start_arr:end_arr + 1]
    if start_obj != -1 and end_obj > start_obj:
        return text[start_obj:end_obj + 1]
    return None


def robust_json_parse(text: Optional[str]) -> Any:
    """Parse model output as JSON, recovering from fences and stray prose."""
    if not text or not text.strip():
        raise ResponseParseError("Empty response from AI")

    try:
        return json.loads(text.strip())
    except json.JSONDecodeError:
        pass

    cleaned = _FENCE_RE.sub("", text).strip()
    candidate = _outermost_span(cleaned)
    if candidate is None:
        raise ResponseParseError("No JSON array or object found in response")

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parse failed. Raw text: {text[:500]}")
        raise ResponseParseError(f"Malformed JSON in response: {e}") from e
