"""
JSON parsing and repair for model responses.

The extraction model is asked for a bare JSON object but may wrap it in code
fences or prose, add trailing commas, or annotate values with parenthetical
comments. These helpers recover the object where that is mechanically safe.
"""

import json
import re
from typing import Any

_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _strip_code_fence(response_text: str) -> str:
    fenced = _CODE_FENCE.search(response_text)
    return fenced.group(1) if fenced else response_text


def find_json_block(response_text: str) -> str | None:
    """Return the text between the first '{' and the last '}', or None."""
    response_text = _strip_code_fence(response_text)

    json_start = response_text.find("{")
    json_end = response_text.rfind("}")
    if json_start == -1 or json_end == -1 or json_start > json_end:
        return None
    return response_text[json_start:json_end + 1]


def try_parse_or_repair_json(json_str: str) -> Any:
    """
    Parse a JSON string, applying repair strategies if initial parsing fails.

    Raises:
        json.JSONDecodeError: If JSON cannot be parsed even after repair attempts
    """
    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        repaired_json = json_str

        # Trailing commas before a closing brace or bracket
        repaired_json = re.sub(r",\s*([}\]])", r"\1", repaired_json)

        # "text" (explanation) -> "text"
        repaired_json = re.sub(r'"([^"]*)" \([^)]*\)', r'"\1"', repaired_json)

        # 1234.5 (incl. tax) -> 1234.5
        repaired_json = re.sub(r'(-?\d+(?:\.\d+)?)\s*\([^)]*\)', r'\1', repaired_json)

        # Missing comma between a value and the next key on a new line
        repaired_json = re.sub(
            r'("(?:[^"\\]|\\.)*"|\d|true|false|null|[}\]])\s*\n(\s*"(?:[^"\\]|\\.)*"\s*:)',
            r'\1,\n\2',
            repaired_json
        )

        # Missing comma between objects in an array
        repaired_json = re.sub(r'}\s*\n(\s*){', r'},\n\1{', repaired_json)

        return json.loads(repaired_json)  # may raise; let it propagate for caller handling


def extract_json_object(response_text: str) -> dict[str, Any]:
    """Locate and parse the JSON object in a model response.

    Raises:
        ValueError: If no JSON object is present or the payload is not an object
        json.JSONDecodeError: If the object cannot be repaired
    """
    response_text = response_text or ""
    if _strip_code_fence(response_text).lstrip().startswith("["):
        raise ValueError("Expected a JSON object, got a top-level array")

    json_block = find_json_block(response_text)
    if json_block is None:
        raise ValueError("No JSON object found in response")

    data = try_parse_or_repair_json(json_block)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
