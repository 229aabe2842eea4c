"""Shared agent output extraction utilities.

Canonical implementations for turning whatever a collaborator returns
(strands ``AgentResult``, pydantic model, dict, or raw text) into a JSON
payload the phase contracts can validate.

Extraction functions:
- extract_text_from_result(result) -> str: Extract text from any agent result format
- extract_json_from_text(text) -> dict | None: Extract JSON from markdown/text
- extract_payload(result) -> dict | None: Best-effort JSON object from any result
"""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Compiled regex patterns (module-level for performance)
_THINKING_TAG_RE = re.compile(r"<thinking>.*?</thinking>", re.DOTALL | re.IGNORECASE)
_JSON_CODE_BLOCK_RE = re.compile(r"```json\s*([\s\S]*?)```")
_ANY_CODE_BLOCK_RE = re.compile(r"```\s*([\s\S]*?)```")


def extract_text_from_result(result: Any) -> str:
    """Extract text output from various agent result formats.

    Handles: pydantic BaseModel, AgentResult (dict message, object message),
    plain string and dict. Strips ``<thinking>`` tags from the output.
    """
    if isinstance(result, BaseModel):
        return result.model_dump_json()

    # --- AgentResult structured_output (Strands SDK) ---
    structured = getattr(result, "structured_output", None)
    if isinstance(structured, BaseModel):
        return structured.model_dump_json()

    if hasattr(result, "message"):
        output_text = _extract_from_message(result.message)
    elif isinstance(result, str):
        output_text = result
    elif isinstance(result, dict):
        output_text = _extract_from_dict(result)
    else:
        output_text = str(result)

    output_text = _THINKING_TAG_RE.sub("", output_text)
    return output_text.strip()


def extract_json_from_text(text: str) -> dict | None:
    """Extract and parse JSON from text that may contain markdown code blocks.

    Strategy chain (most specific → most permissive):
    1. Direct ``json.loads()`` (for pure JSON input)
    2. Regex code block: ````` ```json ... ``` ````` or ````` ``` ... ``` `````
    3. Character scan for ``{`` to matching ``}`` (handles orphaned JSON)

    Returns:
        Parsed dict, or None if no valid JSON found.
    """
    if not text or not text.strip():
        return None

    text = text.strip()

    # 1. Direct parse
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except (json.JSONDecodeError, TypeError):
        pass

    # 2. Regex: ```json ... ``` block, then any ``` ... ``` block
    for pattern in (_JSON_CODE_BLOCK_RE, _ANY_CODE_BLOCK_RE):
        match = pattern.search(text)
        if match:
            try:
                parsed = json.loads(match.group(1).strip())
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

    # 3. Character scan: find first { and its matching }
    return _scan_json_object(text)


def extract_payload(result: Any) -> dict | None:
    """Best-effort JSON object from any collaborator result."""
    if isinstance(result, dict) and "content" not in result and "message" not in result:
        return result

    structured = getattr(result, "structured_output", None)
    if isinstance(structured, BaseModel):
        return structured.model_dump(mode="json", by_alias=True)
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True)

    return extract_json_from_text(extract_text_from_result(result))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _extract_from_message(msg: Any) -> str:
    """Extract text from a Strands message (dict or object)."""
    if isinstance(msg, dict) and "content" in msg:
        return _extract_from_content(msg["content"])

    if hasattr(msg, "content"):
        return _extract_from_content(msg.content)

    return str(msg)


def _extract_from_content(content: Any) -> str:
    """Extract text from a content value (list of blocks or string)."""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(item["text"])
            elif hasattr(item, "text"):
                parts.append(item.text)
        if parts:
            return "".join(parts)
        logger.warning("No text content extracted from content list (%d items)", len(content))
        return ""

    return str(content)


def _extract_from_dict(result: dict) -> str:
    """Extract text from a dict-shaped result."""
    if "content" in result:
        return _extract_from_content(result["content"])
    if "message" in result:
        return _extract_from_message(result["message"])
    if "text" in result:
        return str(result["text"])
    return json.dumps(result)


def _scan_json_object(text: str) -> dict | None:
    """Scan text for the first balanced JSON object { ... }."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]

        if escape:
            escape = False
            continue

        if ch == "\\":
            escape = True
            continue

        if ch == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                candidate = text[start : i + 1]
                try:
                    parsed = json.loads(candidate)
                    if isinstance(parsed, dict):
                        return parsed
                except json.JSONDecodeError:
                    return None

    return None
