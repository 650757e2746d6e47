"""Best-effort repair of almost-JSON model output."""

from __future__ import annotations

import json
import re
from typing import Any

from scenario_engine.exceptions import MalformedOutputError
from scenario_engine.observability.logger import get_logger

logger = get_logger("json_repair")

_MARKDOWN_BLOCK = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][\w-]*)\s*:")
_SINGLE_QUOTED = re.compile(r"([{\[,:]\s*)'((?:[^'\\]|\\.)*)'")


def extract_markdown_json(content: str) -> str:
    """Return the body of the first ``` fenced block, or the stripped text."""
    match = _MARKDOWN_BLOCK.search(content)
    if match:
        return match.group(1).strip()
    return content.strip()


def trim_to_json_span(content: str) -> str:
    text = content.strip()
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if starts:
        text = text[min(starts) :]
    end = max(text.rfind("}"), text.rfind("]"))
    if end != -1:
        text = text[: end + 1]
    return text


def _swap_single_quotes(text: str) -> str:
    if '"' not in text:
        return text.replace("'", '"')

    def _requote(match: re.Match) -> str:
        inner = match.group(2).replace("\\'", "'").replace('"', '\\"')
        return f'{match.group(1)}"{inner}"'

    return _SINGLE_QUOTED.sub(_requote, text)


def repair_json(content: str) -> str:
    repaired = trim_to_json_span(content)
    repaired = _TRAILING_COMMA.sub(r"\1", repaired)
    repaired = _swap_single_quotes(repaired)
    try:
        json.loads(repaired)
        return repaired
    except json.JSONDecodeError:
        pass
    # Key quoting can touch string contents, so it only runs when still invalid
    return _UNQUOTED_KEY.sub(r'\1"\2":', repaired)


def parse_json_with_repair(content: str) -> Any:
    """json.loads, then one repair pass. Raises MalformedOutputError if both fail."""
    text = extract_markdown_json(content)
    try:
        return json.loads(text)
    except json.JSONDecodeError as parse_error:
        logger.warning("json_parse_failed_attempting_repair", error=str(parse_error))
        repaired = repair_json(text)
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError as repair_error:
            raise MalformedOutputError(
                f"Invalid JSON after repair: {repair_error}"
            ) from repair_error
        logger.info("json_repair_successful")
        return parsed
