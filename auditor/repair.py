"""
Best-effort JSON recovery for model output.

Models truncate under token limits, wrap JSON in markdown and sprinkle
control characters into strings. `extract_json` walks an ordered chain of
small pure functions and always returns something:

    raw -> strip fences -> strip control chars -> parse
        -> close string / drop dangling tail / trailing commas / balance -> parse
        -> domain recovery (verification, contradictions, chunk analysis)
        -> {"chunkId": "failed", "analysis": []}
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


def empty_result() -> dict:
    return {"chunkId": "unknown", "analysis": []}


def failed_result() -> dict:
    return {"chunkId": "failed", "analysis": []}


class _Unparsed:
    """Marker for a failed parse (None is a valid JSON value)."""


UNPARSED = _Unparsed()

_FENCE_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_FENCE_ANY = re.compile(r"```\s*([\s\S]*?)\s*```")
_UNSAFE_CHARS = re.compile(r"[\t\u00a0\u2028\u2029\x00-\x1f\x7f-\x9f]")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_DANGLING_KEY = re.compile(r'(?<=[{,\[])\s*"[^"]*"\s*:?\s*$')
_DANGLING_SEP = re.compile(r"[\s,:]+$")


# -- text cleanup -----------------------------------------------------------

def strip_code_fences(text: str) -> str:
    """Return the body of a ```json / ``` fence when one is present."""
    match = _FENCE_JSON.search(text) or _FENCE_ANY.search(text)
    if match:
        return match.group(1)
    # unterminated opening fence
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = re.sub(r"^```(?:json)?", "", stripped, flags=re.IGNORECASE)
    return stripped.strip()


def strip_control_chars(text: str) -> str:
    return _UNSAFE_CHARS.sub(" ", text)


def try_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return UNPARSED


def slice_to_json(text: str) -> str:
    """Drop prose before the first brace or bracket."""
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    return text[min(starts):] if starts else text


# -- structural repairs -----------------------------------------------------

def _unescaped_quote_positions(text: str) -> List[int]:
    positions = []
    for i, ch in enumerate(text):
        if ch == '"' and (i == 0 or text[i - 1] != "\\"):
            positions.append(i)
    return positions


def close_open_string(text: str) -> str:
    """With an odd quote count, cut at the last quote and close it."""
    quotes = _unescaped_quote_positions(text)
    if len(quotes) % 2 == 0:
        return text
    return text[: quotes[-1] + 1] + '"'


def drop_dangling_tail(text: str) -> str:
    """Remove a trailing key without value and trailing separators."""
    text = _DANGLING_KEY.sub("", text.rstrip())
    return _DANGLING_SEP.sub("", text)


def strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def balance_brackets(text: str) -> str:
    """Append missing closers, innermost first. Brackets inside strings are ignored."""
    stack = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()
    return text + "".join(reversed(stack))


REPAIR_STEPS: List[Callable[[str], str]] = [
    slice_to_json,
    close_open_string,
    drop_dangling_tail,
    strip_trailing_commas,
    balance_brackets,
    strip_trailing_commas,
]


def repair_structure(text: str) -> str:
    for step in REPAIR_STEPS:
        text = step(text)
    return text


# -- domain recovery --------------------------------------------------------

_IS_CONTRADICTION = re.compile(r'"isContradiction"\s*:\s*(true|false)', re.IGNORECASE)
_SEVERITY = re.compile(r'"severity"\s*:\s*"(high|medium|low)"', re.IGNORECASE)
_CONTRADICTION_ID = re.compile(r'"id"\s*:\s*"contr_\d+"')
_CHUNK_ID = re.compile(r'"chunkId"\s*:\s*"([^"]+)"')
_ANALYSIS_OBJECT = re.compile(r'\{[^{}]*"id"\s*:\s*"[^"]+"\s*,\s*"category"\s*:\s*(?:"[^"]*"|null)[^{}]*\}')
_ID_CATEGORY = re.compile(r'"id"\s*:\s*"([^"]+)"\s*,\s*"category"\s*:\s*"([^"]*)"')
_CHUNK_HEADER = re.compile(r'\{[^{}]*"chunkId"\s*:\s*"[^"]*"')


def recover_verification(text: str) -> Optional[dict]:
    """Safe contradiction-verification shape, filled from whatever fields survived."""
    if "isContradiction" not in text:
        return None
    result = {
        "isContradiction": False,
        "severity": "low",
        "explanation": "Не удалось полностью проанализировать противоречие",
        "recommendation": "Требуется ручная проверка",
    }
    flag = _IS_CONTRADICTION.search(text)
    if flag:
        result["isContradiction"] = flag.group(1).lower() == "true"
    severity = _SEVERITY.search(text)
    if severity:
        result["severity"] = severity.group(1).lower()
    return result


def recover_contradictions(text: str) -> Optional[dict]:
    if "contradictions" in text and _CONTRADICTION_ID.search(text):
        return {"contradictions": []}
    return None


def recover_chunk_analysis(text: str) -> Optional[dict]:
    """Pull analysis objects out one at a time, skipping the broken ones."""
    if '"chunkId"' in text and '"analysis"' in text:
        chunk_match = _CHUNK_ID.search(text)
        chunk_id = chunk_match.group(1) if chunk_match else "recovered"

        items = []
        for match in _ANALYSIS_OBJECT.finditer(text):
            value = try_parse(strip_trailing_commas(match.group(0)))
            if isinstance(value, dict):
                items.append(value)
        if not items:
            items = [
                {"id": m.group(1), "category": m.group(2) or None, "comment": None, "recommendation": None}
                for m in _ID_CATEGORY.finditer(text)
            ]
        if items:
            logger.info(f"[REPAIR] Recovered {len(items)} analysis item(s) for {chunk_id}")
            return {"chunkId": chunk_id, "analysis": items}

    header = _CHUNK_HEADER.search(text)
    if header:
        value = try_parse(header.group(0) + ', "analysis": []}')
        if isinstance(value, dict):
            return value
    return None


DOMAIN_RECOVERY: List[Callable[[str], Optional[dict]]] = [
    recover_verification,
    recover_contradictions,
    recover_chunk_analysis,
]


def extract_json(raw: Optional[str]) -> Any:
    """
    Recover a structured value from a model answer. Never raises.

    Args:
        raw: model output that should contain JSON

    Returns:
        Parsed value, a domain-specific partial value, or the failed sentinel
    """
    if not raw or not str(raw).strip():
        return empty_result()

    text = strip_control_chars(strip_code_fences(str(raw)))

    value = try_parse(text)
    if value is not UNPARSED:
        return value

    repaired = repair_structure(text)
    value = try_parse(repaired)
    if value is not UNPARSED:
        logger.debug("[REPAIR] Structural repair succeeded")
        return value

    for recover in DOMAIN_RECOVERY:
        result = recover(text)
        if result is not None:
            return result

    logger.warning(f"[REPAIR] Could not recover JSON from: {text[:200]!r}")
    return failed_result()
