"""
Validation of model answers at each call site.

Every parser takes the value returned by `extract_json` and returns typed
models. Items are validated one at a time so a single malformed entry
does not cost the rest of the answer.
"""

import logging
from typing import Any, List, Optional, Set, Type, TypeVar

from pydantic import BaseModel, ValidationError

from models import (
    AnalysisItem,
    ChunkResult,
    ChunkRightsAnalysis,
    ClassifiedClause,
    Contradiction,
    StructuralAnalysis,
    StructuralDefect,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def validate_items(model_cls: Type[M], raw_items: Any, label: str = "") -> List[M]:
    """Validate a list element by element, dropping invalid ones."""
    if not isinstance(raw_items, list):
        return []
    valid = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        try:
            valid.append(model_cls.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"[PARSE] Dropped invalid {label or model_cls.__name__}: {e.errors()[0]['msg']}")
    return valid


def first_list(value: Any, *keys: str) -> list:
    """The list under one of `keys`, the value itself if it is a list, else []."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in keys:
            if isinstance(value.get(key), list):
                return value[key]
    return []


def parse_chunk_response(raw: Any, chunk_id: str, allowed_ids: Optional[Set[str]] = None) -> ChunkResult:
    """
    Chunk classification plus rights tally.

    Args:
        raw: value from extract_json
        chunk_id: id of the chunk that was sent
        allowed_ids: real paragraph ids of the chunk; others are dropped
    """
    items = validate_items(AnalysisItem, first_list(raw, "analysis"), "analysis item")
    if allowed_ids is not None:
        foreign = [item.id for item in items if item.id not in allowed_ids]
        if foreign:
            logger.debug(f"[PARSE] {chunk_id}: ignoring ids outside chunk {foreign}")
        items = [item for item in items if item.id in allowed_ids]

    rights = None
    if isinstance(raw, dict) and isinstance(raw.get("chunkRightsAnalysis"), dict):
        rights_raw = dict(raw["chunkRightsAnalysis"])
        clauses = validate_items(ClassifiedClause, rights_raw.pop("classifiedClauses", []), "classified clause")
        if allowed_ids is not None:
            clauses = [c for c in clauses if c.id in allowed_ids]
        try:
            rights = ChunkRightsAnalysis.model_validate(rights_raw)
            rights.classified_clauses = clauses
        except ValidationError as e:
            logger.warning(f"[PARSE] {chunk_id}: bad rights tally: {e.errors()[0]['msg']}")
            rights = ChunkRightsAnalysis(classified_clauses=clauses)

    if isinstance(raw, dict) and raw.get("chunkId") == "failed":
        logger.warning(f"[PARSE] {chunk_id}: answer could not be recovered")

    return ChunkResult(chunk_id=chunk_id, analysis=items, chunk_rights_analysis=rights)


def parse_classifications(raw: Any) -> List[ClassifiedClause]:
    return validate_items(ClassifiedClause, first_list(raw, "classifications", "classifiedClauses", "clauses"))


def parse_contradictions(raw: Any, limit: int = 7) -> List[Contradiction]:
    raw_items = first_list(raw, "contradictions")
    for index, item in enumerate(raw_items, start=1):
        if isinstance(item, dict) and not item.get("id"):
            item["id"] = f"contr_{index}"
    contradictions = validate_items(Contradiction, raw_items, "contradiction")
    unique, seen = [], set()
    for contradiction in contradictions:
        if contradiction.id in seen:
            continue
        seen.add(contradiction.id)
        unique.append(contradiction)
    return unique[:limit]


def parse_verification(raw: Any) -> dict:
    """Contradiction verdict with safe defaults."""
    if not isinstance(raw, dict):
        raw = {}
    verdict = raw.get("isContradiction")
    if isinstance(verdict, str):
        verdict = verdict.strip().lower() == "true"
    return {
        "is_contradiction": bool(verdict),
        "severity": raw.get("severity") or "medium",
        "explanation": raw.get("explanation") or "",
        "recommendation": raw.get("recommendation") or "",
    }


def parse_logical_defects(raw: Any) -> List[StructuralDefect]:
    raw_items = first_list(raw, "logicalDefects", "defects")
    for index, item in enumerate(raw_items, start=1):
        if isinstance(item, dict):
            item.setdefault("id", f"logic_error_{index}")
            item["type"] = "logical_error"
    return validate_items(StructuralDefect, raw_items, "logical defect")


def parse_summary(raw: Any) -> StructuralAnalysis:
    body = raw.get("structuralAnalysis", raw) if isinstance(raw, dict) else {}
    if not isinstance(body, dict):
        body = {}
    try:
        return StructuralAnalysis.model_validate(body)
    except ValidationError as e:
        logger.warning(f"[PARSE] Summary invalid, using defaults: {e.errors()[0]['msg']}")
        return StructuralAnalysis()
