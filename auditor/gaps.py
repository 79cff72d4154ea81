"""
Checklist gap detection.

No model call: a requirement counts as covered when one of the model's own
checklist/partial comments quotes it.
"""

import logging
import re
from typing import Iterable, List

from models import AnalysisItem, Category, MissingRequirement
from .prompts import CHECKLIST_MATCH_MARKER, PARTIAL_MATCH_MARKER

logger = logging.getLogger(__name__)

MISSING_COMMENT = "Данное обязательное требование не было найдено в тексте договора."
MIN_REQUIREMENT_LENGTH = 20
PHRASE_LENGTH = 50

_SPLIT = re.compile(r"[•\n]")
_LIST_MARKER = re.compile(r"^[•\-\*\d.]+\s*")
_PUNCTUATION = re.compile(r"[^\w\s-]")


def parse_checklist(text: str, min_length: int = MIN_REQUIREMENT_LENGTH) -> List[str]:
    """Checklist text to requirement strings."""
    requirements = []
    for fragment in _SPLIT.split(text or ""):
        fragment = _LIST_MARKER.sub("", fragment.strip()).strip()
        if len(fragment) > min_length:
            requirements.append(fragment)
    return requirements


def search_terms(requirement: str) -> List[str]:
    """Leading phrase plus the first three content words longer than 4 chars."""
    lowered = requirement.lower()
    words = [w for w in _PUNCTUATION.sub(" ", lowered).split() if len(w) > 4]
    return [lowered[:PHRASE_LENGTH].strip()] + words[:3]


def matched_comments(items: Iterable[AnalysisItem]) -> List[str]:
    comments = []
    for item in items:
        if item.category not in (Category.CHECKLIST.value, Category.PARTIAL.value) or not item.comment:
            continue
        if CHECKLIST_MATCH_MARKER in item.comment or PARTIAL_MATCH_MARKER in item.comment:
            comments.append(item.comment.lower())
    return comments


def find_missing_requirements(items: Iterable[AnalysisItem], checklist_text: str) -> List[MissingRequirement]:
    """Requirements no checklist/partial comment refers to."""
    comments = matched_comments(items)
    missing = []
    for requirement in parse_checklist(checklist_text):
        terms = [t for t in search_terms(requirement) if len(t) > 4]
        if not any(term in comment for term in terms for comment in comments):
            missing.append(MissingRequirement(requirement=requirement, comment=MISSING_COMMENT))
    logger.info(f"[GAPS] {len(missing)} missing requirement(s)")
    return missing
