"""
Structural defects - broken, self and cyclic clause references.

A rule-based pass over numbered clauses, topped up by one model call for
subtler logical reference errors when the rules find little.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from models import Paragraph, StructuralDefect
from .client import ChatRequest, ModelGateway
from .prompts import STRUCTURE_INSTRUCTION, build_logical_defects_prompt
from .repair import extract_json
from .responses import parse_logical_defects
from .settings import PipelineConfig

logger = logging.getLogger(__name__)

CLAUSE_PREFIX = re.compile(r"^(\d+(?:\.\d+)*\.?)\s")
REFERENCE = re.compile(
    r"(?<![а-яёa-z])(?:п|пункт|пункте|пункту|пунктом|пунктах|подпункт|подпункте)\.?\s*(\d+(?:\.\d+)*\.?)",
    re.IGNORECASE,
)
SUSPICIOUS_PHRASES = ("нарушение положений п.", "в соответствии с п.", "согласно п.")


def clause_number(text: str) -> Optional[str]:
    """Leading clause number without the trailing dot ("5.2." -> "5.2")."""
    match = CLAUSE_PREFIX.match(text)
    return match.group(1).rstrip(".") if match else None


def build_clause_map(paragraphs: Sequence[Paragraph]) -> Dict[str, Paragraph]:
    clauses: Dict[str, Paragraph] = {}
    for paragraph in paragraphs:
        number = clause_number(paragraph.text)
        if number and number not in clauses:
            clauses[number] = paragraph
    return clauses


def references(text: str):
    """(clause number, match) for every in-text reference."""
    for match in REFERENCE.finditer(text):
        yield match.group(1).rstrip("."), match


def similar_numbers(reference: str, known: Sequence[str]) -> List[str]:
    section = reference.split(".")[0]
    return [n for n in known if n.split(".")[0] == section][:3]


def find_reference_defects(paragraphs: Sequence[Paragraph], clauses: Dict[str, Paragraph]) -> List[StructuralDefect]:
    """Broken and self references."""
    defects: Dict[str, StructuralDefect] = {}
    known = sorted(clauses)

    for paragraph in paragraphs:
        own = clause_number(paragraph.text)
        for number, match in references(paragraph.text):
            if own and number == own:
                defect_id = f"self_ref_{paragraph.id}"
                defects.setdefault(defect_id, StructuralDefect(
                    id=defect_id,
                    type="self_reference",
                    description=f"Пункт {own} ссылается сам на себя",
                    severity="medium",
                    recommendation="Проверить логичность самоссылки или исправить на корректный пункт",
                    location=paragraph.id,
                    context=paragraph.text[:200],
                ))
                continue

            if clauses and number not in clauses:
                suggestions = similar_numbers(number, known)
                defect_id = f"broken_ref_{paragraph.id}_{number}"
                defects.setdefault(defect_id, StructuralDefect(
                    id=defect_id,
                    type="broken_reference",
                    description=f'Ссылка на несуществующий пункт {number} в тексте: "{match.group(0)}"',
                    severity="high",
                    recommendation=(
                        f"Возможно, имелся в виду пункт: {', '.join(suggestions)}"
                        if suggestions
                        else f"Проверить корректность ссылки на пункт {number}"
                    ),
                    location=paragraph.id,
                    context=paragraph.text[max(0, match.start() - 50):match.start() + 100],
                ))
    return list(defects.values())


def find_cyclic_references(paragraphs: Sequence[Paragraph], clauses: Dict[str, Paragraph]) -> List[StructuralDefect]:
    """A references B and B references A. Each pair reported once."""
    graph: Dict[str, set] = {}
    for paragraph in paragraphs:
        own = clause_number(paragraph.text)
        if not own:
            continue
        targets = {number for number, _ in references(paragraph.text) if number != own}
        if targets:
            graph.setdefault(own, set()).update(targets)

    defects = []
    for clause in sorted(graph):
        for target in sorted(graph[clause]):
            if clause < target and clause in graph.get(target, set()):
                location = clauses[clause].id if clause in clauses else clause
                defects.append(StructuralDefect(
                    id=f"cycle_{clause}_{target}",
                    type="cyclic_reference",
                    description=(
                        f"Обнаружена циклическая ссылка: пункт {clause} ссылается на {target}, "
                        f"который ссылается обратно на {clause}"
                    ),
                    severity="medium",
                    recommendation=f"Пересмотреть логику ссылок между пунктами {clause} и {target}",
                    location=location,
                ))
    return defects


def suspicious_paragraphs(paragraphs: Sequence[Paragraph]) -> List[Paragraph]:
    found = []
    for paragraph in paragraphs:
        text = paragraph.text.lower()
        if any(p in text for p in SUSPICIOUS_PHRASES) or ("ответственность" in text and "п." in text):
            found.append(paragraph)
    return found


class StructuralDefectFinder:
    """Rule-based reference checks plus an optional model pass."""

    def __init__(self, gateway: ModelGateway, config: Optional[PipelineConfig] = None):
        self.gateway = gateway
        self.config = config or PipelineConfig()

    async def find_logical_defects(
        self,
        paragraphs: Sequence[Paragraph],
        clauses: Dict[str, Paragraph],
    ) -> List[StructuralDefect]:
        """Model review of reference-heavy paragraphs. Failures give []."""
        candidates = suspicious_paragraphs(paragraphs)
        if not candidates:
            return []
        request = ChatRequest(
            operation="LOGICAL_DEFECTS",
            system_instruction=STRUCTURE_INSTRUCTION,
            user_prompt=build_logical_defects_prompt(candidates, sorted(clauses)),
            temperature=0.1,
            max_tokens=self.config.defects_max_tokens,
            thinking_budget=self.config.thinking_budget,
        )
        try:
            response = await self.gateway.request(request)
        except Exception as e:
            logger.warning(f"[DEFECTS] Logical defect review failed: {e}")
            return []
        return parse_logical_defects(extract_json(response.content))

    async def find(self, paragraphs: Sequence[Paragraph]) -> List[StructuralDefect]:
        clauses = build_clause_map(paragraphs)
        logger.info(f"[DEFECTS] {len(clauses)} numbered clause(s)")

        defects = find_reference_defects(paragraphs, clauses)
        defects.extend(find_cyclic_references(paragraphs, clauses))

        if len(defects) < self.config.defects_ai_threshold:
            seen = {d.id for d in defects}
            for defect in await self.find_logical_defects(paragraphs, clauses):
                if defect.id not in seen:
                    seen.add(defect.id)
                    defects.append(defect)

        logger.info(f"[DEFECTS] {len(defects)} defect(s)")
        return defects
