"""
Rights classification and imbalance analysis.

The model only tags each rights-bearing paragraph with a party and a type;
the imbalance verdict is computed here so it is reproducible.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from models import (
    AnalysisItem,
    ChunkResult,
    ClassifiedClause,
    Paragraph,
    Party,
    RightType,
    RightsImbalanceFinding,
    Severity,
)
from .client import ChatRequest, ModelGateway
from .progress import Progress
from .prompts import CLASSIFICATION_INSTRUCTION, build_classification_prompt
from .repair import extract_json
from .responses import parse_classifications
from .settings import PipelineConfig

logger = logging.getLogger(__name__)

RIGHTS_KEYWORDS = {
    "termination": (20, ("расторжен", "расторгнуть", "отказаться от договора", "прекратить действие", "досрочное расторжение")),
    "liability": (18, ("ответственность", "неустойка", "пеня", "штраф", "убытки", "возмещение", "компенсация")),
    "modification": (16, ("в одностороннем порядке", "изменить цену", "увеличить стоимость", "пересмотр условий", "корректировка")),
    "control": (14, ("контроль", "проверка", "инспекция", "аудит", "мониторинг", "надзор")),
    "suspension": (12, ("приостановить", "приостановка", "временно прекратить", "заморозить")),
    "refusal": (10, ("отказ", "отклонить", "не принимать", "вернуть")),
}
CATEGORY_BONUS = {"risk": 15, "deemed_acceptance": 12, "partial": 8, "checklist": 5}
PERSPECTIVE_PHRASES = {
    "buyer": ("поставщик обязан", "покупатель вправе", "покупатель может"),
    "supplier": ("покупатель обязан", "поставщик вправе", "поставщик может"),
}
PERSPECTIVE_BONUS = 8
GENERIC_PHRASES = ("в соответствии с", "согласно законодательству", "стороны договорились")

SANITY_KEYWORDS = {
    RightType.MODIFICATION.value: ("односторонн", "вправе изменить", "может изменить", "имеет право изменить"),
    RightType.TERMINATION.value: ("расторг", "отказ", "прекрат", "аннулир"),
    RightType.CONTROL.value: ("провер", "контрол", "приемк", "отклон", "инспекц"),
}
TYPE_NAMES = {
    "termination": "расторжения договора",
    "modification": "изменения условий",
    "liability": "финансовой ответственности",
    "control": "контроля и приемки",
    "procedural": "процедурных прав",
}
PARTY_NAMES = {"buyer": "Покупатель", "supplier": "Поставщик"}


@dataclass
class PrioritizedItem:
    id: str
    text: str
    category: Optional[str]
    score: int


@dataclass
class RightsReport:
    """Imbalance findings plus the totals they were derived from."""
    findings: List[RightsImbalanceFinding] = field(default_factory=list)
    conclusion: str = ""
    buyer_total: int = 0
    supplier_total: int = 0
    details: List[str] = field(default_factory=list)


# -- prioritization ---------------------------------------------------------

def score_item(item: AnalysisItem, paragraph_text: str, perspective: str) -> int:
    analysis_text = f"{item.comment or ''} {item.recommendation or ''}"
    combined = f"{paragraph_text} {analysis_text}".lower()

    score = CATEGORY_BONUS.get(item.category or "", 0)
    for weight, keywords in RIGHTS_KEYWORDS.values():
        if any(k in combined for k in keywords):
            score += weight
    for phrase in PERSPECTIVE_PHRASES.get(perspective, ()):
        if phrase in combined:
            score += PERSPECTIVE_BONUS
    if len(analysis_text) > 100:
        score += 5
    if len(analysis_text) > 200:
        score += 3
    if score < 10 and any(p in combined for p in GENERIC_PHRASES):
        score -= 3
    return max(0, score)


def prioritize_items(
    items: Sequence[AnalysisItem],
    paragraphs: Sequence[Paragraph],
    perspective: str,
    limit: int = 25,
) -> List[PrioritizedItem]:
    """Highest scoring rights-bearing paragraphs, best first."""
    texts = {p.id: p.text for p in paragraphs}
    ranked = []
    for item in items:
        text = texts.get(item.id, "")
        score = score_item(item, text, perspective)
        if score > 0:
            short = text[:200] + ("..." if len(text) > 200 else "")
            ranked.append(PrioritizedItem(item.id, short, item.category, score))
    ranked.sort(key=lambda p: p.score, reverse=True)
    logger.info(f"[RIGHTS] {len(items)} item(s) -> {min(len(ranked), limit)} prioritized")
    return ranked[:limit]


# -- aggregation ------------------------------------------------------------

def dedupe_clauses(clauses: Sequence[ClassifiedClause]) -> List[ClassifiedClause]:
    """One clause per id; a later tag replaces an earlier one."""
    unique: Dict[str, ClassifiedClause] = {}
    for clause in clauses:
        unique[clause.id] = clause
    return list(unique.values())


def collect_chunk_rights(results: Sequence[ChunkResult]) -> RightsReport:
    """Totals and details from every chunk's rights tally."""
    report = RightsReport()
    for result in results:
        rights = result.chunk_rights_analysis
        if rights is None:
            logger.debug(f"[RIGHTS] {result.chunk_id}: no rights tally")
            continue
        report.buyer_total += rights.buyer_rights_count
        report.supplier_total += rights.supplier_rights_count
        report.details.extend(rights.rights_details)
    return report


def chunk_clauses(results: Sequence[ChunkResult]) -> List[ClassifiedClause]:
    clauses = []
    for result in results:
        if result.chunk_rights_analysis:
            clauses.extend(result.chunk_rights_analysis.classified_clauses)
    return dedupe_clauses(clauses)


# -- programmatic imbalance -------------------------------------------------

_RUBLE_FINE = re.compile(r"штраф[а-я]*\s+в\s+размере\s+(\d+(?:\s?\d+)*)\s*рубл", re.IGNORECASE)
_PERCENT_FORFEIT = re.compile(r"(?:неустойк[а-яё]*|пен[яюё])\s+в\s+размере\s+(\d+(?:[.,]\d+)?)\s*%", re.IGNORECASE)


def extract_penalty_info(text: str) -> Optional[str]:
    """Short description of the first penalty mentioned in `text`."""
    if not text:
        return None
    match = _RUBLE_FINE.search(text)
    if match:
        amount = re.sub(r"\s", "", match.group(1))
        return f"штраф {amount} рублей"
    match = _PERCENT_FORFEIT.search(text)
    if match:
        return f"неустойка {match.group(1)}%"
    lowered = text.lower()
    if "штраф" in lowered:
        return "штраф"
    if "неустойк" in lowered:
        return "неустойка"
    return None


def _liability_finding(buyer: List[Paragraph], supplier: List[Paragraph]) -> Optional[RightsImbalanceFinding]:
    if len(buyer) == len(supplier):
        return None
    stronger, weaker = ("supplier", "buyer") if len(supplier) > len(buyer) else ("buyer", "supplier")
    sides = {"buyer": buyer, "supplier": supplier}
    difference = len(sides[stronger]) - len(sides[weaker])

    if difference > 1:
        strong_info = extract_penalty_info(" ".join(p.text for p in sides[stronger]))
        weak_info = extract_penalty_info(" ".join(p.text for p in sides[weaker]))
        strong_note = f" (например, {strong_info})" if strong_info else ""
        weak_note = f" (например, {weak_info})" if weak_info else ""
        description = (
            f"Обнаружен критический дисбаланс ответственности: санкции, которые может применить "
            f"{PARTY_NAMES[stronger]}{strong_note}, значительно превышают санкции, "
            f"доступные другой стороне{weak_note}."
        )
        severity = Severity.HIGH
    else:
        description = (
            f"Обнаружен количественный дисбаланс в правах на взыскание: у стороны "
            f"{PARTY_NAMES[stronger]} ({len(sides[stronger])}) больше инструментов для наложения санкций, "
            f"чем у стороны {PARTY_NAMES[weaker]} ({len(sides[weaker])})."
        )
        severity = Severity.MEDIUM

    return RightsImbalanceFinding(
        id="imbalance_liability",
        type=RightType.LIABILITY.value,
        description=description,
        severity=severity,
        buyer_rights=len(buyer),
        supplier_rights=len(supplier),
        recommendation=(
            "Рекомендуется пересмотреть размеры и основания для неустоек, чтобы обеспечить "
            "соразмерность финансовой ответственности сторон."
        ),
        buyer_rights_clauses=[p for p in buyer if p.text],
        supplier_rights_clauses=[p for p in supplier if p.text],
    )


def analyze_imbalance(
    clauses: Sequence[ClassifiedClause],
    paragraphs: Sequence[Paragraph],
    buyer_total: int = 0,
    supplier_total: int = 0,
) -> RightsReport:
    """
    Deterministic imbalance verdicts from party/type tags.

    Without any tags, falls back to the chunk-level totals.
    """
    clauses = dedupe_clauses(clauses)
    if not clauses:
        return analyze_totals(buyer_total, supplier_total)

    by_id = {p.id: p for p in paragraphs}

    def supporting(party: str, right_type: str) -> List[Paragraph]:
        return [
            by_id.get(c.id) or Paragraph(id=c.id, text="") for c in clauses
            if c.party == party and c.type == right_type
        ]

    findings: List[RightsImbalanceFinding] = []
    liability = _liability_finding(supporting("buyer", "liability"), supporting("supplier", "liability"))
    if liability:
        findings.append(liability)

    for right_type in (RightType.MODIFICATION.value, RightType.TERMINATION.value, RightType.CONTROL.value):
        keywords = SANITY_KEYWORDS[right_type]
        buyer = [p for p in supporting("buyer", right_type) if any(k in p.text.lower() for k in keywords)]
        supplier = [p for p in supporting("supplier", right_type) if any(k in p.text.lower() for k in keywords)]
        if bool(buyer) == bool(supplier):
            continue
        favored = "buyer" if buyer else "supplier"
        findings.append(RightsImbalanceFinding(
            id=f"imbalance_{right_type}",
            type=right_type,
            description=(
                f"Обнаружен дисбаланс в сфере {TYPE_NAMES[right_type]}: {PARTY_NAMES[favored]} имеет "
                f"{max(len(buyer), len(supplier))} прав(о) в этой категории, в то время как у другой стороны их нет."
            ),
            severity=Severity.HIGH if right_type == RightType.MODIFICATION.value else Severity.MEDIUM,
            buyer_rights=len(buyer),
            supplier_rights=len(supplier),
            recommendation=(
                f"Рекомендуется предоставить второй стороне симметричные права в области "
                f"{TYPE_NAMES[right_type]} или ограничить существующие."
            ),
            buyer_rights_clauses=buyer,
            supplier_rights_clauses=supplier,
        ))

    buyer_count = sum(1 for c in clauses if c.party == Party.BUYER.value)
    supplier_count = sum(1 for c in clauses if c.party == Party.SUPPLIER.value)
    return RightsReport(
        findings=findings,
        conclusion=f"Анализ завершен. Найдено {len(findings)} качественных дисбалансов.",
        buyer_total=buyer_count,
        supplier_total=supplier_count,
    )


def analyze_totals(buyer_total: int, supplier_total: int) -> RightsReport:
    """Coarse verdict from raw rights counts when no clause tags exist."""
    report = RightsReport(buyer_total=buyer_total, supplier_total=supplier_total)
    total = buyer_total + supplier_total
    if total == 0:
        report.conclusion = "В договоре не обнаружено явных прав сторон для анализа дисбаланса."
        return report

    buyer_pct = round(buyer_total / total * 100)
    supplier_pct = round(supplier_total / total * 100)
    imbalance_pct = round(abs(buyer_total - supplier_total) / max(buyer_total, supplier_total) * 100)

    if imbalance_pct <= 50:
        report.conclusion = (
            f"Права сторон относительно сбалансированы. Покупатель: {buyer_total} ({buyer_pct}%), "
            f"Поставщик: {supplier_total} ({supplier_pct}%)."
        )
        return report

    favored, other = ("покупателя", "поставщика") if buyer_total > supplier_total else ("поставщика", "покупателя")
    severity = Severity.HIGH if imbalance_pct > 75 else Severity.MEDIUM
    report.findings.append(RightsImbalanceFinding(
        id="imbalance_general_rights",
        type="general_rights",
        description=(
            f"Значительный дисбаланс прав в пользу {favored}. Покупатель: {buyer_total} прав ({buyer_pct}%), "
            f"Поставщик: {supplier_total} прав ({supplier_pct}%)."
        ),
        buyer_rights=buyer_total,
        supplier_rights=supplier_total,
        severity=severity,
        recommendation=f"Рекомендуется сбалансировать права сторон, добавив дополнительные права для {other}.",
    ))
    report.conclusion = f"Обнаружен дисбаланс прав в пользу {favored}. Соотношение: {buyer_pct}% к {supplier_pct}%."
    return report


# -- model classification ---------------------------------------------------

class RightsClassifier:
    """Tags prioritized paragraphs with party and right type, five per call."""

    def __init__(
        self,
        gateway: ModelGateway,
        config: Optional[PipelineConfig] = None,
        progress: Optional[Progress] = None,
    ):
        self.gateway = gateway
        self.config = config or PipelineConfig()
        self.progress = progress or Progress()

    def _request(self, batch: Sequence[PrioritizedItem], operation: str) -> ChatRequest:
        return ChatRequest(
            operation=operation,
            system_instruction=CLASSIFICATION_INSTRUCTION,
            user_prompt=build_classification_prompt([{"id": p.id, "text": p.text} for p in batch]),
            temperature=0.0,
            max_tokens=self.config.classification_max_tokens,
            thinking_budget=self.config.thinking_budget,
        )

    async def classify_batch(self, batch: Sequence[PrioritizedItem]) -> List[ClassifiedClause]:
        """One call; an empty answer is retried once on the next key. Errors -> []."""
        allowed = {p.id for p in batch}
        try:
            response = await self.gateway.request(self._request(batch, "CLASSIFY_RIGHTS"))
            if not response.content.strip():
                await asyncio.sleep(self.config.rights_empty_retry_delay)
                response = await self.gateway.request(self._request(batch, "CLASSIFY_RIGHTS_RETRY"))
            if not response.content.strip():
                return []
        except Exception as e:
            logger.warning(f"[RIGHTS] Classification batch failed: {e}")
            return []
        return [c for c in parse_classifications(extract_json(response.content)) if c.id in allowed]

    async def classify(
        self,
        items: Sequence[AnalysisItem],
        paragraphs: Sequence[Paragraph],
        perspective: str,
    ) -> List[ClassifiedClause]:
        prioritized = prioritize_items(items, paragraphs, perspective, self.config.rights_top_n)
        if len(prioritized) < self.config.rights_min_items:
            logger.info(f"[RIGHTS] Only {len(prioritized)} candidate(s), skipping classification")
            return []

        size = self.config.rights_batch_size
        batches = [prioritized[i:i + size] for i in range(0, len(prioritized), size)]
        clauses: List[ClassifiedClause] = []
        for index, batch in enumerate(batches, start=1):
            clauses.extend(await self.classify_batch(batch))
            percent = round(index / len(batches) * 100)
            self.progress(f"Этап 5/8: Анализ дисбаланса прав... {percent}% завершено")
            if index < len(batches):
                await asyncio.sleep(self.config.rights_batch_delay)
        return dedupe_clauses(clauses)
