"""
Contradiction finding.

Two paths:
- digest: one model call over the classified paragraphs (default)
- entities: regex entity extraction, local candidate pairing, one
  verification call per candidate

Both are best effort and never raise.
"""

import logging
import re
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception, stop_after_attempt, wait_chain, wait_fixed

from models import AnalysisItem, ConflictingParagraphs, ConflictingSide, Contradiction, Paragraph
from .client import ChatRequest, ModelGateway
from .errors import (
    AllKeysExhausted,
    is_network_error,
    is_quota_error,
    is_rate_limit_error,
    is_token_limit_error,
)
from .progress import Progress
from .prompts import (
    VERIFICATION_INSTRUCTION,
    build_contradictions_prompt,
    build_verification_prompt,
    expert_instruction,
)
from .repair import extract_json
from .responses import parse_contradictions, parse_verification
from .settings import PipelineConfig

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 50
PLACEHOLDER_VALUE = "не определено"

DURATION = "срок"
PERCENT = "процент"
SUM = "сумма"
LIABILITY = "ответственность"
KIND_SLUGS = {DURATION: "duration", PERCENT: "percent", SUM: "sum", LIABILITY: "liability"}

DURATION_PATTERN = re.compile(r"(\d+)\s*(дн|день|дня|дней|календарн|рабоч|месяц|год)")
PERCENT_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*%|(\d+(?:[.,]\d+)?)\s*процент")
SUM_PATTERN = re.compile(r"(\d+(?:\s?\d{3})*(?:[.,]\d+)?)\s*(руб|рубл|коп|тыс|млн|тысяч|миллион)")
LIABILITY_PATTERN = re.compile(r"(ответственность|обязательство|обязанность|штраф|санкции|пеня|пени|неустойка)")

STOPWORDS = {"этом", "того", "этого", "которые", "которых", "может", "должен", "должна", "будет"}
DURATION_ANCHORS = ("поставк", "платеж", "оплат")
PERCENT_ANCHORS = ("неустойк", "пеня", "пени", "штраф")
SUM_ANCHORS = ("цен", "стоимост", "оплат", "платеж")
_WORD = re.compile(r"[0-9a-zа-яё]+")


@dataclass
class Entity:
    """Typed value found in a paragraph."""
    paragraph_id: str
    text: str
    kind: str
    value: str
    context: str


@dataclass
class Candidate:
    """Pair of entities that may contradict each other."""
    first: Entity
    second: Entity
    type: str

    @property
    def id(self) -> str:
        return f"contradiction_{KIND_SLUGS[self.first.kind]}_{self.first.paragraph_id}_{self.second.paragraph_id}"


# -- entity extraction ------------------------------------------------------

def _context(text: str, start: int, end: int) -> str:
    return text[max(0, start - CONTEXT_RADIUS):min(len(text), end + CONTEXT_RADIUS)]


def extract_entities(paragraphs: Iterable[Paragraph]) -> List[Entity]:
    """Durations, percentages, sums and liability mentions with context windows."""
    entities: List[Entity] = []
    for paragraph in paragraphs:
        if paragraph.is_overlap:
            continue
        lowered = paragraph.text.lower()

        for match in DURATION_PATTERN.finditer(lowered):
            entities.append(Entity(
                paragraph.id, paragraph.text, DURATION,
                f"{match.group(1)} {match.group(2)}", _context(lowered, match.start(), match.end()),
            ))

        for match in PERCENT_PATTERN.finditer(lowered):
            number = match.group(1) or match.group(2)
            entities.append(Entity(
                paragraph.id, paragraph.text, PERCENT,
                f"{number}%", _context(lowered, match.start(), match.end()),
            ))

        for match in SUM_PATTERN.finditer(lowered):
            entities.append(Entity(
                paragraph.id, paragraph.text, SUM,
                f"{match.group(1)} {match.group(2)}", _context(lowered, match.start(), match.end()),
            ))

        if LIABILITY_PATTERN.search(lowered):
            percent = PERCENT_PATTERN.search(lowered)
            amount = SUM_PATTERN.search(lowered)
            if percent:
                value = f"{percent.group(1) or percent.group(2)}%"
            elif amount:
                value = f"{amount.group(1)} {amount.group(2)}"
            else:
                value = PLACEHOLDER_VALUE
            entities.append(Entity(paragraph.id, paragraph.text, LIABILITY, value, lowered))

    logger.info(f"[CONTRADICTIONS] {len(entities)} entit(ies) extracted")
    return entities


# -- candidate pairing ------------------------------------------------------

def content_words(context: str) -> set:
    return {w for w in _WORD.findall(context.lower()) if len(w) > 3 and w not in STOPWORDS}


def shares_anchor(first: str, second: str, anchors: Sequence[str]) -> bool:
    return any(anchor in first and anchor in second for anchor in anchors)


def _number(value: str) -> Optional[float]:
    match = re.search(r"\d+(?:[.,]\d+)?", value)
    return float(match.group(0).replace(",", ".")) if match else None


def _pair_type(first: Entity, second: Entity) -> Optional[str]:
    common = len(content_words(first.context) & content_words(second.context))

    if first.kind == DURATION:
        if common >= 3 or (common >= 2 and shares_anchor(first.context, second.context, DURATION_ANCHORS)):
            return "temporal"
    elif first.kind == PERCENT:
        a, b = _number(first.value), _number(second.value)
        if a is None or b is None or abs(a - b) <= 0.1:
            return None
        if common >= 2 or shares_anchor(first.context, second.context, PERCENT_ANCHORS):
            return "quantitative"
    elif first.kind == SUM:
        if common >= 3 or (common >= 2 and shares_anchor(first.context, second.context, SUM_ANCHORS)):
            return "financial"
    elif first.kind == LIABILITY:
        if PLACEHOLDER_VALUE not in (first.value, second.value):
            return "financial"
    return None


def find_candidates(entities: Sequence[Entity]) -> List[Candidate]:
    """
    Same-type entities from different paragraphs, differing values, similar context.

    At most one candidate per entity kind and paragraph pair.
    """
    by_kind: Dict[str, List[Entity]] = {}
    for entity in entities:
        by_kind.setdefault(entity.kind, []).append(entity)

    candidates: List[Candidate] = []
    seen = set()
    for group in by_kind.values():
        for first, second in combinations(group, 2):
            if first.paragraph_id == second.paragraph_id or first.value == second.value:
                continue
            kind = _pair_type(first, second)
            if not kind:
                continue
            candidate = Candidate(first, second, kind)
            if candidate.id in seen:
                continue
            seen.add(candidate.id)
            candidates.append(candidate)

    logger.info(f"[CONTRADICTIONS] {len(candidates)} candidate(s)")
    return candidates


# -- model-backed finder ----------------------------------------------------

class ContradictionFinder:
    """Finds contradictions between contract provisions. Never raises."""

    def __init__(
        self,
        gateway: ModelGateway,
        config: Optional[PipelineConfig] = None,
        progress: Optional[Progress] = None,
    ):
        self.gateway = gateway
        self.config = config or PipelineConfig()
        self.progress = progress or Progress()

    async def verify_candidate(self, candidate: Candidate) -> Optional[Contradiction]:
        """One verification call. Confirmed -> Contradiction, anything else -> None."""
        request = ChatRequest(
            operation="CONTRADICTION_VERIFICATION",
            system_instruction=VERIFICATION_INSTRUCTION,
            user_prompt=build_verification_prompt(
                candidate.first.text, candidate.first.value,
                candidate.second.text, candidate.second.value,
            ),
            temperature=0.1,
            max_tokens=self.config.verification_max_tokens,
            thinking_budget=self.config.thinking_budget,
        )
        try:
            response = await self.gateway.request(request)
        except Exception as e:
            logger.warning(f"[CONTRADICTIONS] Verification of {candidate.id} failed: {e}")
            return None

        verdict = parse_verification(extract_json(response.content))
        if not verdict["is_contradiction"]:
            return None
        return Contradiction(
            id=candidate.id,
            type=candidate.type,
            description=verdict["explanation"],
            conflicting_paragraphs=ConflictingParagraphs(
                paragraph1=ConflictingSide(text=candidate.first.text, value=candidate.first.value),
                paragraph2=ConflictingSide(text=candidate.second.text, value=candidate.second.value),
            ),
            severity=verdict["severity"],
            recommendation=verdict["recommendation"],
        )

    async def find_entity_contradictions(self, paragraphs: Sequence[Paragraph]) -> List[Contradiction]:
        """Extraction, pairing, then sequential verification of the first candidates."""
        candidates = find_candidates(extract_entities(paragraphs))
        confirmed = []
        for candidate in candidates[:self.config.max_verified_candidates]:
            contradiction = await self.verify_candidate(candidate)
            if contradiction:
                confirmed.append(contradiction)
        logger.info(f"[CONTRADICTIONS] {len(confirmed)} of {len(candidates)} candidate(s) confirmed")
        return confirmed

    def build_digest(self, items: Sequence[AnalysisItem], paragraphs: Sequence[Paragraph]) -> List[Dict[str, str]]:
        texts = {p.id: p.text for p in paragraphs}
        digest = []
        for item in items:
            if not item.category or item.id not in texts:
                continue
            digest.append({
                "id": item.id,
                "text": texts[item.id][:500],
                "category": item.category,
                "comment": (item.comment or "")[:150],
            })
            if len(digest) >= self.config.contradiction_digest_size:
                break
        return digest

    def _should_retry(self, error: BaseException) -> bool:
        if isinstance(error, AllKeysExhausted):
            return False
        if is_network_error(error) or is_rate_limit_error(error):
            return True
        if is_quota_error(error) or is_token_limit_error(error):
            return False
        return bool(str(error))

    async def find_contradictions(
        self,
        items: Sequence[AnalysisItem],
        paragraphs: Sequence[Paragraph],
        perspective: str = "buyer",
    ) -> List[Contradiction]:
        """
        Digest path: one call over up to 25 classified paragraphs.

        Retries network, rate limit and unknown errors with escalating
        delays. Quota and token limit errors end the search at once.
        """
        digest = self.build_digest(items, paragraphs)
        if len(digest) < self.config.contradiction_min_items:
            logger.info(f"[CONTRADICTIONS] Only {len(digest)} classified item(s), skipping")
            return []

        request = ChatRequest(
            operation="FIND_CONTRADICTIONS",
            system_instruction=expert_instruction(perspective),
            user_prompt=build_contradictions_prompt(digest, self.config.max_contradictions),
            temperature=0.1,
            max_tokens=self.config.contradiction_max_tokens,
            thinking_budget=self.config.thinking_budget,
        )
        delays = self.config.contradiction_retry_delays
        total = len(delays) + 1

        def before_sleep(state: RetryCallState) -> None:
            logger.warning(f"[CONTRADICTIONS] Attempt {state.attempt_number}/{total} failed: {state.outcome.exception()}")
            self.progress(f"Этап 4/8: Поиск противоречий... Повторная попытка {state.attempt_number + 1}/{total}")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(total),
            wait=wait_chain(*(wait_fixed(delay) for delay in delays)),
            retry=retry_if_exception(self._should_retry),
            before_sleep=before_sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self.gateway.request(request)
                    contradictions = parse_contradictions(
                        extract_json(response.content), self.config.max_contradictions
                    )
        except RetryError as e:
            logger.warning(f"[CONTRADICTIONS] Giving up: {e.last_attempt.exception()}")
            return []
        except Exception as error:
            logger.warning(f"[CONTRADICTIONS] Giving up: {error}")
            return []
        logger.info(f"[CONTRADICTIONS] {len(contradictions)} found")
        return contradictions

    async def find(
        self,
        items: Sequence[AnalysisItem],
        paragraphs: Sequence[Paragraph],
        perspective: str,
    ) -> List[Contradiction]:
        """Run the configured strategy: digest, entities or both."""
        strategy = self.config.contradiction_strategy
        found: List[Contradiction] = []
        if strategy in ("digest", "both"):
            found.extend(await self.find_contradictions(items, paragraphs, perspective))
        if strategy in ("entities", "both"):
            found.extend(await self.find_entity_contradictions(paragraphs))

        unique: Dict[str, Contradiction] = {}
        for contradiction in found:
            unique.setdefault(contradiction.id, contradiction)
        return list(unique.values())
