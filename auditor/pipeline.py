"""
Contract analysis pipeline.

Stages:
1. Split into paragraphs and chunks
2. Analyze chunks in parallel batches
3. Missing checklist requirements
4. Contradictions (best effort)
5. Rights imbalance (best effort)
6. Structural defects (best effort)
7. Final summary
8. Report assembly

Only stages 1, 2 and 7 can fail the run; every failure reaches the caller
as an AnalysisError carrying a user-facing message.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from models import (
    AnalysisItem,
    AnalysisReport,
    ChunkResult,
    ContractParagraph,
    MissingRequirement,
    Paragraph,
    Perspective,
    MISSING_CATEGORY,
)
from repositories.base import AnalysisRepository, contract_hash, inputs_digest
from .chunks import ChunkAnalyzer
from .client import ModelGateway
from .contradictions import ContradictionFinder
from .defects import StructuralDefectFinder
from .errors import AnalysisError, ConfigurationError
from .gaps import find_missing_requirements
from .progress import Progress, ProgressCallback
from .rights import (
    RightsClassifier,
    RightsReport,
    analyze_imbalance,
    chunk_clauses,
    collect_chunk_rights,
    dedupe_clauses,
)
from .scheduler import ParallelScheduler
from .segment import Segmenter
from .settings import PipelineConfig
from .summary import FinalSummarizer

logger = logging.getLogger(__name__)

UNDEFINED_REQUIREMENT = "Неопределенное требование"

# (markers in the error text, message shown to the user)
ERROR_MESSAGES = (
    (("candidate was blocked",),
     "Запрос был заблокирован системой безопасности. Попробуйте изменить формулировку."),
    (("все api ключи исчерпали свои квоты",),
     "Все API ключи исчерпали свои квоты. Попробуйте позже или добавьте новые ключи."),
    (("resource has been exhausted", "too many requests", "rate limit"),
     "Превышен лимит запросов к DeepSeek API. Попробуйте позже или добавьте новые API ключи."),
    (("не удалось распарсить", "failed to parse"),
     "Не удалось распарсить ответ от DeepSeek. Проверьте корректность данных и попробуйте снова."),
)
GENERIC_ERROR_PREFIX = "Ошибка при анализе договора: "


def _error_text(error: BaseException) -> str:
    parts = [str(error)]
    cause = error.__cause__
    if cause is not None and str(cause) not in parts:
        parts.append(str(cause))
    return " | ".join(p for p in parts if p)


def translate_error(error: BaseException) -> AnalysisError:
    """Map any pipeline failure onto a user-facing AnalysisError."""
    if isinstance(error, AnalysisError):
        return error
    text = _error_text(error)
    lowered = text.lower()
    for markers, message in ERROR_MESSAGES:
        if any(m in lowered for m in markers):
            return AnalysisError(message)
    return AnalysisError(f"{GENERIC_ERROR_PREFIX}{text or type(error).__name__}")


def coerce_perspective(value) -> str:
    """"buyer" or "supplier"; anything else analyses for the buyer."""
    text = str(getattr(value, "value", value) or "").strip().lower()
    return text if text in (Perspective.BUYER.value, Perspective.SUPPLIER.value) else Perspective.BUYER.value


def normalize_items(results: Sequence[ChunkResult]) -> List[AnalysisItem]:
    """Flatten chunk results, reclassifying commented null items as ambiguous."""
    items = []
    for result in results:
        for item in result.analysis:
            if item.is_inconsistent:
                logger.debug(f"[PIPELINE] {item.id}: null category with comment, marking ambiguous")
            items.append(item.normalized())
    return items


def merge_paragraphs(paragraphs: Sequence[Paragraph], items: Sequence[AnalysisItem]) -> List[ContractParagraph]:
    """Every paragraph with the first verdict given for it."""
    verdicts: Dict[str, AnalysisItem] = {}
    for item in items:
        verdicts.setdefault(item.id, item)

    merged = []
    for paragraph in paragraphs:
        verdict = verdicts.get(paragraph.id)
        merged.append(ContractParagraph(
            id=paragraph.id,
            text=paragraph.text,
            category=verdict.category if verdict else None,
            comment=verdict.comment if verdict else None,
            recommendation=verdict.recommendation if verdict else None,
        ))
    return merged


def missing_paragraphs(missing: Sequence[MissingRequirement]) -> List[ContractParagraph]:
    return [
        ContractParagraph(
            id=f"missing_{i}",
            text=m.requirement or UNDEFINED_REQUIREMENT,
            category=MISSING_CATEGORY,
            comment=m.comment,
            recommendation=None,
        )
        for i, m in enumerate(missing, start=1)
    ]


class ContractAnalyzer:
    """
    Runs the full analysis of one contract.

    Usage:
        analyzer = ContractAnalyzer(gateway, PipelineConfig(), repository)
        report = await analyzer.analyze(contract, checklist, risks, "buyer")
    """

    def __init__(
        self,
        gateway: ModelGateway,
        config: Optional[PipelineConfig] = None,
        repository: Optional[AnalysisRepository] = None,
    ):
        self.gateway = gateway
        self.config = config or PipelineConfig()
        self.repository = repository
        self.segmenter = Segmenter(self.config)

    # -- cache --------------------------------------------------------------

    def _load_cached(self, key: str, inputs: str) -> Optional[AnalysisReport]:
        """Stored report for this contract, only if it was made from the same inputs."""
        if not (self.repository and self.config.use_cache):
            return None
        try:
            stored = self.repository.load_by_hash(key)
        except Exception as e:
            logger.warning(f"[PIPELINE] Cache lookup failed: {e}")
            return None
        if not stored:
            return None
        if stored.inputs_hash != inputs:
            logger.info(f"[PIPELINE] Stored analysis {stored.id} used other inputs, re-analyzing")
            return None
        logger.info(f"[PIPELINE] Reusing stored analysis {stored.id}")
        return stored.result

    def _store(self, key: str, inputs: str, report: AnalysisReport) -> None:
        if not self.repository:
            return
        try:
            self.repository.save(key, report, inputs_hash=inputs)
        except Exception as e:
            logger.error(f"[PIPELINE] Could not persist analysis: {e}")

    # -- best-effort stages -------------------------------------------------

    async def _contradictions(self, items, paragraphs, perspective, progress: Progress):
        progress("Этап 4/8: Поиск противоречий между пунктами...")
        try:
            finder = ContradictionFinder(self.gateway, self.config, progress)
            return await finder.find(items, paragraphs, perspective)
        except Exception as e:
            logger.warning(f"[PIPELINE] Contradiction search failed: {e}")
            return []

    async def _rights(self, items, paragraphs, results, perspective, progress: Progress) -> RightsReport:
        progress("Этап 5/8: Анализ дисбаланса прав... 0% завершено")
        totals = collect_chunk_rights(results)
        clauses = chunk_clauses(results)
        if self.config.rights_reclassify:
            try:
                classifier = RightsClassifier(self.gateway, self.config, progress)
                clauses = dedupe_clauses(clauses + await classifier.classify(items, paragraphs, perspective))
            except Exception as e:
                logger.warning(f"[PIPELINE] Rights classification failed, using chunk tags: {e}")
        try:
            report = analyze_imbalance(clauses, paragraphs, totals.buyer_total, totals.supplier_total)
        except Exception as e:
            logger.warning(f"[PIPELINE] Rights analysis failed: {e}")
            return RightsReport()
        logger.info(f"[PIPELINE] {report.conclusion}")
        return report

    async def _defects(self, paragraphs, progress: Progress):
        progress("Этап 6/8: Поиск структурных дефектов...")
        try:
            return await StructuralDefectFinder(self.gateway, self.config).find(paragraphs)
        except Exception as e:
            logger.warning(f"[PIPELINE] Structural defect search failed: {e}")
            return []

    # -- run ----------------------------------------------------------------

    async def analyze(
        self,
        contract_text: str,
        checklist_text: str,
        risk_text: str = "",
        perspective: str = Perspective.BUYER.value,
        progress: Optional[ProgressCallback] = None,
    ) -> AnalysisReport:
        """
        Analyze a contract.

        Raises:
            AnalysisError: any stage that cannot degrade failed
            ConfigurationError: the pipeline is not usable as configured
        """
        notify = Progress(progress)
        perspective = coerce_perspective(perspective)
        key = contract_hash(contract_text)
        inputs = inputs_digest(checklist_text, risk_text, perspective)

        cached = self._load_cached(key, inputs)
        if cached:
            notify("Анализ завершен!")
            return cached

        try:
            report = await self._run(contract_text, checklist_text, risk_text, perspective, notify)
        except (AnalysisError, ConfigurationError):
            raise
        except Exception as error:
            logger.error(f"[PIPELINE] Analysis failed: {error}")
            raise translate_error(error) from error

        self._store(key, inputs, report)
        notify("Анализ завершен!")
        return report

    async def _run(
        self,
        contract_text: str,
        checklist_text: str,
        risk_text: str,
        perspective: str,
        progress: Progress,
    ) -> AnalysisReport:
        progress("Этап 1/8: Подготовка данных и разбивка на чанки...")
        paragraphs = self.segmenter.split(contract_text)
        if not paragraphs:
            raise AnalysisError(f"{GENERIC_ERROR_PREFIX}в тексте договора не найдено ни одного пункта")
        chunks = self.segmenter.chunk(paragraphs)
        logger.info(f"[PIPELINE] {len(paragraphs)} paragraph(s) in {len(chunks)} chunk(s)")

        progress("Этап 2/8: Анализ содержимого договора... 0% завершено")
        scheduler = ParallelScheduler(
            ChunkAnalyzer(self.gateway, self.config), self.gateway.pool, self.config, progress
        )
        results = await scheduler.run_all(chunks, checklist_text, perspective, risk_text)
        items = normalize_items(results)

        progress("Этап 3/8: Поиск отсутствующих требований...")
        missing = find_missing_requirements(items, checklist_text)

        contradictions = await self._contradictions(items, paragraphs, perspective, progress)
        rights = await self._rights(items, paragraphs, results, perspective, progress)
        defects = await self._defects(paragraphs, progress)

        progress("Этап 7/8: Формирование итогового структурного анализа...")
        summary = await FinalSummarizer(self.gateway, self.config).summarize(
            items, missing, contradictions, rights.findings, perspective
        )

        progress("Этап 8/8: Финализация результатов...")
        merged = merge_paragraphs(paragraphs, items)
        report = AnalysisReport(
            contract_paragraphs=merged,
            missing_requirements=missing_paragraphs(missing),
            ambiguous_conditions=[p for p in merged if p.category == "ambiguous"],
            structural_analysis=summary,
            contradictions=contradictions,
            rights_imbalance=rights.findings,
            structural_defects=defects,
        )
        logger.info(f"[PIPELINE] Done: {report.stats()}")
        return report

    def run_analysis(
        self,
        contract_text: str,
        checklist_text: str,
        risk_text: str = "",
        perspective: str = Perspective.BUYER.value,
        progress: Optional[ProgressCallback] = None,
    ) -> AnalysisReport:
        """Blocking wrapper for callers without an event loop (CLI, Flask)."""
        return asyncio.run(self.analyze(contract_text, checklist_text, risk_text, perspective, progress))
