"""
Final narrative summary over all findings.
"""

import logging
from typing import Dict, List, Optional, Sequence

from models import (
    AnalysisItem,
    Contradiction,
    MissingRequirement,
    RightsImbalanceFinding,
    StructuralAnalysis,
)
from .client import ChatRequest, ModelGateway
from .prompts import build_summary_prompt, expert_instruction
from .repair import extract_json
from .responses import parse_summary
from .settings import PipelineConfig

logger = logging.getLogger(__name__)


def top_comments(items: Sequence[AnalysisItem], category: str, limit: int) -> List[str]:
    return [i.comment for i in items if i.category == category and i.comment][:limit]


def collect_sections(
    items: Sequence[AnalysisItem],
    missing: Sequence[MissingRequirement],
    contradictions: Sequence[Contradiction],
    imbalance: Sequence[RightsImbalanceFinding],
) -> Dict[str, List[str]]:
    """The most relevant lines of every finding category."""
    return {
        "risks": top_comments(items, "risk", 5),
        "deemed_acceptance": top_comments(items, "deemed_acceptance", 3),
        "external_refs": top_comments(items, "external_refs", 3),
        "partial": top_comments(items, "partial", 3),
        "missing": [m.requirement or m.comment for m in missing[:5]],
        "contradictions": [c.description for c in contradictions[:3]],
        "imbalance": [f.description for f in imbalance[:3]],
    }


class FinalSummarizer:
    """
    One model call producing the closing assessment.

    Not retried; an unreadable answer degrades to default fields.
    """

    def __init__(self, gateway: ModelGateway, config: Optional[PipelineConfig] = None):
        self.gateway = gateway
        self.config = config or PipelineConfig()

    async def summarize(
        self,
        items: Sequence[AnalysisItem],
        missing: Sequence[MissingRequirement],
        contradictions: Sequence[Contradiction],
        imbalance: Sequence[RightsImbalanceFinding],
        perspective: str,
    ) -> StructuralAnalysis:
        sections = collect_sections(items, missing, contradictions, imbalance)
        stats = {
            "items": len(items),
            "risks": len(sections["risks"]),
            "missing": len(missing),
            "contradictions": len(contradictions),
            "imbalance": len(imbalance),
        }
        request = ChatRequest(
            operation="FINAL_STRUCTURAL_ANALYSIS",
            system_instruction=expert_instruction(perspective),
            user_prompt=build_summary_prompt(perspective, sections, stats),
            temperature=0.1,
            max_tokens=self.config.summary_max_tokens,
            thinking_budget=self.config.thinking_budget,
        )
        response = await self.gateway.request(request)
        summary = parse_summary(extract_json(response.content))
        logger.info(f"[SUMMARY] {len(summary.key_risks)} key risk(s), {len(summary.recommendations)} recommendation(s)")
        return summary
