"""
Report models - the assembled analysis and its stored form.
"""

import uuid
from collections import Counter
from typing import Optional
from pydantic import Field

from .base import BaseEntity, CamelModel
from .findings import (
    Contradiction,
    RightsImbalanceFinding,
    StructuralAnalysis,
    StructuralDefect,
)

MISSING_CATEGORY = "missing"


class ContractParagraph(CamelModel):
    """Paragraph merged with its verdict, as shown to the user."""
    id: str
    text: str
    category: Optional[str] = None  # Category value, or "missing" for gap entries
    comment: Optional[str] = None
    recommendation: Optional[str] = None


class AnalysisReport(CamelModel):
    """Everything one analysis produces."""
    contract_paragraphs: list[ContractParagraph] = Field(default_factory=list)
    missing_requirements: list[ContractParagraph] = Field(default_factory=list)
    ambiguous_conditions: list[ContractParagraph] = Field(default_factory=list)
    structural_analysis: StructuralAnalysis = Field(default_factory=StructuralAnalysis)
    contradictions: list[Contradiction] = Field(default_factory=list)
    rights_imbalance: list[RightsImbalanceFinding] = Field(default_factory=list)
    structural_defects: list[StructuralDefect] = Field(default_factory=list)

    def stats(self) -> dict:
        """Counts per finding category."""
        categories = Counter(p.category for p in self.contract_paragraphs if p.category)
        return {
            "paragraphs": len(self.contract_paragraphs),
            "classified": sum(categories.values()),
            "checklist": categories.get("checklist", 0),
            "partial": categories.get("partial", 0),
            "risks": categories.get("risk", 0),
            "ambiguous": len(self.ambiguous_conditions),
            "deemed_acceptance": categories.get("deemed_acceptance", 0),
            "external_refs": categories.get("external_refs", 0),
            "missing": len(self.missing_requirements),
            "contradictions": len(self.contradictions),
            "rights_imbalance": len(self.rights_imbalance),
            "structural_defects": len(self.structural_defects),
        }


class StoredAnalysis(BaseEntity):
    """A report persisted under the hash of its contract text."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    contract_hash: str
    inputs_hash: Optional[str] = None  # digest of checklist, risks and perspective
    result: AnalysisReport
