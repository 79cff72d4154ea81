"""
Analysis models - per-paragraph classification and rights tagging.
"""

from enum import Enum
from typing import Optional
from pydantic import Field, field_validator

from .base import CamelModel, blank_to_none, coerce_enum


class Category(str, Enum):
    """Paragraph classification against the checklist."""
    CHECKLIST = "checklist"
    PARTIAL = "partial"
    RISK = "risk"
    AMBIGUOUS = "ambiguous"
    DEEMED_ACCEPTANCE = "deemed_acceptance"
    EXTERNAL_REFS = "external_refs"


class Perspective(str, Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"


class Party(str, Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"
    BOTH = "both"
    NEUTRAL = "neutral"


class RightType(str, Enum):
    TERMINATION = "termination"
    MODIFICATION = "modification"
    LIABILITY = "liability"
    CONTROL = "control"
    PROCEDURAL = "procedural"


class AnalysisItem(CamelModel):
    """
    Model verdict for one paragraph.

    A null category means a neutral paragraph and must carry no comment.
    Unknown categories are coerced to ambiguous.
    """
    id: str
    category: Optional[Category] = None
    comment: Optional[str] = None
    recommendation: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value):
        return coerce_enum(value, Category, Category.AMBIGUOUS)

    @field_validator("comment", "recommendation", mode="before")
    @classmethod
    def _blank_text(cls, value):
        return blank_to_none(value)

    @property
    def is_inconsistent(self) -> bool:
        """Null category with commentary attached."""
        return self.category is None and (self.comment is not None or self.recommendation is not None)

    def normalized(self) -> "AnalysisItem":
        """Copy with a null-but-commented item reclassified as ambiguous."""
        if self.is_inconsistent:
            return self.model_copy(update={"category": Category.AMBIGUOUS.value})
        return self


class ClassifiedClause(CamelModel):
    """Which party a rights-bearing paragraph benefits, and the kind of right."""
    id: str
    party: Party
    type: RightType

    @field_validator("party", mode="before")
    @classmethod
    def _coerce_party(cls, value):
        return coerce_enum(value, Party, Party.NEUTRAL)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        return coerce_enum(value, RightType, RightType.PROCEDURAL)


class ChunkRightsAnalysis(CamelModel):
    """Rights tally the model reports alongside a chunk's classification."""
    buyer_rights_count: int = 0
    supplier_rights_count: int = 0
    rights_details: list[str] = Field(default_factory=list)
    classified_clauses: list[ClassifiedClause] = Field(default_factory=list)


class ChunkResult(CamelModel):
    """Outcome of analyzing one chunk."""
    chunk_id: str
    analysis: list[AnalysisItem] = Field(default_factory=list)
    chunk_rights_analysis: Optional[ChunkRightsAnalysis] = None
    truncated: bool = False
