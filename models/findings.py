"""
Findings - contradictions, rights imbalance, structural defects, gaps, summary.
"""

from enum import Enum
from typing import Optional
from pydantic import Field, field_validator

from .base import CamelModel, blank_to_none, coerce_enum
from .contract import Paragraph


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContradictionType(str, Enum):
    TEMPORAL = "temporal"
    FINANCIAL = "financial"
    QUANTITATIVE = "quantitative"
    LEGAL = "legal"
    PROCEDURAL = "procedural"
    LOGICAL = "logical"
    PRIORITY = "priority"


class DefectType(str, Enum):
    BROKEN_REFERENCE = "broken_reference"
    SELF_REFERENCE = "self_reference"
    CYCLIC_REFERENCE = "cyclic_reference"
    LOGICAL_ERROR = "logical_error"


class _SeverityMixin(CamelModel):
    severity: Severity = Severity.MEDIUM

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value):
        return coerce_enum(value, Severity, Severity.MEDIUM) or Severity.MEDIUM


class ConflictingSide(CamelModel):
    text: str = ""
    value: str = ""

    @field_validator("text", "value", mode="before")
    @classmethod
    def _stringify(cls, value):
        return "" if value is None else str(value)


class ConflictingParagraphs(CamelModel):
    paragraph1: ConflictingSide = Field(default_factory=ConflictingSide)
    paragraph2: ConflictingSide = Field(default_factory=ConflictingSide)


class Contradiction(_SeverityMixin):
    """Two contract provisions that cannot both hold."""
    id: str
    type: ContradictionType = ContradictionType.LOGICAL
    description: str = ""
    conflicting_paragraphs: ConflictingParagraphs = Field(default_factory=ConflictingParagraphs)
    recommendation: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        return coerce_enum(value, ContradictionType, ContradictionType.LOGICAL) or ContradictionType.LOGICAL

    @field_validator("description", "recommendation", mode="before")
    @classmethod
    def _text(cls, value):
        return "" if value is None else str(value)


class RightsImbalanceFinding(_SeverityMixin):
    """Asymmetry between the parties in one category of rights."""
    id: str
    type: str
    description: str
    buyer_rights: int = 0
    supplier_rights: int = 0
    recommendation: str = ""
    buyer_rights_clauses: list[Paragraph] = Field(default_factory=list)
    supplier_rights_clauses: list[Paragraph] = Field(default_factory=list)


class StructuralDefect(_SeverityMixin):
    """Broken, self or cyclic cross-reference, or a logical reference error."""
    id: str
    type: DefectType = DefectType.LOGICAL_ERROR
    description: str = ""
    recommendation: str = ""
    location: str = ""
    context: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        return coerce_enum(value, DefectType, DefectType.LOGICAL_ERROR) or DefectType.LOGICAL_ERROR

    @field_validator("description", "recommendation", "location", mode="before")
    @classmethod
    def _text(cls, value):
        return "" if value is None else str(value)


class MissingRequirement(CamelModel):
    """Checklist requirement with no matching paragraph."""
    requirement: str
    comment: str


class StructuralAnalysis(CamelModel):
    """Closing narrative over all findings."""
    overall_assessment: str = "Анализ выполнен"
    key_risks: list[str] = Field(default_factory=list)
    structure_comments: str = ""
    legal_compliance: str = ""
    recommendations: list[str] = Field(default_factory=list)

    @field_validator("key_risks", "recommendations", mode="before")
    @classmethod
    def _listify(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [str(v) for v in value if v]

    @field_validator("overall_assessment", mode="before")
    @classmethod
    def _assessment(cls, value):
        return blank_to_none(value) or "Анализ выполнен"

    @field_validator("structure_comments", "legal_compliance", mode="before")
    @classmethod
    def _text(cls, value):
        return "" if value is None else str(value)
