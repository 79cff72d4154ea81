"""
Domain models - single source of truth for all value objects.

Design principles:
- Every entity defined once
- camelCase on the wire, snake_case in Python
- Validation and coercion at the model boundary
- Backend-agnostic (repository handles persistence)
"""

from .base import BaseEntity, CamelModel, TimestampMixin
from .contract import Paragraph, Chunk, OVERLAP_ID_PREFIX
from .analysis import (
    AnalysisItem,
    Category,
    ChunkResult,
    ChunkRightsAnalysis,
    ClassifiedClause,
    Party,
    Perspective,
    RightType,
)
from .findings import (
    ConflictingParagraphs,
    ConflictingSide,
    Contradiction,
    ContradictionType,
    DefectType,
    MissingRequirement,
    RightsImbalanceFinding,
    Severity,
    StructuralAnalysis,
    StructuralDefect,
)
from .report import AnalysisReport, ContractParagraph, StoredAnalysis, MISSING_CATEGORY

__all__ = [
    # Base
    "BaseEntity",
    "CamelModel",
    "TimestampMixin",
    # Contract
    "Paragraph",
    "Chunk",
    "OVERLAP_ID_PREFIX",
    # Analysis
    "AnalysisItem",
    "Category",
    "ChunkResult",
    "ChunkRightsAnalysis",
    "ClassifiedClause",
    "Party",
    "Perspective",
    "RightType",
    # Findings
    "ConflictingParagraphs",
    "ConflictingSide",
    "Contradiction",
    "ContradictionType",
    "DefectType",
    "MissingRequirement",
    "RightsImbalanceFinding",
    "Severity",
    "StructuralAnalysis",
    "StructuralDefect",
    # Report
    "AnalysisReport",
    "ContractParagraph",
    "StoredAnalysis",
    "MISSING_CATEGORY",
]
