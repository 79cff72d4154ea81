"""
Repository base classes - define the interface.
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Optional

from models import AnalysisReport, StoredAnalysis


def contract_hash(text: str) -> str:
    """Stable key for a contract: sha256 of its text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def inputs_digest(checklist_text: str, risk_text: str, perspective: str) -> str:
    """Digest of everything besides the contract that shapes a report."""
    payload = "\x1f".join((checklist_text or "", risk_text or "", perspective or ""))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class AnalysisRepository(ABC):
    """Stored analyses, keyed by the hash of the contract they describe."""

    @abstractmethod
    def save(self, contract_hash: str, report: AnalysisReport, inputs_hash: Optional[str] = None) -> StoredAnalysis:
        """Store (or replace) the analysis for a contract, with the digest of its other inputs."""
        pass

    @abstractmethod
    def load_by_hash(self, contract_hash: str) -> Optional[StoredAnalysis]:
        """Stored analysis for a contract, or None."""
        pass

    @abstractmethod
    def delete(self, contract_hash: str) -> bool:
        """Delete by contract hash. Returns True if deleted."""
        pass

    @abstractmethod
    def list(self) -> list[StoredAnalysis]:
        """All stored analyses, newest first."""
        pass

    def exists(self, contract_hash: str) -> bool:
        return self.load_by_hash(contract_hash) is not None
