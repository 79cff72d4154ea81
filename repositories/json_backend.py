"""
JSON file backend - one file per analysed contract.

Directory structure:
    {data_dir}/
        {contract_hash}.json   - StoredAnalysis (camelCase)
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from models import AnalysisReport, StoredAnalysis
from .base import AnalysisRepository

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "data/analyses"


class WriteQueue:
    """Thread-safe write serialization."""

    def __init__(self):
        self._lock = threading.Lock()

    def write_json(self, path: Path, data: dict) -> None:
        """Atomic JSON write."""
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp = path.with_suffix(".json.tmp")
            with open(temp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            temp.replace(path)


_write_queue = WriteQueue()


class JsonAnalysisRepository(AnalysisRepository):
    """JSON file implementation of the analysis repository."""

    def __init__(self, base_path: Optional[Path] = None):
        self._base_path = Path(base_path or os.environ.get("AUDITOR_DATA_DIR", DEFAULT_DATA_DIR))

    def _file(self, contract_hash: str) -> Path:
        return self._base_path / f"{contract_hash}.json"

    def save(self, contract_hash: str, report: AnalysisReport, inputs_hash: Optional[str] = None) -> StoredAnalysis:
        existing = self.load_by_hash(contract_hash)
        if existing:
            existing.result = report
            existing.inputs_hash = inputs_hash
            existing.touch()
            stored = existing
        else:
            stored = StoredAnalysis(contract_hash=contract_hash, inputs_hash=inputs_hash, result=report)

        _write_queue.write_json(self._file(contract_hash), stored.to_json_dict())
        logger.info(f"[STORE] Saved analysis {stored.id} for {contract_hash[:12]}")
        return stored

    def load_by_hash(self, contract_hash: str) -> Optional[StoredAnalysis]:
        path = self._file(contract_hash)
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return StoredAnalysis.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"[STORE] Corrupt analysis file {path.name}: {e}")
            return None

    def delete(self, contract_hash: str) -> bool:
        path = self._file(contract_hash)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list(self) -> list[StoredAnalysis]:
        if not self._base_path.exists():
            return []

        analyses = []
        for path in self._base_path.glob("*.json"):
            stored = self.load_by_hash(path.stem)
            if stored:
                analyses.append(stored)

        return sorted(analyses, key=lambda a: a.updated_at, reverse=True)
