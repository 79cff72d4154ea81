"""
Repository layer - abstracts persistence.

Usage:
    from repositories import get_repository, contract_hash

    repo = get_repository()  # Returns configured backend
    stored = repo.load_by_hash(contract_hash(text))
    repo.save(contract_hash(text), report)

Backends are swappable via config.
"""

from typing import Optional

from .base import AnalysisRepository, contract_hash, inputs_digest
from .json_backend import JsonAnalysisRepository

# Default backend - can be changed via config
_backend: str = "json"
_options: dict = {}
_instance: Optional[AnalysisRepository] = None


def get_repository() -> AnalysisRepository:
    """Get the configured repository instance."""
    global _instance

    if _instance is None:
        if _backend == "json":
            _instance = JsonAnalysisRepository(**_options)
        else:
            raise ValueError(f"Unknown backend: {_backend}")

    return _instance


def configure_backend(backend: str, **kwargs) -> None:
    """Configure the repository backend, e.g. configure_backend("json", base_path=tmp)."""
    global _backend, _options, _instance
    _backend = backend
    _options = kwargs
    _instance = None  # Force re-initialization


__all__ = [
    "AnalysisRepository",
    "JsonAnalysisRepository",
    "configure_backend",
    "contract_hash",
    "get_repository",
    "inputs_digest",
]
