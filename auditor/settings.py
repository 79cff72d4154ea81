"""
Pipeline tunables.

Everything that was a magic number in the analysis flow lives here so tests
can run with zero delays and deployments can override values from YAML.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Tuple


THINKING_TOKEN_BUDGET = 4096
OVERLAP_MARKER = "[КОНТЕКСТ ИЗ ПРЕДЫДУЩЕГО ЧАНКА]:"


@dataclass
class PipelineConfig:
    """Configuration for one analysis run."""
    # segmenter
    max_tokens_per_chunk: int = 600
    overlap_sentences: int = 2
    max_paragraph_length: int = 1500
    min_content_length: int = 20
    max_paragraphs_per_chunk: int = 6

    # model calls
    thinking_budget: int = THINKING_TOKEN_BUDGET
    chunk_max_tokens: int = 8000
    summary_max_tokens: int = 8000
    contradiction_max_tokens: int = 8192
    verification_max_tokens: int = 4000
    classification_max_tokens: int = 1000
    defects_max_tokens: int = 4000

    # chunk analysis retries
    chunk_attempts: int = 3
    rotation_delay: float = 2.0
    backoff_step: float = 1.0

    # scheduler
    batch_cap: int = 8
    batch_delay: float = 4.0
    fast_batch_factor: float = 0.7
    fast_batch_min_keys: int = 6

    # contradictions
    contradiction_strategy: str = "digest"
    contradiction_retry_delays: Tuple[float, ...] = (2.0, 5.0, 10.0)
    contradiction_digest_size: int = 25
    contradiction_min_items: int = 3
    max_contradictions: int = 7
    max_verified_candidates: int = 15

    # rights
    rights_top_n: int = 25
    rights_batch_size: int = 5
    rights_batch_delay: float = 1.0
    rights_empty_retry_delay: float = 1.5
    rights_min_items: int = 3
    rights_reclassify: bool = True

    # structural defects
    defects_ai_threshold: int = 10

    # persistence
    use_cache: bool = True

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build from a plain mapping, keeping unknown keys in `extra`."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in (data or {}).items() if k in known and k != "extra"}
        if "contradiction_retry_delays" in kwargs:
            kwargs["contradiction_retry_delays"] = tuple(kwargs["contradiction_retry_delays"])
        config = cls(**kwargs)
        config.extra = {k: v for k, v in (data or {}).items() if k not in known}
        return config

    @classmethod
    def immediate(cls, **overrides) -> "PipelineConfig":
        """Same limits, no sleeping. Used by tests and dry runs."""
        values = dict(
            rotation_delay=0.0,
            backoff_step=0.0,
            batch_delay=0.0,
            contradiction_retry_delays=(0.0, 0.0, 0.0),
            rights_batch_delay=0.0,
            rights_empty_retry_delay=0.0,
        )
        values.update(overrides)
        return cls(**values)
