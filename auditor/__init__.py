"""
Auditor - checklist-driven analysis of Russian supply contracts via an LLM

The contract is split into paragraphs, packed into overlapping chunks and
classified chunk by chunk; whole-document passes then look for missing
requirements, contradictions, rights imbalance and broken references.

Modules:
- keys: credential pool with round-robin rotation and quota tracking
- client: OpenAI-compatible chat client and the key-rotating gateway
- repair: JSON extraction from malformed model output
- segment: paragraph splitting and chunk packing
- chunks / scheduler: per-chunk analysis and batched fan-out
- gaps, contradictions, rights, defects, summary: document-level passes
- pipeline: orchestration of all stages into one report
"""

from .errors import (
    AuditorError,
    ConfigurationError,
    AllKeysExhausted,
    UpstreamApiError,
    ChunkAnalysisFailed,
    AnalysisError,
)
from .settings import PipelineConfig
from .keys import KeyPool, mask_key
from .client import ChatClient, ChatRequest, ChatResponse, ModelGateway
from .repair import extract_json
from .segment import Segmenter
from .progress import Progress, ProgressRecorder
from .chunks import ChunkAnalyzer
from .scheduler import ParallelScheduler
from .gaps import find_missing_requirements
from .contradictions import ContradictionFinder
from .rights import RightsClassifier, analyze_imbalance
from .defects import StructuralDefectFinder
from .summary import FinalSummarizer
from .pipeline import ContractAnalyzer, translate_error

__all__ = [
    # errors
    'AuditorError',
    'ConfigurationError',
    'AllKeysExhausted',
    'UpstreamApiError',
    'ChunkAnalysisFailed',
    'AnalysisError',
    # infrastructure
    'PipelineConfig',
    'KeyPool',
    'mask_key',
    'ChatClient',
    'ChatRequest',
    'ChatResponse',
    'ModelGateway',
    'extract_json',
    'Progress',
    'ProgressRecorder',
    # stages
    'Segmenter',
    'ChunkAnalyzer',
    'ParallelScheduler',
    'find_missing_requirements',
    'ContradictionFinder',
    'RightsClassifier',
    'analyze_imbalance',
    'StructuralDefectFinder',
    'FinalSummarizer',
    # pipeline
    'ContractAnalyzer',
    'translate_error',
]
