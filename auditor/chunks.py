"""
Chunk analysis - one chunk through the model with bounded retries.
"""

import logging
from typing import Optional

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_not_exception_type, stop_after_attempt

from models import Chunk, ChunkResult
from .client import ChatRequest, ModelGateway
from .errors import AllKeysExhausted, ChunkAnalysisFailed, UpstreamApiError
from .prompts import build_chunk_prompt, expert_instruction
from .repair import extract_json
from .responses import parse_chunk_response
from .settings import PipelineConfig

logger = logging.getLogger(__name__)


class ChunkAnalyzer:
    """
    Classifies a chunk's paragraphs and tallies rights in a single call.

    Each attempt draws a fresh credential. Rate limit and quota failures
    rotate after a short fixed delay; anything else backs off linearly.
    """

    def __init__(self, gateway: ModelGateway, config: Optional[PipelineConfig] = None):
        self.gateway = gateway
        self.config = config or PipelineConfig()

    def build_request(self, chunk: Chunk, checklist: str, perspective: str, risks: str = "") -> ChatRequest:
        return ChatRequest(
            operation=f"CHUNK_{chunk.id}",
            system_instruction=expert_instruction(perspective),
            user_prompt=build_chunk_prompt(chunk.id, chunk.paragraphs, checklist, perspective, risks),
            temperature=0.1,
            max_tokens=self.config.chunk_max_tokens,
            thinking_budget=self.config.thinking_budget,
        )

    def _should_rotate(self, error: BaseException) -> bool:
        return (
            isinstance(error, UpstreamApiError)
            and bool(error.retry_recommended)
            and self.gateway.pool.available_count > 0
        )

    def retry_delay(self, error: BaseException, attempt_number: int) -> float:
        """Short fixed delay before rotating keys, linear back-off otherwise."""
        if self._should_rotate(error):
            return self.config.rotation_delay
        return self.config.backoff_step * attempt_number

    def _wait(self, state: RetryCallState) -> float:
        return self.retry_delay(state.outcome.exception(), state.attempt_number)

    def _log_retry(self, chunk: Chunk, state: RetryCallState) -> None:
        error = state.outcome.exception()
        attempts = self.config.chunk_attempts
        if self._should_rotate(error):
            logger.warning(f"[CHUNK] {chunk.id}: {error}; rotating key (attempt {state.attempt_number}/{attempts})")
        else:
            logger.warning(f"[CHUNK] {chunk.id}: attempt {state.attempt_number}/{attempts} failed: {error}")

    async def _attempt(self, request: ChatRequest, chunk: Chunk, number: int) -> ChunkResult:
        response = await self.gateway.request(request)
        if response.truncated:
            logger.warning(f"[CHUNK] {chunk.id}: finish_reason={response.finish_reason}, answer may be truncated")
        result = parse_chunk_response(extract_json(response.content), chunk.id, chunk.content_ids)
        result.truncated = response.truncated
        logger.info(f"[CHUNK] {chunk.id}: {len(result.analysis)} item(s) on attempt {number}")
        return result

    async def analyze(self, chunk: Chunk, checklist: str, perspective: str, risks: str = "") -> ChunkResult:
        """
        Analyze one chunk.

        Raises:
            ChunkAnalysisFailed: every attempt failed
            AllKeysExhausted: no credential left to try
        """
        request = self.build_request(chunk, checklist, perspective, risks)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.chunk_attempts),
            wait=self._wait,
            retry=retry_if_not_exception_type(AllKeysExhausted),
            before_sleep=lambda state: self._log_retry(chunk, state),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._attempt(request, chunk, attempt.retry_state.attempt_number)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(f"[CHUNK] {chunk.id}: giving up after {self.config.chunk_attempts} attempt(s)")
            raise ChunkAnalysisFailed(chunk.id, last_error) from last_error
        return result
