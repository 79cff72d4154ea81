"""
Batched fan-out of chunk analysis.
"""

import asyncio
import logging
from typing import List, Optional

from models import Chunk, ChunkResult
from .chunks import ChunkAnalyzer
from .keys import KeyPool
from .progress import Progress
from .settings import PipelineConfig

logger = logging.getLogger(__name__)


class ParallelScheduler:
    """
    Runs chunk analyses in timed batches.

    Batch size follows the number of usable credentials. A failure of any
    chunk fails the whole run once its batch has settled.
    """

    def __init__(
        self,
        analyzer: ChunkAnalyzer,
        pool: KeyPool,
        config: Optional[PipelineConfig] = None,
        progress: Optional[Progress] = None,
    ):
        self.analyzer = analyzer
        self.pool = pool
        self.config = config or PipelineConfig()
        self.progress = progress or Progress()

    def batch_size(self) -> int:
        return max(1, min(self.config.batch_cap, self.pool.available_count))

    def batch_delay(self) -> float:
        delay = self.config.batch_delay
        if self.pool.available_count > self.config.fast_batch_min_keys:
            delay *= self.config.fast_batch_factor
        return delay

    async def run_all(
        self,
        chunks: List[Chunk],
        checklist: str,
        perspective: str,
        risks: str = "",
    ) -> List[ChunkResult]:
        """
        Analyze every chunk, results aligned with `chunks`.

        Raises:
            ChunkAnalysisFailed: the first chunk (in document order) that failed
        """
        results: List[Optional[ChunkResult]] = [None] * len(chunks)
        size = self.batch_size()
        logger.info(f"[SCHEDULER] {len(chunks)} chunk(s), batch size {size}")

        for start in range(0, len(chunks), size):
            batch = chunks[start:start + size]
            outcomes = await asyncio.gather(
                *(self.analyzer.analyze(chunk, checklist, perspective, risks) for chunk in batch),
                return_exceptions=True,
            )
            for offset, outcome in enumerate(outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"[SCHEDULER] {batch[offset].id} failed: {outcome}")
                    raise outcome
                results[start + offset] = outcome

            done = min(start + size, len(chunks))
            percent = round(done / len(chunks) * 100)
            self.progress(f"Этап 2/8: Анализ содержимого договора... {percent}% завершено")

            if done < len(chunks):
                self.progress("Этап 2/8: Обработка следующей части договора...")
                await asyncio.sleep(self.batch_delay())

        missing = [chunks[i].id for i, r in enumerate(results) if r is None]
        if missing:
            raise RuntimeError(f"Chunk results missing for {missing}")
        return results
