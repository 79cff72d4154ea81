"""Unit tests for batched chunk fan-out."""

import asyncio

import pytest

from auditor.chunks import ChunkAnalyzer
from auditor.errors import ChunkAnalysisFailed, UpstreamApiError
from auditor.keys import KeyPool
from auditor.progress import Progress, ProgressRecorder
from auditor.scheduler import ParallelScheduler
from auditor.settings import PipelineConfig
from models import Chunk, Paragraph


def make_chunks(count):
    return [
        Chunk(id=f"chunk_{i}", paragraphs=[Paragraph(id=f"p{i}", text=f"{i}.1. Пункт договора номер {i}.")])
        for i in range(1, count + 1)
    ]


def answer_for(request, key):
    chunk_id = request.operation.replace("CHUNK_", "")
    number = chunk_id.split("_")[1]
    return {"chunkId": chunk_id, "analysis": [{"id": f"p{number}", "category": "checklist", "comment": "ок"}]}


def scheduler_for(gateway, pool, config, recorder=None):
    return ParallelScheduler(ChunkAnalyzer(gateway, config), pool, config, Progress(recorder))


class TestParallelScheduler:

    def test_results_in_chunk_order(self, make_gateway, pool, config):
        gateway, _ = make_gateway(answer_for)
        results = asyncio.run(scheduler_for(gateway, pool, config).run_all(make_chunks(5), "• Требование", "buyer"))

        assert [r.chunk_id for r in results] == [f"chunk_{i}" for i in range(1, 6)]
        assert [r.analysis[0].id for r in results] == [f"p{i}" for i in range(1, 6)]

    def test_progress_per_batch(self, make_gateway, pool, config):
        recorder = ProgressRecorder()
        gateway, _ = make_gateway(answer_for)

        asyncio.run(scheduler_for(gateway, pool, config, recorder).run_all(make_chunks(5), "", "buyer"))

        # three keys -> batches of 3 and 2
        assert recorder.messages == [
            "Этап 2/8: Анализ содержимого договора... 60% завершено",
            "Этап 2/8: Обработка следующей части договора...",
            "Этап 2/8: Анализ содержимого договора... 100% завершено",
        ]

    def test_one_failed_chunk_fails_run(self, make_gateway, pool, config):
        def handler(request, key):
            if request.operation == "CHUNK_chunk_2":
                return UpstreamApiError("Internal error", status=500)
            return answer_for(request, key)

        gateway, _ = make_gateway(handler)

        with pytest.raises(ChunkAnalysisFailed) as exc:
            asyncio.run(scheduler_for(gateway, pool, config).run_all(make_chunks(2), "", "buyer"))

        assert exc.value.chunk_id == "chunk_2"

    def test_batch_size_follows_available_keys(self, make_gateway, pool, keys, config):
        gateway, _ = make_gateway(answer_for)
        scheduler = scheduler_for(gateway, pool, config)
        assert scheduler.batch_size() == 3

        pool.mark_exhausted(keys[0])
        assert scheduler.batch_size() == 2

    def test_batch_size_capped(self, make_gateway, config):
        big = KeyPool([f"key-{i:02d}-xxxxxxxx" for i in range(12)])
        gateway, _ = make_gateway(answer_for, key_pool=big)
        assert scheduler_for(gateway, big, config).batch_size() == 8

    def test_faster_batches_with_many_keys(self, make_gateway):
        config = PipelineConfig()
        few = KeyPool([f"key-{i:02d}-xxxxxxxx" for i in range(3)])
        many = KeyPool([f"key-{i:02d}-xxxxxxxx" for i in range(7)])
        gateway, _ = make_gateway(answer_for, key_pool=few)

        assert scheduler_for(gateway, few, config).batch_delay() == pytest.approx(4.0)
        assert scheduler_for(gateway, many, config).batch_delay() == pytest.approx(2.8)
