"""
Contract segmentation - text into paragraphs, paragraphs into chunks.
"""

import logging
import math
import re
from typing import List, Optional

from models import Chunk, Paragraph, OVERLAP_ID_PREFIX
from .settings import OVERLAP_MARKER, PipelineConfig

logger = logging.getLogger(__name__)

CLAUSE_NUMBER = re.compile(r"^\d+(\.\d+)*\.?\s")
UPPERCASE_HEADING = re.compile(r"^[А-ЯЁ\s]{3,}$")
SECTION_MARKER = re.compile(r"^(статья|раздел|глава|пункт)\s*\d+", re.IGNORECASE)
NUMERIC_LINE = re.compile(r"^[\d\s.\-/]+$")
SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
SENTENCE_SPLIT = re.compile(r"[.!?]+")


def estimate_tokens(text: str) -> int:
    """About four characters per token. Approximate by design."""
    return math.ceil(len(text) / 4)


def is_heading(text: str) -> bool:
    """Uppercase heading, optionally numbered ("1. ПРЕДМЕТ ДОГОВОРА")."""
    body = CLAUSE_NUMBER.sub("", text.strip() + " ", count=1).strip()
    return len(body) < 100 and bool(UPPERCASE_HEADING.match(body))


def last_sentences(text: str, count: int) -> List[str]:
    sentences = [s.strip() for s in SENTENCE_SPLIT.split(text) if s.strip()]
    return [f"{s}." for s in sentences[-count:]] if count > 0 else []


class Segmenter:
    """
    Splits contract text into paragraphs and packs them into chunks.

    Args:
        config: pipeline settings (lengths, chunk limits)
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    # -- paragraphs ---------------------------------------------------------

    @staticmethod
    def _starts_section(line: str) -> bool:
        return bool(CLAUSE_NUMBER.match(line) or SECTION_MARKER.match(line))

    def _is_important(self, text: str) -> bool:
        text = text.strip()
        if len(text) < self.config.min_content_length:
            return False
        if is_heading(text):
            return False
        return not NUMERIC_LINE.match(text)

    def _split_long(self, text: str) -> List[str]:
        """Cut at the sentence boundary closest to the middle."""
        parts = SENTENCE_END.split(text)
        if len(parts) < 2:
            return [text]
        target = len(text) / 2
        best, best_distance, offset = 1, None, 0
        for i, part in enumerate(parts[:-1], start=1):
            offset += len(part) + 1
            distance = abs(offset - target)
            if best_distance is None or distance < best_distance:
                best, best_distance = i, distance
        return [" ".join(parts[:best]).strip(), " ".join(parts[best:]).strip()]

    @staticmethod
    def _join(buffer: str, line: str) -> str:
        if not buffer:
            return line
        if buffer.endswith(" ") or buffer.endswith("(") or line.startswith("("):
            return buffer + line
        return f"{buffer} {line}"

    def split(self, text: str) -> List[Paragraph]:
        """
        Contract text to ordered paragraphs with ids p1..pN.

        Blank lines and clause headers start a new paragraph; headings,
        numeric lines and short fragments are dropped.
        """
        texts: List[str] = []
        buffer = ""

        def flush():
            nonlocal buffer
            if buffer and self._is_important(buffer):
                texts.append(buffer.strip())
            buffer = ""

        for raw_line in (text or "").replace("\r\n", "\n").split("\n"):
            line = raw_line.strip()
            if not line or is_heading(line):
                flush()
                continue
            if self._starts_section(line):
                flush()
                buffer = line
            else:
                buffer = self._join(buffer, line)

            while len(buffer) > self.config.max_paragraph_length:
                head, *rest = self._split_long(buffer)
                if not rest:
                    break
                if self._is_important(head):
                    texts.append(head)
                buffer = rest[0]
        flush()

        paragraphs = [Paragraph(id=f"p{i}", text=t) for i, t in enumerate(texts, start=1)]
        logger.info(f"[SEGMENT] {len(paragraphs)} paragraph(s)")
        return paragraphs

    # -- chunks -------------------------------------------------------------

    def chunk(
        self,
        paragraphs: List[Paragraph],
        max_tokens: Optional[int] = None,
        overlap_sentences: Optional[int] = None,
    ) -> List[Chunk]:
        """
        Greedy packing into overlapping chunks.

        Args:
            paragraphs: output of split()
            max_tokens: approximate token budget per chunk
            overlap_sentences: sentences of context carried into the next chunk
        """
        max_tokens = max_tokens if max_tokens is not None else self.config.max_tokens_per_chunk
        if overlap_sentences is None:
            overlap_sentences = self.config.overlap_sentences
        max_count = self.config.max_paragraphs_per_chunk

        chunks: List[Chunk] = []
        current: List[Paragraph] = []
        tokens = 0

        def close():
            chunks.append(Chunk(
                id=f"chunk_{len(chunks) + 1}",
                paragraphs=list(current),
                token_estimate=tokens,
                has_overlap_prefix=bool(current) and current[0].is_overlap,
            ))

        for paragraph in paragraphs:
            paragraph_tokens = estimate_tokens(paragraph.text)
            overlap_text = " ".join(last_sentences(paragraph.text, overlap_sentences))
            overlap_tokens = estimate_tokens(overlap_text)
            has_content = any(not p.is_overlap for p in current)

            overflow = tokens + paragraph_tokens + overlap_tokens > max_tokens or len(current) >= max_count
            if overflow and has_content:
                close()
                carried = " ".join(last_sentences(current[-1].text, overlap_sentences))
                current, tokens = [], 0
                if carried:
                    overlap = Paragraph(
                        id=f"{OVERLAP_ID_PREFIX}{len(chunks) + 1}",
                        text=f"{OVERLAP_MARKER} {carried}",
                    )
                    current.append(overlap)
                    tokens = estimate_tokens(overlap.text)

            current.append(paragraph)
            tokens += paragraph_tokens

        if any(not p.is_overlap for p in current):
            close()

        logger.info(f"[SEGMENT] {len(paragraphs)} paragraph(s) -> {len(chunks)} chunk(s)")
        return chunks
