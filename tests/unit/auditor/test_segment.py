"""Unit tests for paragraph splitting and chunk packing."""

from auditor.segment import Segmenter, estimate_tokens, is_heading
from auditor.settings import OVERLAP_MARKER, PipelineConfig


def reconstruct(chunks):
    return [p.id for c in chunks for p in c.content_paragraphs]


def normalize(text):
    return " ".join(text.split())


class TestHeadings:

    def test_uppercase_heading(self):
        assert is_heading("ПРЕДМЕТ ДОГОВОРА")

    def test_numbered_heading(self):
        assert is_heading("3. ОТВЕТСТВЕННОСТЬ СТОРОН")

    def test_clause_is_not_heading(self):
        assert not is_heading("3.1. Поставщик несет ответственность за качество товара.")

    def test_token_estimate(self):
        assert estimate_tokens("abcd" * 10) == 10
        assert estimate_tokens("abcde") == 2


class TestSplit:

    def test_sample_contract(self, sample_contract):
        paragraphs = Segmenter().split(sample_contract)

        assert [p.id for p in paragraphs] == [f"p{i}" for i in range(1, 8)]
        assert paragraphs[0].text.startswith("1.1. Поставщик обязуется")
        assert paragraphs[-1].text.startswith("3.3.")
        assert not any("ПРЕДМЕТ ДОГОВОРА" in p.text for p in paragraphs)

    def test_rejoined_paragraphs_reproduce_content(self, sample_contract):
        kept = [
            line.strip() for line in sample_contract.splitlines()
            if line.strip() and not is_heading(line.strip())
        ]

        paragraphs = Segmenter().split(sample_contract)

        assert normalize(" ".join(p.text for p in paragraphs)) == normalize(" ".join(kept))

    def test_rejoined_wrapped_text_drops_only_low_signal_lines(self):
        text = (
            "ДОГОВОР ПОСТАВКИ\n\n"
            "1.1. Поставщик обязуется   поставить товар\n"
            "в количестве согласно спецификации.\n\n"
            "15.03.2024\n\n"
            "1.2. Покупатель обязуется оплатить\n"
            "товар в течение 10 дней.\n"
        )

        paragraphs = Segmenter().split(text)

        assert normalize(" ".join(p.text for p in paragraphs)) == normalize(
            "1.1. Поставщик обязуется поставить товар в количестве согласно спецификации. "
            "1.2. Покупатель обязуется оплатить товар в течение 10 дней."
        )

    def test_continuation_lines_joined(self):
        text = "1.1. Поставщик обязуется\nпоставить товар в срок до конца текущего месяца."
        paragraphs = Segmenter().split(text)
        assert len(paragraphs) == 1
        assert paragraphs[0].text == "1.1. Поставщик обязуется поставить товар в срок до конца текущего месяца."

    def test_clause_number_starts_new_paragraph(self):
        text = "1.1. Первый пункт договора о поставке товара.\n1.2. Второй пункт договора об оплате товара."
        assert len(Segmenter().split(text)) == 2

    def test_short_and_numeric_lines_dropped(self):
        text = "Подписи:\n\n12.05.2024\n\n1.1. Поставщик обязуется поставить товар в срок."
        paragraphs = Segmenter().split(text)
        assert [p.text for p in paragraphs] == ["1.1. Поставщик обязуется поставить товар в срок."]

    def test_long_paragraph_split_at_sentence(self):
        sentences = [
            "1.1. Первое предложение договора о поставке товара.",
            "Второе предложение про сроки оплаты товара.",
            "Третье предложение про ответственность сторон договора.",
            "Четвертое предложение про порядок приемки.",
        ]
        text = " ".join(sentences)
        paragraphs = Segmenter(PipelineConfig(max_paragraph_length=120)).split(text)

        assert len(paragraphs) == 2
        assert all(len(p.text) <= 120 for p in paragraphs)
        assert " ".join(p.text for p in paragraphs) == text

    def test_empty_text(self):
        assert Segmenter().split("") == []
        assert Segmenter().split("   \n\n  ") == []


class TestChunk:

    def test_paragraph_cap_closes_chunk(self, sample_contract):
        segmenter = Segmenter()
        chunks = segmenter.chunk(segmenter.split(sample_contract))

        assert [c.id for c in chunks] == ["chunk_1", "chunk_2"]
        assert len(chunks[0].paragraphs) == 6
        assert not chunks[0].has_overlap_prefix

    def test_overlap_prefix(self, sample_contract):
        segmenter = Segmenter()
        second = segmenter.chunk(segmenter.split(sample_contract))[1]

        overlap = second.paragraphs[0]
        assert second.has_overlap_prefix
        assert overlap.id == "overlap_2"
        assert overlap.is_overlap
        assert overlap.text.startswith(OVERLAP_MARKER)
        assert second.content_ids == {"p7"}

    def test_no_overlap_when_disabled(self, sample_contract):
        segmenter = Segmenter()
        chunks = segmenter.chunk(segmenter.split(sample_contract), overlap_sentences=0)
        assert not any(c.has_overlap_prefix for c in chunks)

    def test_reconstructs_every_paragraph_once(self, sample_contract):
        segmenter = Segmenter()
        paragraphs = segmenter.split(sample_contract)

        for max_tokens in (10, 40, 60, 120, 600):
            chunks = segmenter.chunk(paragraphs, max_tokens=max_tokens)
            assert reconstruct(chunks) == [p.id for p in paragraphs]
            assert all(c.content_paragraphs for c in chunks)

    def test_oversized_paragraph_gets_own_chunk(self):
        segmenter = Segmenter()
        paragraphs = segmenter.split("1.1. " + "очень длинный пункт договора " * 40)
        chunks = segmenter.chunk(paragraphs, max_tokens=50)
        assert len(chunks) == 1
        assert chunks[0].content_ids == {"p1"}

    def test_empty(self):
        assert Segmenter().chunk([]) == []
