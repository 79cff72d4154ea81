"""Unit tests for rights classification and imbalance analysis."""

import asyncio
import re

import pytest

from auditor.errors import UpstreamApiError
from auditor.progress import Progress, ProgressRecorder
from auditor.rights import (
    RightsClassifier,
    analyze_imbalance,
    analyze_totals,
    chunk_clauses,
    collect_chunk_rights,
    extract_penalty_info,
    prioritize_items,
    score_item,
)
from models import AnalysisItem, ChunkResult, ChunkRightsAnalysis, ClassifiedClause, Paragraph

PARAGRAPHS = [
    Paragraph(id="p1", text="Покупатель уплачивает пеню в размере 0,1% за каждый день просрочки оплаты."),
    Paragraph(id="p2", text="Поставщик уплачивает штраф в размере 5000 рублей за просрочку поставки."),
    Paragraph(id="p3", text="Поставщик уплачивает неустойку в размере 1% за недопоставку."),
    Paragraph(id="p4", text="Поставщик вправе в одностороннем порядке изменить цену товара."),
    Paragraph(id="p5", text="Поставщик вправе уточнить график поставки по согласованию сторон."),
    Paragraph(id="p6", text="Покупатель вправе расторгнуть договор при просрочке поставки."),
]


def clause(id, party, type):
    return ClassifiedClause(id=id, party=party, type=type)


class TestAnalyzeImbalance:

    def test_one_extra_liability_is_medium(self):
        # the liability party is whoever may claim the sanction
        clauses = [
            clause("p1", "supplier", "liability"),
            clause("p2", "buyer", "liability"),
            clause("p3", "supplier", "liability"),
        ]
        report = analyze_imbalance(clauses, PARAGRAPHS)

        finding = report.findings[0]
        assert finding.id == "imbalance_liability"
        assert finding.severity == "medium"
        assert (finding.buyer_rights, finding.supplier_rights) == (1, 2)
        assert "Поставщик (2)" in finding.description
        assert [p.id for p in finding.supplier_rights_clauses] == ["p1", "p3"]

    def test_large_liability_gap_is_high(self):
        clauses = [
            clause("p1", "buyer", "liability"),
            clause("p2", "buyer", "liability"),
            clause("p3", "buyer", "liability"),
        ]
        finding = analyze_imbalance(clauses, PARAGRAPHS).findings[0]
        assert finding.severity == "high"
        assert "штраф 5000 рублей" in finding.description

    def test_equal_liability_is_balanced(self):
        clauses = [clause("p1", "supplier", "liability"), clause("p2", "buyer", "liability")]
        assert analyze_imbalance(clauses, PARAGRAPHS).findings == []

    def test_one_sided_modification(self):
        report = analyze_imbalance([clause("p4", "supplier", "modification")], PARAGRAPHS)

        assert [f.id for f in report.findings] == ["imbalance_modification"]
        assert report.findings[0].severity == "high"
        assert report.supplier_total == 1

    def test_modification_without_keywords_ignored(self):
        assert analyze_imbalance([clause("p5", "supplier", "modification")], PARAGRAPHS).findings == []

    def test_one_sided_termination_is_medium(self):
        finding = analyze_imbalance([clause("p6", "buyer", "termination")], PARAGRAPHS).findings[0]
        assert finding.id == "imbalance_termination"
        assert finding.severity == "medium"
        assert finding.buyer_rights == 1

    def test_later_tag_wins(self):
        clauses = [clause("p4", "supplier", "modification"), clause("p4", "neutral", "procedural")]
        assert analyze_imbalance(clauses, PARAGRAPHS).findings == []

    def test_without_tags_uses_totals(self):
        report = analyze_imbalance([], PARAGRAPHS, buyer_total=1, supplier_total=5)
        assert [f.id for f in report.findings] == ["imbalance_general_rights"]


class TestAnalyzeTotals:

    @pytest.mark.parametrize("buyer,supplier,severity", [(1, 5, "high"), (2, 5, "medium"), (5, 2, "medium")])
    def test_imbalanced(self, buyer, supplier, severity):
        report = analyze_totals(buyer, supplier)
        assert report.findings[0].severity == severity

    def test_balanced(self):
        report = analyze_totals(3, 2)
        assert report.findings == []
        assert "сбалансированы" in report.conclusion

    def test_no_rights(self):
        report = analyze_totals(0, 0)
        assert report.findings == []
        assert "не обнаружено" in report.conclusion

    def test_favored_party_named(self):
        assert "в пользу поставщика" in analyze_totals(1, 5).findings[0].description


class TestPenaltyInfo:

    def test_ruble_fine(self):
        assert extract_penalty_info("уплачивает штраф в размере 10 000 рублей") == "штраф 10000 рублей"

    def test_percent_forfeit(self):
        assert extract_penalty_info("неустойку в размере 0,5% от суммы") == "неустойка 0,5%"

    def test_bare_words(self):
        assert extract_penalty_info("Штраф по соглашению сторон") == "штраф"
        assert extract_penalty_info("") is None


class TestChunkTallies:

    def test_totals_and_clauses(self):
        results = [
            ChunkResult(chunk_id="chunk_1", chunk_rights_analysis=ChunkRightsAnalysis(
                buyer_rights_count=1, supplier_rights_count=2, rights_details=["a"],
                classified_clauses=[clause("p4", "supplier", "modification")],
            )),
            ChunkResult(chunk_id="chunk_2"),
            ChunkResult(chunk_id="chunk_3", chunk_rights_analysis=ChunkRightsAnalysis(
                buyer_rights_count=2, rights_details=["b"],
                classified_clauses=[clause("p4", "buyer", "modification")],
            )),
        ]

        report = collect_chunk_rights(results)

        assert (report.buyer_total, report.supplier_total) == (3, 2)
        assert report.details == ["a", "b"]
        assert [c.party for c in chunk_clauses(results)] == ["buyer"]


class TestPrioritization:

    def test_rights_keywords_score(self):
        item = AnalysisItem(id="p2", category="risk", comment="Высокий штраф")
        neutral = AnalysisItem(id="p5", category=None)
        assert score_item(item, PARAGRAPHS[1].text, "buyer") > score_item(neutral, "Реквизиты сторон", "buyer")

    def test_zero_scores_dropped(self):
        items = [AnalysisItem(id="p9", category=None)]
        paragraphs = [Paragraph(id="p9", text="Адреса и реквизиты")]
        assert prioritize_items(items, paragraphs, "buyer") == []

    def test_limit(self):
        items = [AnalysisItem(id=p.id, category="risk", comment="Риск") for p in PARAGRAPHS]
        assert len(prioritize_items(items, PARAGRAPHS, "buyer", limit=2)) == 2


def classify_answer(request, key):
    ids = re.findall(r"- (p\d+):", request.user_prompt)
    return {"classifications": [{"id": i, "party": "supplier", "type": "liability"} for i in ids + ["p99"]]}


class TestRightsClassifier:

    def items(self, count):
        return [AnalysisItem(id=f"p{i}", category="risk", comment="Неустойка") for i in range(1, count + 1)]

    def paragraphs(self, count):
        return [Paragraph(id=f"p{i}", text=f"Пункт {i}: неустойка") for i in range(1, count + 1)]

    def test_batches_of_five(self, make_gateway, config):
        recorder = ProgressRecorder()
        gateway, client = make_gateway(classify_answer)
        classifier = RightsClassifier(gateway, config, Progress(recorder))

        clauses = asyncio.run(classifier.classify(self.items(7), self.paragraphs(7), "buyer"))

        assert client.operations == ["CLASSIFY_RIGHTS", "CLASSIFY_RIGHTS"]
        assert sorted(c.id for c in clauses) == [f"p{i}" for i in range(1, 8)]
        assert recorder.messages == [
            "Этап 5/8: Анализ дисбаланса прав... 50% завершено",
            "Этап 5/8: Анализ дисбаланса прав... 100% завершено",
        ]

    def test_too_few_candidates(self, make_gateway, config):
        gateway, client = make_gateway(classify_answer)
        assert asyncio.run(RightsClassifier(gateway, config).classify(self.items(2), self.paragraphs(2), "buyer")) == []
        assert client.calls == []

    def test_empty_answer_retried_once(self, make_gateway, config):
        seen = []

        def handler(request, key):
            seen.append(request.operation)
            return "" if len(seen) == 1 else classify_answer(request, key)

        gateway, client = make_gateway(handler)

        clauses = asyncio.run(RightsClassifier(gateway, config).classify(self.items(3), self.paragraphs(3), "buyer"))

        assert client.operations == ["CLASSIFY_RIGHTS", "CLASSIFY_RIGHTS_RETRY"]
        assert len(clauses) == 3

    def test_failure_gives_no_tags(self, make_gateway, config):
        gateway, _ = make_gateway(lambda request, key: UpstreamApiError("Internal error", status=500))
        assert asyncio.run(RightsClassifier(gateway, config).classify(self.items(3), self.paragraphs(3), "buyer")) == []
