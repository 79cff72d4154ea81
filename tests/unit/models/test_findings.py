"""Unit tests for finding models."""

from models import Contradiction, StructuralAnalysis, StructuralDefect


class TestContradiction:

    def test_defaults_and_coercion(self):
        c = Contradiction.model_validate({"id": "c1", "type": "временной", "severity": "critical"})
        assert c.type == "logical"
        assert c.severity == "medium"
        assert c.conflicting_paragraphs.paragraph1.text == ""

    def test_numeric_values_stringified(self):
        c = Contradiction.model_validate({
            "id": "c1",
            "conflictingParagraphs": {"paragraph1": {"text": "п. 2.1", "value": 10}, "paragraph2": {"value": None}},
        })
        assert c.conflicting_paragraphs.paragraph1.value == "10"
        assert c.conflicting_paragraphs.paragraph2.value == ""

    def test_wire_format(self):
        data = Contradiction(id="c1", type="financial", severity="high").to_json_dict()
        assert data["conflictingParagraphs"] == {
            "paragraph1": {"text": "", "value": ""},
            "paragraph2": {"text": "", "value": ""},
        }
        assert data["severity"] == "high"


class TestStructuralDefect:

    def test_unknown_type_is_logical_error(self):
        assert StructuralDefect(id="d1", type="orphan").type == "logical_error"

    def test_location_none(self):
        assert StructuralDefect(id="d1", location=None).location == ""


class TestStructuralAnalysis:

    def test_blank_assessment(self):
        assert StructuralAnalysis(overall_assessment="").overall_assessment == "Анализ выполнен"

    def test_lists_coerced(self):
        s = StructuralAnalysis.model_validate({"keyRisks": "Один риск", "recommendations": ["a", "", None, "b"]})
        assert s.key_risks == ["Один риск"]
        assert s.recommendations == ["a", "b"]
