from core.contracts import NormalizedLine
from core.patterns import load_pattern_tables
from extraction import classifier
from extraction.classifier import (
    classify,
    classify_lines,
    has_business_content,
    is_extractable_requirement,
    is_rejected_line,
)

TABLES = load_pattern_tables()


def _types(line):
    return [element.type for element in classify(line, 1, "", TABLES)]


def test_exact_prefix_wins_first_position():
    elements = classify("Business Process: Order Intake", 4, "Flows", TABLES)
    assert elements[0].type == "Business Process"
    assert elements[0].confidence == "high"
    assert elements[0].priority == "high"
    assert elements[0].line_number == 4
    assert elements[0].section == "Flows"
    assert elements[0].pattern == "^Business Process:"


def test_business_logic_lines_are_rules():
    elements = classify("If the order total exceeds the limit, require manager approval.", 1, "", TABLES)
    assert elements[0].type == "Business Rule"
    assert elements[0].confidence == "high"


def test_numbered_line_is_structural_requirement():
    elements = classify("1. The system must validate the order total.", 1, "", TABLES)
    assert elements[0].type == "System Requirement"
    assert elements[0].confidence == "medium"
    assert "Validation Requirement" in [element.type for element in elements]


def test_keyword_family_contributes_one_candidate():
    types = _types("Managers handle the approval task for refunds today")
    # process family has two matching patterns; only the first is kept
    assert types == ["Process Step"]


def test_rejected_lines_produce_nothing():
    for line in (
        "1 2 3 Introduction to the ordering platform",
        "Table of Contents ........ 3",
        "Glossary: terms used in this document",
        "Index 12",
    ):
        assert is_rejected_line(line, TABLES)
        assert classify(line, 1, "", TABLES) == []


def test_short_lines_are_ignored():
    assert classify("Must validate.", 1, "", TABLES) == []


def test_vague_page_line_is_not_a_requirement():
    assert classify("Billing page data layout for the invoices.", 1, "", TABLES) == []
    assert not is_extractable_requirement("Billing page data layout for the invoices.", TABLES)


def test_fallback_detects_plain_business_sentence():
    elements = classify("Customers expect accurate invoices at the end of each month.", 7, "UI", TABLES)
    assert len(elements) == 1
    element = elements[0]
    assert element.type == "Business Requirement"
    assert element.priority == "low"
    assert element.confidence == "low"
    assert element.pattern == "business_content_detection"


def test_fallback_needs_business_keyword():
    assert has_business_content("Customers need invoices that are accurate and timely.", TABLES)
    assert not has_business_content("Invoices are printed on recycled paper today.", TABLES)
    assert _types("Customers need invoices that are accurate and timely.") == [
        "System Requirement"
    ]


def test_classify_lines_drops_failing_line(monkeypatch):
    real_classify = classifier.classify

    def flaky(line, line_number, section, tables):
        if line_number == 2:
            raise RuntimeError("boom")
        return real_classify(line, line_number, section, tables)

    monkeypatch.setattr(classifier, "classify", flaky)
    lines = [
        NormalizedLine(text="1. The system must validate the order total.", line_number=1, section=""),
        NormalizedLine(text="2. The system must email the buyer.", line_number=2, section=""),
    ]
    elements = classify_lines(lines, TABLES)
    assert {element.line_number for element in elements} == {1}


def test_modal_line_is_medium_system_requirement():
    elements = classify("Customers need invoices that are accurate and timely.", 1, "", TABLES)
    assert elements[0].type == "System Requirement"
    assert elements[0].priority == "medium"
    assert elements[0].confidence == "medium"


def test_conditional_line_is_medium_business_rule():
    elements = classify("Refunds are issued when the parcel is returned.", 1, "", TABLES)
    assert [(element.type, element.priority) for element in elements] == [
        ("Business Rule", "medium")
    ]


def test_actor_word_is_system_requirement():
    assert _types("Users reset their passwords from the login page.")[0] == "System Requirement"


def test_rejection_keywords_only_match_whole_headings():
    line = "Contents of the cart must be validated before checkout."
    assert not is_rejected_line(line, TABLES)
    assert _types(line)[0] == "System Requirement"
    assert not is_rejected_line("Index cards are printed for every order.", TABLES)
