import pytest

from core.contracts import ExtractionOptions, RawDocument
from core.errors import UnsupportedFormatError
from extraction.pipeline import analyze_document
from scripts.extract_report import guess_mime_type, main


def _text_document(text, file_name="requirements.md"):
    return RawDocument(content=text.encode("utf-8"), mime_type="text/markdown", file_name=file_name)


def test_text_document_end_to_end():
    report = analyze_document(
        _text_document("# Accounts\nUsers must reset their password via email.\n")
    )
    assert report.file_name == "requirements.md"
    assert report.format_family == "text"
    assert report.count == 1
    assert report.elements[0].section == "Accounts"
    assert report.flowchart is None
    assert report.warnings == []


def test_image_document_requires_manual_review():
    document = RawDocument(content=b"\x89PNG", mime_type="image/png", file_name="flow.png")
    report = analyze_document(document)
    assert report.format_family == "image"
    assert report.count == 0
    assert report.manual_review_required
    assert report.warnings


def test_unsupported_document_raises():
    document = RawDocument(content=b"PK", mime_type="application/zip", file_name="bundle.zip")
    with pytest.raises(UnsupportedFormatError):
        analyze_document(document)


def test_options_are_passed_through():
    document = _text_document("Customers expect accurate invoices at the end of each month.\n")
    assert analyze_document(document).count == 1
    assert analyze_document(document, ExtractionOptions(include_low_priority=False)).count == 0


def test_script_writes_evidence(tmp_path):
    source = tmp_path / "rules.txt"
    source.write_text("1. The system must validate the order total.\n", encoding="utf-8")
    output = tmp_path / "out.md"

    assert main([str(source), "--output", str(output)]) == 0
    evidence = output.read_text(encoding="utf-8")
    assert "- file: rules.txt" in evidence
    assert "- elements: 1" in evidence
    assert "System Requirement" in evidence


def test_script_reports_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.pdf")]) == 1


def test_guess_mime_type():
    assert guess_mime_type("diagram.vsdx") == "application/octet-stream"
    assert guess_mime_type("notes.md") == "text/markdown"
    assert guess_mime_type("report.pdf") == "application/pdf"
