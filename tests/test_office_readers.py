import io
import zipfile

import docx
import openpyxl
import pytest
from openpyxl.chart import BarChart, Reference

from core.contracts import RawDocument
from core.errors import ExtractionError
from extraction.report import extract_business_requirements
from ingestion.file_types import DOCX_MIME
from ingestion.office_readers import read_excel, read_powerpoint, read_word
from ingestion.ooxml import resolve_target

P_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
DGM_NS = "http://schemas.openxmlformats.org/drawingml/2006/diagram"
RELS_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
NOTES_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/notesSlide"

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"


def _zip(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in files.items():
            archive.writestr(name, data)
    return buffer.getvalue()


def _save(word, extra=None):
    buffer = io.BytesIO()
    word.save(buffer)
    if extra:
        with zipfile.ZipFile(buffer, "a") as archive:
            for name, data in extra.items():
                archive.writestr(name, data)
    return buffer.getvalue()


def _read_docx(content, file_name="rules.docx"):
    return read_word(RawDocument(content=content, mime_type=DOCX_MIME, file_name=file_name))


def _a_paragraph(text):
    return f"<a:p><a:r><a:t>{text}</a:t></a:r></a:p>"


def _slide(*texts):
    return (
        f'<p:sld xmlns:p="{P_NS}" xmlns:a="{A_NS}"><p:cSld><p:spTree><p:sp><p:txBody>'
        + "".join(_a_paragraph(text) for text in texts)
        + "</p:txBody></p:sp></p:spTree></p:cSld></p:sld>"
    )


def _notes_rel(target):
    return (
        f'<Relationships xmlns="{RELS_NS}">'
        f'<Relationship Id="rId2" Type="{NOTES_REL}" Target="{target}"/></Relationships>'
    )


def _notes(*texts):
    return (
        f'<p:notes xmlns:p="{P_NS}" xmlns:a="{A_NS}"><p:cSld><p:spTree><p:sp><p:txBody>'
        + "".join(_a_paragraph(text) for text in texts)
        + "</p:txBody></p:sp></p:spTree></p:cSld></p:notes>"
    )


def _read_pptx(files, file_name="deck.pptx"):
    return read_powerpoint(RawDocument(content=_zip(files), mime_type=PPTX_MIME, file_name=file_name))


def test_docx_numbered_requirements_are_extracted():
    word = docx.Document()
    word.add_heading("Order Rules", level=1)
    word.add_paragraph("1. The system must validate the order total.")
    word.add_paragraph("2. The system should display a confirmation page.")
    extracted = _read_docx(_save(word))
    assert extracted.structured
    assert extracted.raw_text.splitlines()[:2] == ["## Main Document Content", "## Order Rules"]

    report = extract_business_requirements(extracted.raw_text)
    assert report.count == 2
    assert [element.type for element in report.elements] == ["System Requirement"] * 2
    assert all(element.section == "Order Rules" for element in report.elements)
    assert all(element.quality_score > 0 for element in report.elements)


def test_docx_heading_is_found_by_style_name_not_style_id():
    word = docx.Document()
    word.styles["Heading 2"].style_id = "Ueberschrift2"
    word.add_heading("Refund Policy", level=2)
    word.add_paragraph("Refunds must be approved within five days.")
    lines = _read_docx(_save(word)).raw_text.splitlines()
    assert lines[1:] == ["## Refund Policy", "Refunds must be approved within five days."]


def test_docx_table_cells_follow_document_order():
    word = docx.Document()
    word.add_paragraph("Before the table.")
    table = word.add_table(rows=1, cols=2)
    table.cell(0, 0).text = "Left cell"
    table.cell(0, 1).text = "Right cell"
    word.add_paragraph("After the table.")
    lines = _read_docx(_save(word)).raw_text.splitlines()
    assert lines[1:] == ["Before the table.", "Left cell", "Right cell", "After the table."]


def test_docx_list_items_and_header_parts():
    word = docx.Document()
    word.add_paragraph("Refunds need manager approval.", style="List Number")
    word.sections[0].header.paragraphs[0].text = "Confidential draft"
    lines = _read_docx(_save(word), file_name="notes.docx").raw_text.splitlines()
    assert "- Refunds need manager approval." in lines
    assert "## Header Content (word/header1.xml)" in lines
    assert lines[-1] == "Confidential draft"


def test_docx_embedded_parts_and_footer():
    word = docx.Document()
    word.add_paragraph("Invoices must carry a tax number.")
    word.sections[0].footer.paragraphs[0].text = "Printed copies are uncontrolled"
    diagram = (
        f'<dgm:dataModel xmlns:dgm="{DGM_NS}" xmlns:a="{A_NS}"><dgm:ptLst><dgm:pt><dgm:t>'
        f'{_a_paragraph("Approval routing step")}'
        "</dgm:t></dgm:pt></dgm:ptLst></dgm:dataModel>"
    )
    content = _save(
        word,
        extra={
            "word/diagrams/data1.xml": diagram,
            "word/drawings/drawing1.xml": "<shape>tiny</shape>",
            "word/embeddings/notes1.xml": "<notes><item>Escalate disputed invoices</item></notes>",
        },
    )
    lines = _read_docx(content).raw_text.splitlines()
    assert lines == [
        "## Main Document Content",
        "Invoices must carry a tax number.",
        "## Embedded Content (word/diagrams/data1.xml)",
        "Approval routing step",
        "## Embedded Content (word/embeddings/notes1.xml)",
        "Escalate disputed invoices",
        "## Footer Content (word/footer1.xml)",
        "Printed copies are uncontrolled",
    ]


def test_truncated_docx_does_not_raise():
    word = docx.Document()
    word.add_paragraph("The system must validate the order total.")
    extracted = _read_docx(_save(word)[:30], file_name="cut.docx")
    assert not extracted.structured
    assert extracted.raw_text == ""
    assert extracted.warnings


def test_legacy_word_failure_raises():
    document = RawDocument(content=b"garbage", mime_type="application/msword", file_name="old.doc")
    with pytest.raises(ExtractionError):
        read_word(document)


def test_xlsx_cells_charts_and_headers():
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Orders"
    sheet.append(["Order ID", "Status"])
    sheet.append([42, "Orders must be approved by finance."])
    chart = BarChart()
    chart.title = "Monthly Orders"
    chart.add_data(Reference(sheet, min_col=1, min_row=2, max_row=2))
    sheet.add_chart(chart, "D2")
    buffer = io.BytesIO()
    workbook.save(buffer)

    extracted = read_excel(
        RawDocument(content=buffer.getvalue(), mime_type=XLSX_MIME, file_name="orders.xlsx")
    )
    lines = extracted.raw_text.splitlines()
    assert lines[0] == "# Excel Spreadsheet Analysis"
    assert "Sheet 1: Orders" in lines
    assert "### Worksheet: Orders" in lines
    business = lines.index("#### Business Content")
    headers = lines.index("#### Column Headers")
    assert lines[business + 1 : headers] == [
        "- Order ID",
        "- Status",
        "- Orders must be approved by finance.",
    ]
    assert lines[headers + 1 : headers + 3] == ["- Order ID", "- Status"]
    assert "- 42" not in lines
    assert lines[-2:] == ["### Charts and Diagrams", "- Monthly Orders"]


def test_unreadable_xlsx_needs_manual_review():
    extracted = read_excel(RawDocument(content=b"garbage", mime_type=XLSX_MIME, file_name="bad.xlsx"))
    assert not extracted.structured
    assert extracted.raw_text.endswith("### Note: This Excel file requires manual analysis")
    assert extracted.warnings == ["bad.xlsx: no extractable content, manual review required"]

    report = extract_business_requirements(extracted.raw_text)
    assert report.count == 0
    assert report.manual_review_required


def test_pptx_slides_in_natural_order_with_notes():
    extracted = _read_pptx(
        {
            "ppt/presentation.xml": (
                f'<p:presentation xmlns:p="{P_NS}"><p:sldIdLst>'
                '<p:sldId id="256"/><p:sldId id="257"/><p:sldId id="258"/>'
                "</p:sldIdLst></p:presentation>"
            ),
            "ppt/slides/slide1.xml": _slide("Checkout overview"),
            "ppt/slides/slide2.xml": _slide("Second slide"),
            "ppt/slides/slide10.xml": _slide("Tenth slide"),
            "ppt/slides/_rels/slide1.xml.rels": _notes_rel("../notesSlides/notesSlide1.xml"),
            "ppt/notesSlides/notesSlide1.xml": _notes("Remember the approval step.", "1"),
            "ppt/media/image1.png": b"\x89PNG",
        }
    )
    lines = extracted.raw_text.splitlines()
    assert "## Presentation Structure: 3 slides" in lines
    assert lines.index("- Second slide") < lines.index("- Tenth slide")
    assert lines[lines.index("### Slide 3") + 1] == "- Tenth slide"
    notes = lines.index("#### Speaker Notes")
    assert lines[notes + 1] == "Remember the approval step."
    assert "1" not in lines
    assert lines[-1] == "### Embedded Media: ppt/media/image1.png"


def test_pptx_notes_with_package_absolute_target():
    extracted = _read_pptx(
        {
            "ppt/slides/slide1.xml": _slide("Returns overview"),
            "ppt/slides/_rels/slide1.xml.rels": _notes_rel("/ppt/notesSlides/notesSlide1.xml"),
            "ppt/notesSlides/notesSlide1.xml": _notes("Returns need a receipt."),
        }
    )
    lines = extracted.raw_text.splitlines()
    assert lines[lines.index("#### Speaker Notes") + 1] == "Returns need a receipt."


def test_relationship_targets_resolve_against_folder_or_root():
    assert resolve_target("ppt/slides", "../notesSlides/n1.xml") == "ppt/notesSlides/n1.xml"
    assert resolve_target("ppt/slides", "/ppt/notesSlides/n1.xml") == "ppt/notesSlides/n1.xml"
    assert resolve_target("visio/pages", "page2.xml") == "visio/pages/page2.xml"


def test_malformed_slide_is_skipped_and_others_kept():
    extracted = _read_pptx(
        {
            "ppt/slides/slide1.xml": _slide("Checkout overview"),
            "ppt/slides/slide2.xml": "<p:sld",
            "ppt/slides/slide3.xml": _slide("Refund overview"),
        }
    )
    lines = extracted.raw_text.splitlines()
    assert extracted.structured
    assert "### Slide 2" not in lines
    assert lines[lines.index("### Slide 1") + 1] == "- Checkout overview"
    assert lines[lines.index("### Slide 3") + 1] == "- Refund overview"


def test_empty_pptx_needs_manual_review():
    extracted = _read_pptx({"docProps/app.xml": "<Properties/>"}, file_name="blank.pptx")
    assert extracted.structured
    assert "### Note: This PowerPoint presentation contains visual elements" in extracted.raw_text
    assert extracted.warnings
