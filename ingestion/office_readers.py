"""Readers for ZIP-based office containers.

Each reader turns one container into markdown-flavoured text: ``#`` headings
mark structure, one statement per line. A member that cannot be parsed is
logged and skipped; a container that cannot be opened at all falls back to
the least structured extraction available for its format.
"""

import io
import logging
import posixpath
import re
import zipfile
import zlib
import xml.etree.ElementTree as ET
from typing import Dict, Iterator, List, Optional, Tuple

import docx
import mammoth
import openpyxl
from docx.document import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from docx.text.paragraph import Paragraph
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from core.contracts import ExtractedContent, FlowchartPage, RawDocument
from core.errors import ExtractionError
from core.patterns import PatternTables
from flowchart.visio_graph import analyze_page, describe_page, parse_masters, summarize_pages
from ingestion.file_types import DOCX_MIME
from ingestion.ooxml import (
    attribute,
    collapse_whitespace,
    extract_paragraphs,
    has_member,
    iter_local,
    natural_key,
    open_container,
    read_text,
    read_xml,
    resolve_target,
    sorted_members,
    strip_tags,
)

logger = logging.getLogger(__name__)

PART_ERRORS = (ET.ParseError, KeyError, ValueError, zipfile.BadZipFile, zlib.error, EOFError)
# lxml parse errors derive from SyntaxError.
DOCX_ERRORS = PART_ERRORS + (PackageNotFoundError, SyntaxError)
XLSX_ERRORS = PART_ERRORS + (InvalidFileException, SyntaxError)

MIN_PART_TEXT_LENGTH = 10
MIN_CELL_TEXT_LENGTH = 2

_HEADING_STYLE_RE = re.compile(r"^(heading\s*\d|title|subtitle)$", re.IGNORECASE)
_NUMERIC_RE = re.compile(r"^[0-9]+$")

WORD_EMBEDDED_PREFIXES = ("word/diagrams/", "word/embeddings/", "word/drawings/")
HEADER_KINDS = ("header", "first_page_header", "even_page_header")
FOOTER_KINDS = ("footer", "first_page_footer", "even_page_footer")

EXCEL_NOTE_EMPTY = (
    "### Note: This Excel file contains structured data that should be reviewed manually"
)
EXCEL_NOTE_UNREADABLE = "### Note: This Excel file requires manual analysis"
POWERPOINT_NOTE_EMPTY = (
    "### Note: This PowerPoint presentation contains visual elements that should be reviewed manually"
)
POWERPOINT_NOTE_UNREADABLE = "### Note: This PowerPoint presentation requires manual analysis"
VISIO_NOTE_EMPTY = "### Note: This Visio diagram contains visual elements that require manual analysis"
VISIO_NOTE_UNREADABLE = "### Note: This Visio diagram requires manual analysis"


def read_word(document: RawDocument) -> ExtractedContent:
    if document.mime_type != DOCX_MIME:
        try:
            text = _mammoth_text(document.content)
        except Exception as exc:
            raise ExtractionError(document.file_name, str(exc)) from exc
        return ExtractedContent(
            raw_text=text, format_family="word", file_name=document.file_name, structured=False
        )

    try:
        word = docx.Document(io.BytesIO(document.content))
    except DOCX_ERRORS:
        logger.warning(
            "Word container %s cannot be opened; using raw text", document.file_name, exc_info=True
        )
        return _word_fallback(document)

    lines = _docx_body_lines(word)
    with open_container(document.content) as archive:
        lines.extend(_docx_embedded_lines(archive))
    lines.extend(_docx_header_footer_lines(word))
    if not lines:
        return _word_fallback(document)
    return ExtractedContent(
        raw_text="\n".join(lines), format_family="word", file_name=document.file_name
    )


def read_excel(document: RawDocument) -> ExtractedContent:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(document.content), data_only=True)
    except XLSX_ERRORS:
        logger.warning("Excel workbook %s cannot be opened", document.file_name, exc_info=True)
        return _manual_review(
            "Excel Spreadsheet Analysis", document, "excel", EXCEL_NOTE_UNREADABLE
        )

    try:
        lines = _workbook_lines(workbook)
    finally:
        workbook.close()
    with open_container(document.content) as archive:
        lines.extend(_chart_lines(archive))
    return _wrap(
        "Excel Spreadsheet Analysis", document, "excel", lines, EXCEL_NOTE_EMPTY
    )


def read_powerpoint(document: RawDocument) -> ExtractedContent:
    try:
        archive = open_container(document.content)
    except zipfile.BadZipFile:
        logger.warning("PowerPoint container %s cannot be opened", document.file_name)
        return _manual_review(
            "PowerPoint Presentation Analysis", document, "powerpoint", POWERPOINT_NOTE_UNREADABLE
        )

    with archive:
        lines = _pptx_lines(archive)
    return _wrap(
        "PowerPoint Presentation Analysis", document, "powerpoint", lines, POWERPOINT_NOTE_EMPTY
    )


def read_visio(document: RawDocument, tables: PatternTables) -> ExtractedContent:
    try:
        archive = open_container(document.content)
    except zipfile.BadZipFile:
        logger.warning("Visio container %s cannot be opened", document.file_name)
        return _manual_review(
            "Visio Diagram Analysis", document, "visio", VISIO_NOTE_UNREADABLE
        )

    with archive:
        lines, pages = _vsdx_lines(archive, tables)
    flowchart = summarize_pages(pages, tables.flowchart) if pages else None
    content = _wrap("Visio Diagram Analysis", document, "visio", lines, VISIO_NOTE_EMPTY)
    return ExtractedContent(
        raw_text=content.raw_text,
        format_family=content.format_family,
        file_name=content.file_name,
        warnings=content.warnings + (flowchart.warnings if flowchart else []),
        structured=content.structured,
        flowchart=flowchart,
    )


# Word


def _docx_body_lines(word: DocxDocument) -> List[str]:
    body: List[str] = []
    for paragraph in _block_paragraphs(word):
        text = collapse_whitespace(paragraph.text)
        if not text:
            continue
        style = paragraph.style
        style_name = (style.name or "") if style is not None else ""
        if _HEADING_STYLE_RE.match(style_name):
            body.append(f"## {text}")
        elif _is_list_paragraph(paragraph, style_name):
            body.append(f"- {text}")
        else:
            body.append(text)
    return ["## Main Document Content"] + body if body else []


def _block_paragraphs(container) -> Iterator[Paragraph]:
    """Paragraphs in document order, descending into table cells."""
    for block in container.iter_inner_content():
        if isinstance(block, Paragraph):
            yield block
            continue
        for row in block.rows:
            for cell in row.cells:
                yield from _block_paragraphs(cell)


def _is_list_paragraph(paragraph: Paragraph, style_name: str) -> bool:
    if "List" in style_name:
        return True
    properties = paragraph._p.pPr
    return properties is not None and properties.numPr is not None


def _docx_embedded_lines(archive: zipfile.ZipFile) -> List[str]:
    lines: List[str] = []
    for name in sorted_members(archive, "word/"):
        if not name.startswith(WORD_EMBEDDED_PREFIXES):
            continue
        try:
            part = _part_lines(archive, name)
        except PART_ERRORS:
            logger.warning("Skipping unreadable Word part %s", name, exc_info=True)
            continue
        if part:
            lines.append(f"## Embedded Content ({name})")
            lines.extend(part)
    return lines


def _docx_header_footer_lines(word: DocxDocument) -> List[str]:
    lines: List[str] = []
    seen = set()
    for label, kinds in (("Header Content", HEADER_KINDS), ("Footer Content", FOOTER_KINDS)):
        for section in word.sections:
            for kind in kinds:
                container = getattr(section, kind)
                if container.is_linked_to_previous:
                    continue
                name = str(container.part.partname).lstrip("/")
                if name in seen:
                    continue
                seen.add(name)
                texts = [collapse_whitespace(p.text) for p in _block_paragraphs(container)]
                texts = [text for text in texts if text]
                if texts:
                    lines.append(f"## {label} ({name})")
                    lines.extend(texts)
    return lines


def _part_lines(archive: zipfile.ZipFile, name: str) -> List[str]:
    lines = extract_paragraphs(read_xml(archive, name))
    if lines:
        return lines
    text = strip_tags(read_text(archive, name))
    return [text] if len(text) > MIN_PART_TEXT_LENGTH else []


def _word_fallback(document: RawDocument) -> ExtractedContent:
    try:
        text = _mammoth_text(document.content)
    except Exception as exc:
        logger.warning(
            "Raw text fallback failed for %s: %s", document.file_name, exc
        )
        return ExtractedContent(
            raw_text="",
            format_family="word",
            file_name=document.file_name,
            warnings=[f"Could not read Word document {document.file_name}: {exc}"],
            structured=False,
        )
    return ExtractedContent(
        raw_text=text,
        format_family="word",
        file_name=document.file_name,
        warnings=[f"{document.file_name}: structured extraction failed; raw text used"],
        structured=False,
    )


def _mammoth_text(content: bytes) -> str:
    result = mammoth.extract_raw_text(io.BytesIO(content))
    return result.value or ""


# Excel


def _workbook_lines(workbook: Workbook) -> List[str]:
    lines: List[str] = []
    if workbook.sheetnames:
        lines.append("## Workbook Structure")
        lines.extend(
            f"Sheet {index}: {name}" for index, name in enumerate(workbook.sheetnames, start=1)
        )

    for sheet in workbook.worksheets:
        cells = _worksheet_cells(sheet)
        lines.append(f"### Worksheet: {sheet.title}")
        content = [
            text
            for _, text in cells
            if len(text) > MIN_CELL_TEXT_LENGTH and not _NUMERIC_RE.match(text)
        ]
        if content:
            lines.append("#### Business Content")
            lines.extend(f"- {text}" for text in content)
        headers = [text for row, text in cells if row == 1]
        if headers:
            lines.append("#### Column Headers")
            lines.extend(f"- {text}" for text in headers)
    return lines


def _worksheet_cells(sheet: Worksheet) -> List[Tuple[int, str]]:
    """Non-empty cell values as ``(row, text)`` in reading order."""
    cells = []
    for row in sheet.iter_rows():
        for cell in row:
            if cell.value is None:
                continue
            text = str(cell.value).strip()
            if text:
                cells.append((cell.row, text))
    return cells


def _chart_lines(archive: zipfile.ZipFile) -> List[str]:
    # openpyxl keeps loaded charts as private worksheet state; titles come from the chart XML.
    titles: List[str] = []
    for name in sorted_members(archive, "xl/charts/chart"):
        try:
            title = _chart_title(read_xml(archive, name))
        except PART_ERRORS:
            logger.warning("Skipping unreadable chart %s", name, exc_info=True)
            continue
        if title:
            titles.append(title)
    if not titles:
        return []
    return ["### Charts and Diagrams"] + [f"- {title}" for title in titles]


def _chart_title(root: ET.Element) -> str:
    title = next(iter_local(root, "title"), None)
    if title is None:
        return ""
    return _joined_text(title)


def _joined_text(element: ET.Element) -> str:
    return "".join(t.text or "" for t in iter_local(element, "t")).strip()


# PowerPoint


def _pptx_lines(archive: zipfile.ZipFile) -> List[str]:
    lines: List[str] = []
    if has_member(archive, "ppt/presentation.xml"):
        try:
            presentation = read_xml(archive, "ppt/presentation.xml")
            slide_count = sum(1 for _ in iter_local(presentation, "sldId"))
        except PART_ERRORS:
            logger.warning("Skipping unreadable ppt/presentation.xml", exc_info=True)
            slide_count = 0
        if slide_count:
            lines.append(f"## Presentation Structure: {slide_count} slides")

    for index, name in enumerate(sorted_members(archive, "ppt/slides/slide"), start=1):
        try:
            paragraphs = extract_paragraphs(read_xml(archive, name))
        except PART_ERRORS:
            logger.warning("Skipping unreadable slide %s", name, exc_info=True)
            continue
        lines.append(f"### Slide {index}")
        lines.extend(f"- {text}" for text in paragraphs)
        notes = _slide_notes(archive, name)
        if notes:
            lines.append("#### Speaker Notes")
            lines.extend(notes)

    media = sorted_members(archive, "ppt/media/", suffix="") + sorted_members(
        archive, "ppt/embeddings/", suffix=""
    )
    if media:
        lines.append("### Embedded Media: " + ", ".join(media))
    layouts = sorted_members(archive, "ppt/slideMasters/", exclude=("_rels",)) + sorted_members(
        archive, "ppt/slideLayouts/", exclude=("_rels",)
    )
    if layouts:
        lines.append("### Slide Layouts: " + ", ".join(layouts))
    return lines


def _slide_notes(archive: zipfile.ZipFile, slide_name: str) -> List[str]:
    target = _related_part(archive, slide_name, "/notesSlide")
    if not target or not has_member(archive, target):
        return []
    try:
        paragraphs = extract_paragraphs(read_xml(archive, target))
    except PART_ERRORS:
        logger.warning("Skipping unreadable notes %s", target, exc_info=True)
        return []
    return [text for text in paragraphs if not _NUMERIC_RE.match(text)]


def _related_part(archive: zipfile.ZipFile, part_name: str, type_suffix: str) -> Optional[str]:
    folder, base = posixpath.split(part_name)
    rels_name = posixpath.join(folder, "_rels", f"{base}.rels")
    if not has_member(archive, rels_name):
        return None
    try:
        rels = read_xml(archive, rels_name)
    except PART_ERRORS:
        logger.warning("Skipping unreadable relationships %s", rels_name, exc_info=True)
        return None
    for rel in iter_local(rels, "Relationship"):
        if attribute(rel, "Type").endswith(type_suffix):
            return resolve_target(folder, attribute(rel, "Target"))
    return None


# Visio


def _vsdx_lines(archive: zipfile.ZipFile, tables: PatternTables) -> tuple:
    rules = tables.flowchart
    lines: List[str] = []
    page_names = _visio_page_names(archive)
    business_pages = [
        name for name in page_names.values() if name and not rules.generic_page_name.search(name)
    ]
    if business_pages:
        lines.append("## Business Process Pages")
        lines.extend(f"Business Process: {name}" for name in business_pages)

    masters: Dict[str, str] = {}
    if has_member(archive, "visio/masters/masters.xml"):
        try:
            masters = parse_masters(archive.read("visio/masters/masters.xml"))
        except PART_ERRORS:
            logger.warning("Skipping unreadable visio/masters/masters.xml", exc_info=True)

    pages: List[FlowchartPage] = []
    for index, name in enumerate(
        sorted_members(archive, "visio/pages/", exclude=("pages.xml", "_rels")), start=1
    ):
        page_name = page_names.get(name) or f"Page {index}"
        try:
            page = analyze_page(archive.read(name), rules, masters, page_name)
        except PART_ERRORS:
            logger.warning("Skipping unreadable Visio page %s", name, exc_info=True)
            continue
        pages.append(page)
        lines.extend(describe_page(page))
    return lines, pages


def _visio_page_names(archive: zipfile.ZipFile) -> Dict[str, str]:
    """Map page part names (``visio/pages/page1.xml``) to their display names."""
    index_name = "visio/pages/pages.xml"
    if not has_member(archive, index_name):
        return {}
    try:
        root = read_xml(archive, index_name)
    except PART_ERRORS:
        logger.warning("Skipping unreadable %s", index_name, exc_info=True)
        return {}

    targets: Dict[str, str] = {}
    rels_name = "visio/pages/_rels/pages.xml.rels"
    if has_member(archive, rels_name):
        try:
            for rel in iter_local(read_xml(archive, rels_name), "Relationship"):
                target = attribute(rel, "Target")
                targets[attribute(rel, "Id")] = resolve_target("visio/pages", target)
        except PART_ERRORS:
            logger.warning("Skipping unreadable %s", rels_name, exc_info=True)

    page_parts = sorted_members(archive, "visio/pages/", exclude=("pages.xml", "_rels"))
    names: Dict[str, str] = {}
    for position, page in enumerate(iter_local(root, "Page")):
        display = attribute(page, "Name") or attribute(page, "NameU")
        rel = next(iter_local(page, "Rel"), None)
        part = targets.get(attribute(rel, "id")) if rel is not None else None
        if part is None and position < len(page_parts):
            part = page_parts[position]
        if part:
            names[part] = display
    return dict(sorted(names.items(), key=lambda item: natural_key(item[0])))


# Wrappers


def _wrap(
    title: str,
    document: RawDocument,
    family: str,
    lines: List[str],
    empty_note: str,
) -> ExtractedContent:
    if not lines:
        return _manual_review(title, document, family, empty_note, structured=True)
    header = [f"# {title}", "", f"## File: {document.file_name}", "", "### Extracted Content:"]
    return ExtractedContent(
        raw_text="\n".join(header + lines),
        format_family=family,
        file_name=document.file_name,
    )


def _manual_review(
    title: str,
    document: RawDocument,
    family: str,
    note: str,
    structured: bool = False,
) -> ExtractedContent:
    text = "\n".join([f"# {title}", "", f"## File: {document.file_name}", "", note])
    return ExtractedContent(
        raw_text=text,
        format_family=family,
        file_name=document.file_name,
        warnings=[f"{document.file_name}: no extractable content, manual review required"],
        structured=structured,
    )
