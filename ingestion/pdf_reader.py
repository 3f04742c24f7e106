import logging
import re
from typing import List

import fitz

from core.config import settings
from core.contracts import ExtractedContent, RawDocument
from core.errors import ExtractionError
from ingestion.pdf_analysis import triage_warnings

logger = logging.getLogger(__name__)

MAX_CAPS_HEADING_LENGTH = 80
MAX_NUMBERED_TITLE_LENGTH = 60

_CAPS_HEADING_RE = re.compile(r"^[A-Z][A-Z0-9\s&/,-]*$")
_NUMBERED_TITLE_RE = re.compile(r"^[0-9]+(\.[0-9]+)*\.?\s+[A-Z]")
_MODAL_RE = re.compile(r"\b(must|should|shall|will|can|may)\b", re.IGNORECASE)
_TABLE_SPLIT_RE = re.compile(r"\s{2,}")
_BOX_CHARS = set("┌├└│─┐┤┘┬┴┼")
_ARROW_TOKENS = ("→", "←", "↑", "↓", "->", "<-", "=>", "<=")


def read_pdf(document: RawDocument) -> ExtractedContent:
    try:
        pdf = fitz.open(stream=document.content, filetype="pdf")
    except Exception as exc:
        raise ExtractionError(document.file_name, str(exc)) from exc

    try:
        text = "\n".join(page.get_text("text") or "" for page in pdf)
        warnings: List[str] = []
        if settings.enable_pdf_page_triage:
            try:
                warnings = triage_warnings(pdf)
            except Exception:
                logger.warning("Page triage failed for %s", document.file_name, exc_info=True)
    finally:
        pdf.close()

    try:
        structured_text = structure_pdf_text(text)
    except Exception:
        logger.warning(
            "Structure detection failed for %s; using plain text",
            document.file_name,
            exc_info=True,
        )
        return ExtractedContent(
            raw_text=text,
            format_family="pdf",
            file_name=document.file_name,
            warnings=warnings,
            structured=False,
        )

    return ExtractedContent(
        raw_text=structured_text,
        format_family="pdf",
        file_name=document.file_name,
        warnings=warnings,
    )


def structure_pdf_text(text: str) -> str:
    output: List[str] = []
    table_rows: List[str] = []

    def flush_table() -> None:
        if table_rows:
            output.append("")
            output.append("### Table Content:")
            output.extend(table_rows)
            output.append("")
            table_rows.clear()

    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if is_table_row(line):
            table_rows.append(line)
            continue
        flush_table()
        if not line:
            output.append("")
        elif is_pdf_heading(line):
            output.append("")
            output.append(f"# {line}")
        elif any(char in _BOX_CHARS for char in line):
            output.append("### Diagram/Chart Content:")
            output.append(line)
        elif any(token in line for token in _ARROW_TOKENS):
            output.append("### Flow Diagram:")
            output.append(line)
        else:
            output.append(line)
    flush_table()
    return "\n".join(output).strip()


def is_pdf_heading(line: str) -> bool:
    if len(line) <= MAX_CAPS_HEADING_LENGTH and _CAPS_HEADING_RE.match(line):
        return any(char.isalpha() for char in line)
    # Numbered lines are headings only when they read like a title, not a
    # numbered requirement.
    return (
        len(line) <= MAX_NUMBERED_TITLE_LENGTH
        and bool(_NUMBERED_TITLE_RE.match(line))
        and not line.endswith((".", "!", "?", ":"))
        and not _MODAL_RE.search(line)
    )


def is_table_row(line: str) -> bool:
    return "  " in line and len(_TABLE_SPLIT_RE.split(line)) > 2
