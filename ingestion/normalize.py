import logging
import re
from typing import List, Optional

from core.contracts import DocumentSection, NormalizedLine
from core.patterns import PatternTables

logger = logging.getLogger(__name__)

_HASHES_RE = re.compile(r"^#+\s*")


def normalize(
    raw_text: str,
    tables: PatternTables,
    min_line_length: int = 20,
    max_line_length: int = 500,
) -> List[NormalizedLine]:
    """Split extracted text into candidate lines.

    Line numbers are positions in the unfiltered source, so they stay strictly
    increasing across dropped lines. Headings only move the current section.
    """
    lines: List[NormalizedLine] = []
    section = ""
    for line_number, raw_line in enumerate(raw_text.splitlines(), start=1):
        text = raw_line.strip()
        if not text:
            continue
        heading = heading_text(text, tables)
        if heading is not None:
            section = heading
            continue
        if len(text) < min_line_length or len(text) > max_line_length:
            continue
        if is_technical_content(text, tables):
            continue
        lines.append(NormalizedLine(text=text, line_number=line_number, section=section))
    logger.debug("Normalized %d candidate lines", len(lines))
    return lines


def is_heading(line: str, tables: PatternTables) -> bool:
    return heading_text(line, tables) is not None


def heading_text(line: str, tables: PatternTables) -> Optional[str]:
    cleaned = line.strip()
    if tables.heading_markdown.match(cleaned):
        return _normalize_heading(_HASHES_RE.sub("", cleaned))
    if len(cleaned) < tables.heading_caps_max_length and tables.heading_caps.match(cleaned):
        return _normalize_heading(cleaned)
    return None


def is_technical_content(line: str, tables: PatternTables) -> bool:
    cleaned = line.strip()
    return any(pattern.search(cleaned) for pattern in tables.technical)


def split_sections(content: str, file_name: str) -> List[DocumentSection]:
    sections: List[DocumentSection] = []
    title = ""
    body: List[str] = []

    def flush() -> None:
        text = "\n".join(body).strip()
        if text:
            sections.append(
                DocumentSection(title=title or f"Section {len(sections) + 1}", content=text)
            )

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if line.startswith("#"):
            flush()
            title = _normalize_heading(_HASHES_RE.sub("", line))
            body = [line]
        else:
            body.append(line)
    flush()

    if not sections:
        return [DocumentSection(title=f"Content from {file_name}", content=content.strip())]
    return sections


def _normalize_heading(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip())
