import logging
from typing import Callable, Dict, Optional

from core.contracts import ExtractedContent, RawDocument
from core.patterns import PatternTables, load_pattern_tables
from ingestion.file_types import detect_format_family
from ingestion.office_readers import read_excel, read_powerpoint, read_visio, read_word
from ingestion.pdf_reader import read_pdf

logger = logging.getLogger(__name__)

IMAGE_NOTE = (
    "### Note: This is an image file that requires manual analysis or OCR processing "
    "to extract text content."
)

Reader = Callable[[RawDocument, PatternTables], ExtractedContent]


def read_text(document: RawDocument, tables: PatternTables) -> ExtractedContent:
    return ExtractedContent(
        raw_text=document.content.decode("utf-8", errors="replace"),
        format_family="text",
        file_name=document.file_name,
    )


def read_image(document: RawDocument, tables: PatternTables) -> ExtractedContent:
    return ExtractedContent(
        raw_text=f"# [Image File: {document.file_name}]\n\n{IMAGE_NOTE}",
        format_family="image",
        file_name=document.file_name,
        warnings=[f"{document.file_name}: image content is not read; OCR or manual review required"],
        structured=False,
    )


READERS: Dict[str, Reader] = {
    "pdf": lambda document, tables: read_pdf(document),
    "text": read_text,
    "word": lambda document, tables: read_word(document),
    "image": read_image,
    "excel": lambda document, tables: read_excel(document),
    "powerpoint": lambda document, tables: read_powerpoint(document),
    "visio": read_visio,
}


def extract_file_content(
    document: RawDocument,
    tables: Optional[PatternTables] = None,
) -> ExtractedContent:
    family = detect_format_family(document.mime_type, document.extension)
    logger.info("Extracting %s as %s", document.file_name, family)
    return READERS[family](document, tables or load_pattern_tables())
