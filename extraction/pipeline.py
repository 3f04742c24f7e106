import logging
from typing import Optional

from core.contracts import ExtractionOptions, ExtractionReport, RawDocument
from core.logging import configure_logging
from core.patterns import load_pattern_tables
from extraction.report import extract_business_requirements
from ingestion.extract import extract_file_content

logger = logging.getLogger(__name__)


def analyze_document(
    document: RawDocument,
    options: Optional[ExtractionOptions] = None,
) -> ExtractionReport:
    configure_logging()
    tables = load_pattern_tables()
    content = extract_file_content(document, tables)
    for warning in content.warnings:
        logger.warning("%s", warning)

    report = extract_business_requirements(content.raw_text, options=options, tables=tables)
    logger.info(
        "Extracted %d business elements from %s (%s)",
        report.count,
        document.file_name,
        content.format_family,
    )
    return ExtractionReport(
        elements=report.elements,
        count=report.count,
        breakdown=report.breakdown,
        quality_metrics=report.quality_metrics,
        workflow=report.workflow,
        sections=report.sections,
        total_lines=report.total_lines,
        processed_lines=report.processed_lines,
        manual_review_required=report.manual_review_required,
        message=report.message,
        file_name=document.file_name,
        format_family=content.format_family,
        warnings=list(content.warnings),
        flowchart=content.flowchart,
    )
