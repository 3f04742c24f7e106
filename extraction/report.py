import dataclasses
import logging
import math
from typing import Dict, Iterable, List, Optional

from core.config import settings
from core.contracts import (
    BusinessElement,
    ElementBreakdown,
    ExtractionOptions,
    ExtractionReport,
    QualityMetrics,
)
from core.patterns import PatternTables, load_pattern_tables
from extraction.classifier import classify_lines
from extraction.quality import deduplicate, finalize_element
from extraction.workflow import analyze_workflow_content, generate_complexity_description
from ingestion.normalize import normalize

logger = logging.getLogger(__name__)

NO_TEXT_MESSAGE = "No extractable text was found; manual review is required."
NO_ELEMENTS_MESSAGE = (
    "No business requirements were detected in the extracted text; manual review is required."
)
LOW_PRIORITY = "low"


def default_options() -> ExtractionOptions:
    return ExtractionOptions(
        min_line_length=settings.min_line_length,
        max_line_length=settings.max_line_length,
        include_low_priority=settings.include_low_priority,
    )


def extract_business_requirements(
    content: str,
    options: Optional[ExtractionOptions] = None,
    tables: Optional[PatternTables] = None,
) -> ExtractionReport:
    options = options or default_options()
    tables = tables or load_pattern_tables()
    text = content or ""

    lines = normalize(
        text,
        tables,
        min_line_length=options.min_line_length,
        max_line_length=options.max_line_length,
    )
    candidates = classify_lines(lines, tables)
    finalized = [finalize_element(candidate, tables) for candidate in candidates]
    elements = [
        dataclasses.replace(
            element,
            complexity_description=generate_complexity_description(element.text, tables),
        )
        for element in deduplicate(finalized)
    ]
    if not options.include_low_priority:
        elements = [element for element in elements if element.priority != LOW_PRIORITY]

    if not text.strip():
        message = NO_TEXT_MESSAGE
    elif not elements:
        message = NO_ELEMENTS_MESSAGE
    else:
        message = f"Extracted {len(elements)} business elements."
    logger.info(
        "Classified %d lines into %d candidates, %d unique elements",
        len(lines),
        len(candidates),
        len(elements),
    )

    return ExtractionReport(
        elements=elements,
        count=len(elements),
        breakdown=generate_breakdown(elements),
        quality_metrics=calculate_quality_metrics(elements, len(text), tables),
        workflow=analyze_workflow_content(text, tables),
        sections=_ordered_sections(elements),
        total_lines=len(text.splitlines()),
        processed_lines=len(lines),
        manual_review_required=not elements,
        message=message,
    )


def generate_breakdown(elements: Iterable[BusinessElement]) -> ElementBreakdown:
    by_type: Dict[str, int] = {}
    by_priority: Dict[str, int] = {}
    by_confidence: Dict[str, int] = {}
    by_complexity: Dict[str, int] = {}
    by_testability: Dict[str, int] = {}
    for element in elements:
        _increment(by_type, element.type)
        _increment(by_priority, element.priority)
        _increment(by_confidence, element.confidence)
        _increment(by_complexity, element.complexity)
        _increment(by_testability, "testable" if element.is_testable else "not_testable")
    return ElementBreakdown(
        by_type=by_type,
        by_priority=by_priority,
        by_confidence=by_confidence,
        by_complexity=by_complexity,
        by_testability=by_testability,
    )


def calculate_quality_metrics(
    elements: List[BusinessElement],
    content_length: int,
    tables: PatternTables,
) -> QualityMetrics:
    total = len(elements)
    high_confidence = sum(1 for element in elements if element.confidence == "high")
    testable = sum(1 for element in elements if element.is_testable)
    return QualityMetrics(
        total_elements=total,
        high_confidence_elements=high_confidence,
        testable_elements=testable,
        confidence_ratio=(high_confidence / total) if total else 0.0,
        testability_ratio=(testable / total) if total else 0.0,
        density_per_k=(total / content_length) * 1000 if content_length else 0.0,
        quality_score=calculate_overall_quality_score(elements, tables),
    )


def calculate_overall_quality_score(
    elements: List[BusinessElement],
    tables: PatternTables,
) -> int:
    if not elements:
        return 0
    total = len(elements)
    avg_confidence = sum(tables.confidence_weights.get(e.confidence, 0.0) for e in elements) / total
    testability = sum(1 for e in elements if e.is_testable) / total
    avg_complexity = sum(tables.complexity_weights.get(e.complexity, 0.0) for e in elements) / total
    weights = tables.overall_weights
    score = (
        avg_confidence * weights["confidence"]
        + testability * weights["testability"]
        + avg_complexity * weights["complexity"]
    )
    return int(math.floor(score * 100 + 0.5))


def _ordered_sections(elements: Iterable[BusinessElement]) -> List[str]:
    seen = set()
    sections: List[str] = []
    for element in elements:
        if element.section and element.section not in seen:
            seen.add(element.section)
            sections.append(element.section)
    return sections


def _increment(counter: Dict[str, int], key: str) -> None:
    counter[key] = counter.get(key, 0) + 1
