"""Line-level business element classification.

Tiers run in a fixed order and every tier may contribute a candidate; the
deduplicator later keeps the first candidate per line text, so the earliest
tier decides the element type. The generic fallback only fires when no tier
matched at all.
"""

import logging
from typing import Iterable, List

from core.contracts import BusinessElement, NormalizedLine
from core.patterns import LinePattern, PatternTables

logger = logging.getLogger(__name__)

HIGH = "high"
MEDIUM = "medium"


def classify(
    line: str,
    line_number: int,
    section: str,
    tables: PatternTables,
) -> List[BusinessElement]:
    text = line.strip()
    if len(text) < tables.fallback.min_length or is_rejected_line(text, tables):
        return []

    def candidate(pattern: LinePattern, confidence: str) -> BusinessElement:
        return BusinessElement(
            type=pattern.type,
            text=text,
            line_number=line_number,
            section=section,
            priority=pattern.priority,
            confidence=confidence,
            pattern=pattern.source,
        )

    elements: List[BusinessElement] = []

    exact = next((p for p in tables.exact_prefix if p.regex.search(text)), None)
    if exact is not None:
        elements.append(candidate(exact, HIGH))
    elements.extend(candidate(p, HIGH) for p in tables.business_logic if p.regex.search(text))
    elements.extend(candidate(p, MEDIUM) for p in tables.structural if p.regex.search(text))

    for family in tables.keyword_families:
        match = next((p for p in family.patterns if p.regex.search(text)), None)
        if match is not None:
            elements.append(candidate(match, family.confidence))

    if not elements and has_business_content(text, tables) and is_extractable_requirement(
        text, tables
    ):
        fallback = tables.fallback
        elements.append(
            BusinessElement(
                type=fallback.type,
                text=text,
                line_number=line_number,
                section=section,
                priority=fallback.priority,
                confidence=fallback.confidence,
                pattern=fallback.pattern,
            )
        )
    return elements


def classify_lines(
    lines: Iterable[NormalizedLine],
    tables: PatternTables,
) -> List[BusinessElement]:
    elements: List[BusinessElement] = []
    for line in lines:
        try:
            elements.extend(classify(line.text, line.line_number, line.section, tables))
        except Exception:
            logger.warning("Dropping line %d after classification error", line.line_number, exc_info=True)
    return elements


def is_rejected_line(text: str, tables: PatternTables) -> bool:
    """Numbered sequences, table-of-contents and index entries are never requirements."""
    cleaned = text.strip()
    return any(pattern.search(cleaned) for pattern in tables.rejection)


def has_business_content(text: str, tables: PatternTables) -> bool:
    cleaned = text.strip()
    return (
        len(cleaned) > tables.fallback.min_length
        and tables.fallback.business_keywords.any_in(cleaned.lower())
        and not any(pattern.search(cleaned) for pattern in tables.technical)
    )


def is_extractable_requirement(text: str, tables: PatternTables) -> bool:
    fallback = tables.fallback
    cleaned = text.strip()
    lower = cleaned.lower()
    if is_rejected_line(cleaned, tables):
        return False
    if any(rule.matches(cleaned) for rule in fallback.vague):
        return False
    has_action = fallback.action_words.any_in(lower)
    has_outcome = fallback.outcome_words.any_in(lower)
    is_complete = (
        cleaned.endswith(fallback.complete_endings)
        or len(cleaned) >= fallback.complete_min_length
    )
    return (has_action or has_outcome) and is_complete
