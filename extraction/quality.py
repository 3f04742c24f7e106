import dataclasses
import re
from typing import Iterable, List, Tuple

from core.contracts import BusinessElement
from core.patterns import PatternTables, TextRule

MIN_SCORE = 0
MAX_SCORE = 100

_WS_RE = re.compile(r"\s+")


def calculate_quality_score(text: str, tables: PatternTables) -> int:
    scoring = tables.scoring
    score = 0
    for category in (
        scoring.action_words,
        scoring.specificity,
        scoring.completeness,
        scoring.business_context,
    ):
        score += _first_match_points(category, text)
    if is_element_testable(text, tables):
        score += scoring.testability_bonus
    score += sum(rule.points for rule in scoring.adjustments if rule.matches(text))
    return max(MIN_SCORE, min(MAX_SCORE, score))


def calculate_element_complexity(text: str, tables: PatternTables) -> str:
    lower = text.lower()
    complexity = tables.complexity_base + sum(
        1 for signal in tables.complexity_signals if signal.search(lower)
    )
    if complexity <= tables.complexity_simple_max:
        return "simple"
    if complexity <= tables.complexity_moderate_max:
        return "moderate"
    return "complex"


def is_element_testable(text: str, tables: PatternTables) -> bool:
    lower = text.lower()
    return tables.testability_actions.any_in(lower) or tables.testability_outcomes.any_in(lower)


def has_acceptance_criteria(text: str, tables: PatternTables) -> bool:
    return tables.acceptance_criteria_words.any_in(text.lower())


def finalize_element(element: BusinessElement, tables: PatternTables) -> BusinessElement:
    return dataclasses.replace(
        element,
        complexity=calculate_element_complexity(element.text, tables),
        is_testable=is_element_testable(element.text, tables),
        has_acceptance_criteria=has_acceptance_criteria(element.text, tables),
        quality_score=calculate_quality_score(element.text, tables),
    )


def normalize_text_key(text: str) -> str:
    return _WS_RE.sub(" ", text.lower()).strip()


def deduplicate(elements: Iterable[BusinessElement]) -> List[BusinessElement]:
    """Keep the first element per normalized text, preserving input order."""
    seen = set()
    unique: List[BusinessElement] = []
    for element in elements:
        key = normalize_text_key(element.text)
        if key in seen:
            continue
        seen.add(key)
        unique.append(element)
    return unique


def _first_match_points(rules: Tuple[TextRule, ...], text: str) -> int:
    for rule in rules:
        if rule.matches(text):
            return rule.points
    return 0
