"""Workflow complexity estimation from process vocabulary.

Counts are taken over the whole text with one longest-first alternation per
vocabulary, so a phrase such as "exclusive gateway" is counted once.
Cyclomatic complexity follows the graph form E - N + 2P with
edges = connectors + decision points and nodes = decision points +
activities + events.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List

from core.contracts import WorkflowComplexity
from core.patterns import PatternTables

_PATHS_RE = re.compile(r"Paths:\s*(\d+)")
_DECISIONS_RE = re.compile(r"Decision Points:\s*(\d+)")
_ACTIVITIES_RE = re.compile(r"Activities:\s*(\d+)")


@dataclass(frozen=True)
class BpmnAnalysis:
    patterns: Dict[str, int]
    total_decision_points: int
    total_activities: int
    total_events: int
    sequence_flows: int
    cyclomatic_complexity: int
    workflow_type: str


@dataclass(frozen=True)
class CoverageValidation:
    expected_paths: int
    actual_scenarios: int
    path_coverage: int
    expected_decision_points: int
    expected_activities: int
    decision_coverage: int
    is_adequate: bool
    recommendations: List[str] = field(default_factory=list)


def analyze_workflow_content(text: str, tables: PatternTables) -> WorkflowComplexity:
    vocabulary = tables.workflow
    decision_points = len(vocabulary.decision_points.findall(text))
    activities = len(vocabulary.activities.findall(text))
    events = len(vocabulary.events.findall(text))
    connectors = len(vocabulary.connectors.findall(text))

    edges = connectors + decision_points
    nodes = decision_points + activities + events
    cyclomatic = cyclomatic_complexity(edges, nodes, vocabulary.components)
    return WorkflowComplexity(
        decision_points=decision_points,
        activities=activities,
        events=events,
        connectors=connectors,
        edges=edges,
        nodes=nodes,
        components=vocabulary.components,
        cyclomatic_complexity=cyclomatic,
        complexity_level=complexity_level(cyclomatic, tables),
        workflow_detected=(
            decision_points >= vocabulary.min_decision_points
            or activities >= vocabulary.min_activities
            or connectors >= vocabulary.min_connectors
        ),
        total_elements=decision_points + activities + events + connectors,
    )


def cyclomatic_complexity(edges: int, nodes: int, components: int = 1) -> int:
    return max(1, edges - nodes + 2 * components)


def complexity_level(cyclomatic: int, tables: PatternTables) -> str:
    for maximum, level in tables.workflow.levels:
        if cyclomatic <= maximum:
            return level
    return tables.workflow.top_level


def estimated_paths(decision_points: int, tables: PatternTables) -> int:
    return 2 ** min(decision_points, tables.workflow.max_path_exponent)


def generate_complexity_description(text: str, tables: PatternTables) -> str:
    """Per-requirement summary, e.g. ``CC: 3, Decision Points: 2, Activities: 1, Paths: 4``."""
    analysis = analyze_workflow_content(text, tables)
    return (
        f"CC: {analysis.cyclomatic_complexity}, "
        f"Decision Points: {analysis.decision_points}, "
        f"Activities: {analysis.activities}, "
        f"Paths: {estimated_paths(analysis.decision_points, tables)}"
    )


def analyze_bpmn_content(text: str, tables: PatternTables) -> BpmnAnalysis:
    rules = tables.bpmn
    counts = {name: len(regex.findall(text)) for name, regex in rules.patterns}
    decisions = sum(counts[name] for name in rules.decision_points)
    activities = sum(counts[name] for name in rules.activities)
    events = sum(counts[name] for name in rules.events)
    flows = sum(counts[name] for name in rules.connectors)
    return BpmnAnalysis(
        patterns=counts,
        total_decision_points=decisions,
        total_activities=activities,
        total_events=events,
        sequence_flows=flows,
        cyclomatic_complexity=cyclomatic_complexity(
            flows + decisions, decisions + activities + events, tables.workflow.components
        ),
        workflow_type="complex" if decisions > 0 else "simple",
    )


def validate_test_coverage(
    test_content: str,
    complexity_info: str,
    tables: PatternTables,
) -> CoverageValidation:
    expected_paths = _parse_count(_PATHS_RE, complexity_info, 1)
    expected_decisions = _parse_count(_DECISIONS_RE, complexity_info, 0)
    expected_activities = _parse_count(_ACTIVITIES_RE, complexity_info, 1)
    actual = len(tables.coverage.scenario_marker.findall(test_content))

    covers_decisions = tables.coverage.decision_keywords.any_in(test_content.lower())
    path_coverage = min(100.0, (actual / expected_paths) * 100) if expected_paths else 100.0
    decision_coverage = 100 if expected_decisions == 0 or covers_decisions else 0
    return CoverageValidation(
        expected_paths=expected_paths,
        actual_scenarios=actual,
        path_coverage=int(round(path_coverage)),
        expected_decision_points=expected_decisions,
        expected_activities=expected_activities,
        decision_coverage=decision_coverage,
        is_adequate=actual >= expected_paths,
        recommendations=generate_coverage_recommendations(
            expected_paths, actual, expected_decisions
        ),
    )


def generate_coverage_recommendations(
    expected_paths: int,
    actual_scenarios: int,
    decision_points: int,
) -> List[str]:
    recommendations: List[str] = []
    if actual_scenarios < expected_paths:
        recommendations.append(
            f"Generate {expected_paths - actual_scenarios} more test scenarios to cover all paths"
        )
    if decision_points > 0 and actual_scenarios < decision_points * 2:
        recommendations.append("Consider creating separate scenarios for each decision branch")
    if actual_scenarios == 0:
        recommendations.append("No test scenarios found. Generate comprehensive test coverage.")
    if actual_scenarios >= expected_paths:
        recommendations.append("Good path coverage achieved. Consider adding edge case scenarios.")
    return recommendations


def _parse_count(pattern: "re.Pattern[str]", text: str, default: int) -> int:
    match = pattern.search(text or "")
    return int(match.group(1)) if match else default
