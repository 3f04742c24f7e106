"""Loader for the versioned keyword/regex tables in ``patterns.yaml``.

Tables are loaded explicitly per extraction call and handed down to each
stage; nothing here is cached at module level.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

import yaml

from core.config import settings
from core.errors import PatternConfigError

SHORT_KEYWORD_LENGTH = 3


def keyword_regex(keyword: str) -> Pattern[str]:
    escaped = re.escape(keyword.lower())
    if not keyword[:1].isalnum():
        return re.compile(escaped)
    if len(keyword) <= SHORT_KEYWORD_LENGTH:
        return re.compile(rf"\b{escaped}\b")
    return re.compile(rf"\b{escaped}")


@dataclass(frozen=True)
class KeywordSet:
    words: Tuple[str, ...]
    regexes: Tuple[Pattern[str], ...]

    def any_in(self, lower: str) -> bool:
        return any(regex.search(lower) for regex in self.regexes)

    def all_in(self, lower: str) -> bool:
        return all(regex.search(lower) for regex in self.regexes)


def _keywords(words: Optional[Sequence[str]]) -> KeywordSet:
    cleaned = tuple(str(word) for word in (words or []))
    return KeywordSet(words=cleaned, regexes=tuple(keyword_regex(w) for w in cleaned))


@dataclass(frozen=True)
class TextRule:
    """Conjunction of simple lexical conditions; an empty rule matches anything."""

    any_words: Optional[KeywordSet]
    all_words: Optional[KeywordSet]
    none_words: Optional[KeywordSet]
    regex: Optional[Pattern[str]]
    starts_with: Tuple[str, ...]
    ends_with: Tuple[str, ...]
    shorter_than: Optional[int]
    longer_than: Optional[int]
    points: int

    def matches(self, text: str) -> bool:
        stripped = text.strip()
        lower = stripped.lower()
        if self.any_words is not None and not self.any_words.any_in(lower):
            return False
        if self.all_words is not None and not self.all_words.all_in(lower):
            return False
        if self.none_words is not None and self.none_words.any_in(lower):
            return False
        if self.regex is not None and not self.regex.search(stripped):
            return False
        if self.starts_with and not lower.startswith(self.starts_with):
            return False
        if self.ends_with and not stripped.endswith(self.ends_with):
            return False
        if self.shorter_than is not None and len(stripped) >= self.shorter_than:
            return False
        if self.longer_than is not None and len(stripped) <= self.longer_than:
            return False
        return True


@dataclass(frozen=True)
class LinePattern:
    regex: Pattern[str]
    type: str
    priority: str

    @property
    def source(self) -> str:
        return self.regex.pattern


@dataclass(frozen=True)
class KeywordFamily:
    name: str
    confidence: str
    patterns: Tuple[LinePattern, ...]


@dataclass(frozen=True)
class FallbackRules:
    type: str
    priority: str
    confidence: str
    pattern: str
    min_length: int
    business_keywords: KeywordSet
    vague: Tuple[TextRule, ...]
    action_words: KeywordSet
    outcome_words: KeywordSet
    complete_endings: Tuple[str, ...]
    complete_min_length: int


@dataclass(frozen=True)
class ScoringRules:
    action_words: Tuple[TextRule, ...]
    specificity: Tuple[TextRule, ...]
    completeness: Tuple[TextRule, ...]
    business_context: Tuple[TextRule, ...]
    testability_bonus: int
    adjustments: Tuple[TextRule, ...]


@dataclass(frozen=True)
class WorkflowVocabulary:
    decision_points: Pattern[str]
    activities: Pattern[str]
    events: Pattern[str]
    connectors: Pattern[str]
    components: int
    levels: Tuple[Tuple[int, str], ...]
    top_level: str
    min_decision_points: int
    min_activities: int
    min_connectors: int
    max_path_exponent: int


@dataclass(frozen=True)
class FlowchartRules:
    roles: Tuple[Tuple[str, Pattern[str]], ...]
    default_role: str
    ignored_text: Pattern[str]
    min_text_length: int
    connector_master: Pattern[str]
    generic_page_name: Pattern[str]
    complexity: Tuple[Tuple[int, str], ...]
    default_complexity: str


@dataclass(frozen=True)
class BpmnRules:
    patterns: Tuple[Tuple[str, Pattern[str]], ...]
    decision_points: Tuple[str, ...]
    activities: Tuple[str, ...]
    events: Tuple[str, ...]
    connectors: Tuple[str, ...]


@dataclass(frozen=True)
class CoverageRules:
    scenario_marker: Pattern[str]
    decision_keywords: KeywordSet


@dataclass(frozen=True)
class PatternTables:
    version: int
    heading_markdown: Pattern[str]
    heading_caps: Pattern[str]
    heading_caps_max_length: int
    technical: Tuple[Pattern[str], ...]
    rejection: Tuple[Pattern[str], ...]
    exact_prefix: Tuple[LinePattern, ...]
    business_logic: Tuple[LinePattern, ...]
    structural: Tuple[LinePattern, ...]
    keyword_families: Tuple[KeywordFamily, ...]
    fallback: FallbackRules
    scoring: ScoringRules
    testability_actions: KeywordSet
    testability_outcomes: KeywordSet
    acceptance_criteria_words: KeywordSet
    complexity_base: int
    complexity_signals: Tuple[Pattern[str], ...]
    complexity_simple_max: int
    complexity_moderate_max: int
    confidence_weights: Dict[str, float]
    complexity_weights: Dict[str, float]
    overall_weights: Dict[str, float]
    workflow: WorkflowVocabulary
    flowchart: FlowchartRules
    bpmn: BpmnRules
    coverage: CoverageRules


def load_pattern_tables(path: Optional[str] = None) -> PatternTables:
    target = path or settings.pattern_file
    try:
        with open(target, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        raise PatternConfigError(f"Cannot load pattern tables from {target}: {exc}") from exc
    return parse_pattern_tables(payload)


def parse_pattern_tables(payload: Any) -> PatternTables:
    if not isinstance(payload, dict):
        raise PatternConfigError("Pattern tables must be a mapping.")
    try:
        return _build_tables(payload)
    except (KeyError, TypeError, ValueError, re.error) as exc:
        raise PatternConfigError(f"Invalid pattern tables: {exc!r}") from exc


def _build_tables(payload: Dict[str, Any]) -> PatternTables:
    normalizer = payload["normalizer"]
    classifier = payload["classifier"]
    scoring = payload["scoring"]
    complexity = payload["element_complexity"]
    overall = payload["overall_quality"]
    return PatternTables(
        version=int(payload["version"]),
        heading_markdown=_compile(normalizer["heading_markdown"]),
        heading_caps=_compile_entry(normalizer["heading_caps"]),
        heading_caps_max_length=int(normalizer["heading_caps_max_length"]),
        technical=tuple(_compile_entry(e) for e in normalizer["technical"]),
        rejection=tuple(_compile_entry(e) for e in classifier["rejection"]),
        exact_prefix=_line_patterns(classifier["exact_prefix"]),
        business_logic=_line_patterns(classifier["business_logic"]),
        structural=_line_patterns(classifier["structural"]),
        keyword_families=tuple(
            KeywordFamily(
                name=str(family["name"]),
                confidence=str(family["confidence"]),
                patterns=_line_patterns(family["patterns"]),
            )
            for family in classifier["keyword_families"]
        ),
        fallback=_fallback_rules(classifier["fallback"]),
        scoring=ScoringRules(
            action_words=_rules(scoring["action_words"]),
            specificity=_rules(scoring["specificity"]),
            completeness=_rules(scoring["completeness"]),
            business_context=_rules(scoring["business_context"]),
            testability_bonus=int(scoring["testability_bonus"]),
            adjustments=_rules(scoring["adjustments"]),
        ),
        testability_actions=_keywords(payload["testability"]["action_words"]),
        testability_outcomes=_keywords(payload["testability"]["outcome_words"]),
        acceptance_criteria_words=_keywords(payload["acceptance_criteria_words"]),
        complexity_base=int(complexity["base"]),
        complexity_signals=tuple(_compile_entry(e) for e in complexity["signals"]),
        complexity_simple_max=int(complexity["simple_max"]),
        complexity_moderate_max=int(complexity["moderate_max"]),
        confidence_weights={k: float(v) for k, v in overall["confidence"].items()},
        complexity_weights={k: float(v) for k, v in overall["complexity"].items()},
        overall_weights={k: float(v) for k, v in overall["weights"].items()},
        workflow=_workflow_vocabulary(payload["workflow"]),
        flowchart=_flowchart_rules(payload["flowchart"]),
        bpmn=_bpmn_rules(payload["bpmn"]),
        coverage=CoverageRules(
            scenario_marker=_compile_entry(payload["coverage"]["scenario_marker"]),
            decision_keywords=_keywords(payload["coverage"]["decision_keywords"]),
        ),
    )


def _compile(pattern: str, case_sensitive: bool = False) -> Pattern[str]:
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(str(pattern), flags)


def _compile_entry(entry: Any) -> Pattern[str]:
    if isinstance(entry, str):
        return _compile(entry)
    return _compile(entry["regex"], bool(entry.get("case_sensitive", False)))


def _line_patterns(entries: List[Dict[str, Any]]) -> Tuple[LinePattern, ...]:
    return tuple(
        LinePattern(
            regex=_compile_entry(entry),
            type=str(entry["type"]),
            priority=str(entry["priority"]),
        )
        for entry in entries
    )


def _rule(entry: Dict[str, Any]) -> TextRule:
    def optional_keywords(key: str) -> Optional[KeywordSet]:
        return _keywords(entry[key]) if key in entry else None

    return TextRule(
        any_words=optional_keywords("any"),
        all_words=optional_keywords("all"),
        none_words=optional_keywords("none"),
        regex=_compile_entry(entry["regex"]) if "regex" in entry else None,
        starts_with=tuple(str(s).lower() for s in entry.get("starts_with", [])),
        ends_with=tuple(str(s) for s in entry.get("ends_with", [])),
        shorter_than=int(entry["shorter_than"]) if "shorter_than" in entry else None,
        longer_than=int(entry["longer_than"]) if "longer_than" in entry else None,
        points=int(entry.get("points", 0)),
    )


def _rules(entries: List[Dict[str, Any]]) -> Tuple[TextRule, ...]:
    return tuple(_rule(entry) for entry in entries)


def _fallback_rules(entry: Dict[str, Any]) -> FallbackRules:
    return FallbackRules(
        type=str(entry["type"]),
        priority=str(entry["priority"]),
        confidence=str(entry["confidence"]),
        pattern=str(entry["pattern"]),
        min_length=int(entry["min_length"]),
        business_keywords=_keywords(entry["business_keywords"]),
        vague=_rules(entry["vague"]),
        action_words=_keywords(entry["action_words"]),
        outcome_words=_keywords(entry["outcome_words"]),
        complete_endings=tuple(str(s) for s in entry["complete_endings"]),
        complete_min_length=int(entry["complete_min_length"]),
    )


def vocabulary_regex(words: Sequence[str]) -> Pattern[str]:
    # Longest phrase first so "exclusive gateway" is counted once, not as
    # "exclusive" plus "gateway".
    ordered = sorted({str(w).lower() for w in words}, key=lambda w: (-len(w), w))
    alternation = "|".join(re.escape(word) for word in ordered)
    return re.compile(rf"\b(?:{alternation})(?:es|s)?\b", re.IGNORECASE)


def _workflow_vocabulary(entry: Dict[str, Any]) -> WorkflowVocabulary:
    detection = entry["detection"]
    return WorkflowVocabulary(
        decision_points=vocabulary_regex(entry["decision_points"]),
        activities=vocabulary_regex(entry["activities"]),
        events=vocabulary_regex(entry["events"]),
        connectors=vocabulary_regex(entry["connectors"]),
        components=int(entry["components"]),
        levels=tuple((int(level["max"]), str(level["level"])) for level in entry["levels"]),
        top_level=str(entry["top_level"]),
        min_decision_points=int(detection["min_decision_points"]),
        min_activities=int(detection["min_activities"]),
        min_connectors=int(detection["min_connectors"]),
        max_path_exponent=int(entry["max_path_exponent"]),
    )


def _flowchart_rules(entry: Dict[str, Any]) -> FlowchartRules:
    return FlowchartRules(
        roles=tuple((str(role["role"]), _compile_entry(role)) for role in entry["roles"]),
        default_role=str(entry["default_role"]),
        ignored_text=_compile_entry(entry["ignored_text"]),
        min_text_length=int(entry["min_text_length"]),
        connector_master=_compile_entry(entry["connector_master"]),
        generic_page_name=_compile_entry(entry["generic_page_name"]),
        complexity=tuple(
            (int(level["more_than"]), str(level["level"])) for level in entry["complexity"]
        ),
        default_complexity=str(entry["default_complexity"]),
    )


def _bpmn_rules(entry: Dict[str, Any]) -> BpmnRules:
    patterns = tuple((str(name), _compile(regex)) for name, regex in entry["patterns"].items())
    known = {name for name, _ in patterns}

    def group(key: str) -> Tuple[str, ...]:
        names = tuple(str(name) for name in entry[key])
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ValueError(f"bpmn.{key} references unknown patterns {unknown}")
        return names

    return BpmnRules(
        patterns=patterns,
        decision_points=group("decision_points"),
        activities=group("activities"),
        events=group("events"),
        connectors=group("connectors"),
    )
