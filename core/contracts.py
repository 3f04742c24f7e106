import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RawDocument:
    content: bytes
    mime_type: str
    file_name: str

    @property
    def extension(self) -> str:
        return os.path.splitext(self.file_name)[1].lower()


@dataclass(frozen=True)
class FlowchartNode:
    shape_id: str
    text: str
    role: str
    master_type: str
    xml_position: int


@dataclass(frozen=True)
class FlowchartEdge:
    from_node: str
    to_node: str
    flow_type: str
    description: str


@dataclass(frozen=True)
class FlowchartPage:
    page_name: str
    nodes: List[FlowchartNode]
    edges: List[FlowchartEdge]
    shape_count: int
    connector_count: int
    decision_count: int
    process_count: int
    start_count: int
    end_count: int
    complexity: str
    warnings: List[str]

    @property
    def has_decision_points(self) -> bool:
        return self.decision_count > 0

    @property
    def has_process_flows(self) -> bool:
        return self.process_count > 0 and bool(self.edges)


@dataclass(frozen=True)
class FlowchartAnalysis:
    pages: List[FlowchartPage]
    total_pages: int
    total_shapes: int
    total_connectors: int
    has_decision_points: bool
    has_process_flows: bool
    complexity: str
    warnings: List[str]


@dataclass(frozen=True)
class ExtractedContent:
    raw_text: str
    format_family: str
    file_name: str
    warnings: List[str] = field(default_factory=list)
    structured: bool = True
    flowchart: Optional[FlowchartAnalysis] = None


@dataclass(frozen=True)
class NormalizedLine:
    text: str
    line_number: int
    section: str


@dataclass(frozen=True)
class DocumentSection:
    title: str
    content: str


@dataclass(frozen=True)
class BusinessElement:
    type: str
    text: str
    line_number: int
    section: str
    priority: str
    confidence: str
    pattern: str
    complexity: str = "simple"
    is_testable: bool = False
    has_acceptance_criteria: bool = False
    quality_score: int = 0
    complexity_description: str = ""


@dataclass(frozen=True)
class ElementBreakdown:
    by_type: Dict[str, int]
    by_priority: Dict[str, int]
    by_confidence: Dict[str, int]
    by_complexity: Dict[str, int]
    by_testability: Dict[str, int]


@dataclass(frozen=True)
class QualityMetrics:
    total_elements: int
    high_confidence_elements: int
    testable_elements: int
    confidence_ratio: float
    testability_ratio: float
    density_per_k: float
    quality_score: int


@dataclass(frozen=True)
class WorkflowComplexity:
    decision_points: int
    activities: int
    events: int
    connectors: int
    edges: int
    nodes: int
    components: int
    cyclomatic_complexity: int
    complexity_level: str
    workflow_detected: bool
    total_elements: int


@dataclass(frozen=True)
class ExtractionOptions:
    min_line_length: int = 20
    max_line_length: int = 500
    include_low_priority: bool = True


@dataclass(frozen=True)
class ExtractionReport:
    elements: List[BusinessElement]
    count: int
    breakdown: ElementBreakdown
    quality_metrics: QualityMetrics
    workflow: WorkflowComplexity
    sections: List[str]
    total_lines: int
    processed_lines: int
    manual_review_required: bool
    message: str
    file_name: str = ""
    format_family: str = ""
    warnings: List[str] = field(default_factory=list)
    flowchart: Optional[FlowchartAnalysis] = None

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)
