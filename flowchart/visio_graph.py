"""Flowchart graph analysis for Visio (.vsdx) pages.

Shapes become typed nodes (process, decision, start, end) and connector
glue records become edges. Node order always follows first appearance in
the page XML so repeated runs describe the graph identically.
"""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from core.contracts import FlowchartAnalysis, FlowchartEdge, FlowchartNode, FlowchartPage
from core.patterns import FlowchartRules
from ingestion.ooxml import attribute, element_text, iter_local, local_name

logger = logging.getLogger(__name__)

_INSTANCE_SUFFIX = re.compile(r"\.\d+$")

ROLE_PREFIXES = {
    "process": "Process Step",
    "decision": "Decision Point",
    "start": "Start Point",
    "end": "End Point",
}

FLOW_TYPES = {
    ("decision", "process"): "Decision Flow",
    ("process", "decision"): "Process to Decision",
    ("start", "process"): "Start Flow",
    ("process", "end"): "End Flow",
}


@dataclass(frozen=True)
class _ShapeInfo:
    shape_id: str
    text: str
    master_name: str
    shape_name: str
    is_one_dimensional: bool
    position: int


def parse_masters(masters_xml: Union[bytes, str]) -> Dict[str, str]:
    root = ET.fromstring(masters_xml)
    masters: Dict[str, str] = {}
    for master in iter_local(root, "Master"):
        master_id = attribute(master, "ID")
        name = attribute(master, "NameU") or attribute(master, "Name")
        if master_id:
            masters[master_id] = _base_name(name)
    return masters


def analyze_page(
    page_xml: Union[bytes, str],
    rules: FlowchartRules,
    masters: Optional[Dict[str, str]] = None,
    page_name: str = "",
) -> FlowchartPage:
    root = ET.fromstring(page_xml)
    shapes = _collect_shapes(root, masters or {})
    connects = _collect_connects(root)

    connector_ids = _connector_ids(shapes, connects, rules)
    nodes = _build_nodes(shapes, connector_ids, rules)
    node_index = {node.shape_id: node for node in nodes}
    labels = {shape.shape_id: shape.text for shape in shapes if shape.shape_id in connector_ids}
    edges = _build_edges(connects, connector_ids, node_index, labels)

    counts = {role: 0 for role in ROLE_PREFIXES}
    for node in nodes:
        counts[node.role] = counts.get(node.role, 0) + 1

    name = page_name or "Page"
    warnings: List[str] = []
    if nodes and counts["start"] == 0:
        warnings.append(f"{name}: no start point found")
    if nodes and counts["end"] == 0:
        warnings.append(f"{name}: no end point found")
    if counts["decision"] > counts["process"]:
        warnings.append(
            f"{name}: more decision points ({counts['decision']}) than process steps "
            f"({counts['process']})"
        )

    return FlowchartPage(
        page_name=name,
        nodes=nodes,
        edges=edges,
        shape_count=len(nodes),
        connector_count=len(connector_ids),
        decision_count=counts["decision"],
        process_count=counts["process"],
        start_count=counts["start"],
        end_count=counts["end"],
        complexity=flowchart_complexity(counts["decision"], rules),
        warnings=warnings,
    )


def summarize_pages(pages: List[FlowchartPage], rules: FlowchartRules) -> FlowchartAnalysis:
    decisions = sum(page.decision_count for page in pages)
    warnings = [warning for page in pages for warning in page.warnings]
    return FlowchartAnalysis(
        pages=list(pages),
        total_pages=len(pages),
        total_shapes=sum(page.shape_count for page in pages),
        total_connectors=sum(page.connector_count for page in pages),
        has_decision_points=decisions > 0,
        has_process_flows=any(page.has_process_flows for page in pages),
        complexity=flowchart_complexity(decisions, rules),
        warnings=warnings,
    )


def flowchart_complexity(decision_count: int, rules: FlowchartRules) -> str:
    for threshold, level in rules.complexity:
        if decision_count > threshold:
            return level
    return rules.default_complexity


def describe_page(page: FlowchartPage) -> List[str]:
    lines = [f"### Page: {page.page_name}"]
    if page.nodes:
        lines.append("#### Business Processes and Systems")
        lines.extend(f"{ROLE_PREFIXES[node.role]}: {node.text}" for node in page.nodes)
    if page.edges:
        lines.append("#### Business Flows and Relationships")
        lines.extend(f"- {edge.description}" for edge in page.edges)
    return lines


def classify_role(text: str, master_name: str, shape_name: str, rules: FlowchartRules) -> str:
    for candidate in (text, master_name, shape_name):
        if not candidate:
            continue
        for role, regex in rules.roles:
            if regex.search(candidate):
                return role
    return rules.default_role


def classify_flow(from_role: Optional[str], to_role: Optional[str]) -> str:
    return FLOW_TYPES.get((from_role, to_role), "Standard Flow")


def _collect_shapes(root: ET.Element, masters: Dict[str, str]) -> List[_ShapeInfo]:
    shapes: List[_ShapeInfo] = []
    for position, shape in enumerate(iter_local(root, "Shape")):
        shape_id = attribute(shape, "ID")
        if not shape_id:
            continue
        text_element = next(
            (child for child in shape if local_name(child.tag) == "Text"), None
        )
        cells = {
            attribute(cell, "N")
            for cell in shape
            if local_name(cell.tag) == "Cell"
        }
        shapes.append(
            _ShapeInfo(
                shape_id=shape_id,
                text=element_text(text_element) if text_element is not None else "",
                master_name=masters.get(attribute(shape, "Master"), ""),
                shape_name=_base_name(attribute(shape, "NameU") or attribute(shape, "Name")),
                is_one_dimensional="BeginX" in cells and "EndX" in cells,
                position=position,
            )
        )
    return shapes


def _collect_connects(root: ET.Element) -> List[Tuple[str, str, str]]:
    return [
        (
            attribute(connect, "FromSheet"),
            attribute(connect, "FromCell"),
            attribute(connect, "ToSheet"),
        )
        for connect in iter_local(root, "Connect")
    ]


def _connector_ids(
    shapes: List[_ShapeInfo],
    connects: List[Tuple[str, str, str]],
    rules: FlowchartRules,
) -> List[str]:
    ids: List[str] = []
    for shape in shapes:
        if (
            shape.is_one_dimensional
            or rules.connector_master.search(shape.master_name)
            or rules.connector_master.search(shape.shape_name)
        ):
            ids.append(shape.shape_id)
    for from_sheet, from_cell, _ in connects:
        if from_cell in {"BeginX", "EndX"} and from_sheet and from_sheet not in ids:
            ids.append(from_sheet)
    return ids


def _build_nodes(
    shapes: List[_ShapeInfo],
    connector_ids: List[str],
    rules: FlowchartRules,
) -> List[FlowchartNode]:
    connectors = set(connector_ids)
    nodes: List[FlowchartNode] = []
    seen = set()
    for shape in sorted(shapes, key=lambda s: s.position):
        if shape.shape_id in connectors or shape.shape_id in seen:
            continue
        text = shape.text or shape.master_name
        if len(text) < rules.min_text_length or rules.ignored_text.search(text):
            continue
        seen.add(shape.shape_id)
        nodes.append(
            FlowchartNode(
                shape_id=shape.shape_id,
                text=text,
                role=classify_role(shape.text, shape.master_name, shape.shape_name, rules),
                master_type=shape.master_name or shape.shape_name,
                xml_position=shape.position,
            )
        )
    return nodes


def _build_edges(
    connects: List[Tuple[str, str, str]],
    connector_ids: List[str],
    node_index: Dict[str, FlowchartNode],
    labels: Dict[str, str],
) -> List[FlowchartEdge]:
    connectors = set(connector_ids)
    endpoints: Dict[str, Dict[str, str]] = {}
    order: List[Tuple[str, str, str]] = []
    for from_sheet, from_cell, to_sheet in connects:
        if not from_sheet or not to_sheet:
            continue
        if from_cell in {"BeginX", "EndX"} and from_sheet in connectors:
            if from_sheet not in endpoints:
                endpoints[from_sheet] = {}
                order.append(("connector", from_sheet, ""))
            endpoints[from_sheet].setdefault(from_cell, to_sheet)
        else:
            order.append(("direct", from_sheet, to_sheet))

    edges: List[FlowchartEdge] = []
    for kind, first, second in order:
        if kind == "connector":
            ends = endpoints[first]
            if "BeginX" not in ends or "EndX" not in ends:
                logger.debug("Connector %s is not glued at both ends; skipped", first)
                continue
            source, target, label = ends["BeginX"], ends["EndX"], labels.get(first, "")
        else:
            source, target, label = first, second, ""
        edges.append(_make_edge(source, target, node_index, label))
    return edges


def _make_edge(
    source_id: str,
    target_id: str,
    node_index: Dict[str, FlowchartNode],
    label: str,
) -> FlowchartEdge:
    source = node_index.get(source_id)
    target = node_index.get(target_id)
    source_text = source.text if source else f"shape {source_id}"
    target_text = target.text if target else f"shape {target_id}"
    source_role = source.role if source else None
    target_role = target.role if target else None
    flow_type = classify_flow(source_role, target_role)
    description = _describe_flow(flow_type, source_text, target_text)
    if label:
        description = f"{description} ({label})"
    return FlowchartEdge(
        from_node=source_text,
        to_node=target_text,
        flow_type=flow_type,
        description=description,
    )


def _describe_flow(flow_type: str, source_text: str, target_text: str) -> str:
    if flow_type == "Decision Flow":
        return f'Decision "{source_text}" leads to process "{target_text}"'
    if flow_type == "Process to Decision":
        return f'Process "{source_text}" leads to decision "{target_text}"'
    if flow_type == "Start Flow":
        return f'Flow starts at "{source_text}" and continues to process "{target_text}"'
    if flow_type == "End Flow":
        return f'Process "{source_text}" leads to end point "{target_text}"'
    return f'Flow from "{source_text}" to "{target_text}"'


def _base_name(name: str) -> str:
    return _INSTANCE_SUFFIX.sub("", name or "").strip()
