# services/draft_compiler/serialize.py
# RenderGraph + layout -> BPMN 2.0 XML with diagram interchange.
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from .errors import LayoutInvariantError
from .layout import LANE_X, POOL_HEADER_WIDTH, lane_bands, nested_layouts, pool_bounds
from .models import LANE_IDS, LANE_NAMES, Lane, LayoutInfo, NodeKind, RenderGraph
from .route import Point, route

# -------------------------------
# Namespaces a helpers
# -------------------------------
NS = {
    "bpmn": "http://www.omg.org/spec/BPMN/20100524/MODEL",
    "bpmndi": "http://www.omg.org/spec/BPMN/20100524/DI",
    "dc": "http://www.omg.org/spec/DD/20100524/DC",
    "di": "http://www.omg.org/spec/DD/20100524/DI",
}
for _prefix, _uri in NS.items():
    ET.register_namespace(_prefix, _uri)

TARGET_NS = "http://bpmn.io/schema/bpmn"
EXPORTER = "bpmn-draft-ai"
EXPORTER_VERSION = "1.0.0"

DEFINITIONS_ID = "Definitions_1"
COLLABORATION_ID = "Collaboration_1"
PARTICIPANT_ID = "Participant_1"
PROCESS_ID = "Process_1"

LABEL_WIDTH = 40
LABEL_HEIGHT = 14

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def T(ns: str, local: str) -> str:
    return f"{{{NS[ns]}}}{local}"


def _num(value: float) -> str:
    value = round(float(value), 2)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0")


def _bounds(parent: ET.Element, x: float, y: float, width: float, height: float) -> ET.Element:
    return ET.SubElement(
        parent,
        T("dc", "Bounds"),
        {"x": _num(x), "y": _num(y), "width": _num(width), "height": _num(height)},
    )


def _xml_to_string(elem: ET.Element) -> str:
    _indent(elem)
    body = ET.tostring(elem, encoding="unicode")
    # attribute values are double-quoted, so any apostrophe left is user text
    return XML_DECLARATION + body.replace("'", "&apos;")


def _indent(elem: ET.Element, level: int = 0) -> None:
    i = "\n" + level * "  "
    if len(elem):
        if not elem.text or not elem.text.strip():
            elem.text = i + "  "
        for child in elem:
            _indent(child, level + 1)
        if not child.tail or not child.tail.strip():
            child.tail = i
    if level and (not elem.tail or not elem.tail.strip()):
        elem.tail = i


def _check_layouts(graph: RenderGraph, layouts: Dict[str, LayoutInfo]) -> None:
    known = {node.id for node in graph.nodes}
    for node_id in known:
        if node_id not in layouts:
            raise LayoutInvariantError(f"node {node_id} has no layout")
    for flow in graph.flows:
        for end in (flow.source, flow.target):
            if end not in known or end not in layouts:
                raise LayoutInvariantError(f"flow {flow.id} references {end} without layout")


def _flow_ids(graph: RenderGraph, prefix: str) -> Dict[str, str]:
    return {flow.id: f"{prefix}Flow_{idx}" for idx, flow in enumerate(graph.flows, start=1)}


def _emit_flow_elements(
    container: ET.Element,
    graph: RenderGraph,
    layouts: Dict[str, LayoutInfo],
    nested: Dict[str, Dict[str, LayoutInfo]],
    prefix: str = "",
) -> None:
    """Flow nodes then sequence flows of one (sub-)process level."""
    _check_layouts(graph, layouts)
    flow_ids = _flow_ids(graph, prefix)
    incoming: Dict[str, List[str]] = {node.id: [] for node in graph.nodes}
    outgoing: Dict[str, List[str]] = {node.id: [] for node in graph.nodes}
    for flow in graph.flows:
        outgoing[flow.source].append(flow_ids[flow.id])
        incoming[flow.target].append(flow_ids[flow.id])

    for node in graph.nodes:
        info = layouts[node.id]
        el = ET.SubElement(
            container, T("bpmn", info.tag_name), {"id": info.rendered_id, "name": node.label}
        )
        for ref in incoming[node.id]:
            ET.SubElement(el, T("bpmn", "incoming")).text = ref
        for ref in outgoing[node.id]:
            ET.SubElement(el, T("bpmn", "outgoing")).text = ref
        if node.loop:
            ET.SubElement(el, T("bpmn", "standardLoopCharacteristics"))
        if node.children is not None:
            child_layouts = nested.get(node.id)
            if child_layouts is None:
                raise LayoutInvariantError(f"sub-process {node.id} has no inner layout")
            _emit_flow_elements(
                el,
                node.children,
                child_layouts,
                nested_layouts(node.children, child_layouts),
                prefix=f"{info.rendered_id}_",
            )

    for flow in graph.flows:
        attrs = {
            "id": flow_ids[flow.id],
            "sourceRef": layouts[flow.source].rendered_id,
            "targetRef": layouts[flow.target].rendered_id,
        }
        if flow.label:
            attrs["name"] = flow.label
        ET.SubElement(container, T("bpmn", "sequenceFlow"), attrs)


def _label_bounds(points: List[Point]) -> List[float]:
    (x1, y1), (x2, y2) = points[0], points[1]
    mid_x, mid_y = (x1 + x2) / 2, (y1 + y2) / 2
    return [mid_x - LABEL_WIDTH / 2, mid_y - LABEL_HEIGHT - 4, LABEL_WIDTH, LABEL_HEIGHT]


def _emit_shapes(
    plane: ET.Element,
    graph: RenderGraph,
    layouts: Dict[str, LayoutInfo],
    nested: Dict[str, Dict[str, LayoutInfo]],
    edges: List[ET.Element],
    prefix: str = "",
) -> None:
    for node in graph.nodes:
        info = layouts[node.id]
        attrs = {"id": f"{info.rendered_id}_di", "bpmnElement": info.rendered_id}
        if node.kind == NodeKind.GATEWAY_EXCLUSIVE:
            attrs["isMarkerVisible"] = "true"
        if node.children is not None:
            attrs["isExpanded"] = "true"
        shape = ET.SubElement(plane, T("bpmndi", "BPMNShape"), attrs)
        _bounds(shape, info.x, info.y, info.width, info.height)
        if node.children is not None:
            child_layouts = nested[node.id]
            _emit_shapes(
                plane,
                node.children,
                child_layouts,
                nested_layouts(node.children, child_layouts),
                edges,
                prefix=f"{info.rendered_id}_",
            )

    flow_ids = _flow_ids(graph, prefix)
    for flow in graph.flows:
        flow_id = flow_ids[flow.id]
        edge = ET.Element(T("bpmndi", "BPMNEdge"), {"id": f"{flow_id}_di", "bpmnElement": flow_id})
        points = route(layouts[flow.source], layouts[flow.target])
        for x, y in points:
            ET.SubElement(edge, T("di", "waypoint"), {"x": _num(x), "y": _num(y)})
        if flow.label:
            label = ET.SubElement(edge, T("bpmndi", "BPMNLabel"))
            _bounds(label, *_label_bounds(points))
        edges.append(edge)


def serialize(
    graph: RenderGraph,
    layouts: Dict[str, LayoutInfo],
    nested: Optional[Dict[str, Dict[str, LayoutInfo]]] = None,
) -> str:
    """Render one complete BPMN document.

    Raises LayoutInvariantError when a node or flow endpoint has no layout;
    that never happens for output of layout_graph on the same graph.
    """
    _check_layouts(graph, layouts)
    if nested is None:
        nested = nested_layouts(graph, layouts)

    defs = ET.Element(
        T("bpmn", "definitions"),
        {
            "id": DEFINITIONS_ID,
            "targetNamespace": TARGET_NS,
            "exporter": EXPORTER,
            "exporterVersion": EXPORTER_VERSION,
        },
    )
    collab = ET.SubElement(defs, T("bpmn", "collaboration"), {"id": COLLABORATION_ID})
    ET.SubElement(
        collab,
        T("bpmn", "participant"),
        {"id": PARTICIPANT_ID, "name": graph.process_name, "processRef": PROCESS_ID},
    )

    process = ET.SubElement(
        defs,
        T("bpmn", "process"),
        {"id": PROCESS_ID, "name": graph.process_name, "isExecutable": "false"},
    )
    lane_set = ET.SubElement(process, T("bpmn", "laneSet"), {"id": "LaneSet_1"})
    lane_elems = {
        lane: ET.SubElement(
            lane_set, T("bpmn", "lane"), {"id": LANE_IDS[lane], "name": LANE_NAMES[lane]}
        )
        for lane in Lane
    }
    for node in graph.nodes:
        info = layouts[node.id]
        lane = info.lane or Lane.OPERATIONAL
        ET.SubElement(lane_elems[lane], T("bpmn", "flowNodeRef")).text = info.rendered_id

    _emit_flow_elements(process, graph, layouts, nested)

    # -------------------------------
    # Diagram interchange
    # -------------------------------
    diagram = ET.SubElement(defs, T("bpmndi", "BPMNDiagram"), {"id": "BPMNDiagram_1"})
    plane = ET.SubElement(
        diagram, T("bpmndi", "BPMNPlane"), {"id": "BPMNPlane_1", "bpmnElement": COLLABORATION_ID}
    )

    px, py, pw, ph = pool_bounds(layouts, len(graph.nodes))
    pool = ET.SubElement(
        plane,
        T("bpmndi", "BPMNShape"),
        {"id": f"{PARTICIPANT_ID}_di", "bpmnElement": PARTICIPANT_ID, "isHorizontal": "true"},
    )
    _bounds(pool, px, py, pw, ph)

    for lane, (top, height) in lane_bands(len(graph.nodes)).items():
        shape = ET.SubElement(
            plane,
            T("bpmndi", "BPMNShape"),
            {"id": f"{LANE_IDS[lane]}_di", "bpmnElement": LANE_IDS[lane], "isHorizontal": "true"},
        )
        _bounds(shape, LANE_X, top, pw - POOL_HEADER_WIDTH, height)

    edges: List[ET.Element] = []
    _emit_shapes(plane, graph, layouts, nested, edges)
    plane.extend(edges)

    return _xml_to_string(defs)
