# tests/test_draft_serialize.py
from xml.etree import ElementTree as ET

import pytest

from services.draft_compiler import (
    CompilerConfig,
    LayoutInvariantError,
    compile_draft,
)
from services.draft_compiler.models import LANE_IDS
from services.draft_compiler.serialize import serialize
from services.rules_loader import get_rules

NS = {
    "bpmn": "http://www.omg.org/spec/BPMN/20100524/MODEL",
    "bpmndi": "http://www.omg.org/spec/BPMN/20100524/DI",
    "dc": "http://www.omg.org/spec/DD/20100524/DC",
    "di": "http://www.omg.org/spec/DD/20100524/DI",
}


def _local(tag: str) -> str:
    return tag.split("}")[-1]


def _count(root, local_name: str) -> int:
    return sum(1 for el in root.iter() if _local(el.tag) == local_name)


def _compile(candidate):
    return compile_draft(candidate, CompilerConfig(rules=get_rules("pt-BR")))


def _linear():
    return {
        "processName": "Pedido de compra",
        "nodes": [
            {"id": "start", "type": "start", "label": "Pedido recebido"},
            {"id": "registrar", "type": "task", "label": "Registrar pedido"},
            {"id": "end", "type": "end", "label": "Pedido registrado"},
        ],
        "flows": [
            {"id": "f1", "source": "start", "target": "registrar"},
            {"id": "f2", "source": "registrar", "target": "end"},
        ],
    }


def test_linear_document_structure():
    compiled = _compile(_linear())
    assert compiled.bpmn_xml.startswith("<?xml")
    root = ET.fromstring(compiled.bpmn_xml)

    assert root.attrib["id"] == "Definitions_1"
    assert _count(root, "participant") == 1
    assert _count(root, "lane") == 4
    assert _count(root, "startEvent") == 1
    assert _count(root, "userTask") == 1
    assert _count(root, "endEvent") == 1
    assert _count(root, "sequenceFlow") == 2
    # pool + 4 lanes + 3 nodes
    assert _count(root, "BPMNShape") == 8
    assert _count(root, "BPMNEdge") == 2

    process = root.find("bpmn:process", NS)
    assert process.attrib["isExecutable"] == "false"
    task = process.find("bpmn:userTask", NS)
    assert task.attrib["id"] == "UserTask_2"
    assert [el.text for el in task.findall("bpmn:incoming", NS)] == ["Flow_1"]
    assert [el.text for el in task.findall("bpmn:outgoing", NS)] == ["Flow_2"]

    lane = process.find("bpmn:laneSet/bpmn:lane[@id='Lane_Operacional']", NS)
    refs = [el.text for el in lane.findall("bpmn:flowNodeRef", NS)]
    assert refs == ["StartEvent_1", "UserTask_2", "EndEvent_3"]

    plane = root.find("bpmndi:BPMNDiagram/bpmndi:BPMNPlane", NS)
    assert plane.attrib["bpmnElement"] == "Collaboration_1"


def test_shapes_and_edges_match_flow_elements():
    root = ET.fromstring(_compile(_linear()).bpmn_xml)
    element_ids = {
        el.attrib["id"]
        for el in root.iter()
        if _local(el.tag) in {"startEvent", "userTask", "endEvent", "sequenceFlow", "lane", "participant"}
    }
    di_refs = {
        el.attrib["bpmnElement"]
        for el in root.iter()
        if _local(el.tag) in {"BPMNShape", "BPMNEdge"}
    }
    assert di_refs == element_ids
    for edge in root.iter(f"{{{NS['bpmndi']}}}BPMNEdge"):
        assert len(edge.findall("di:waypoint", NS)) >= 2


def test_pool_bounds_all_shapes(pdca_candidate):
    root = ET.fromstring(_compile(pdca_candidate).bpmn_xml)
    plane = root.find("bpmndi:BPMNDiagram/bpmndi:BPMNPlane", NS)
    shapes = plane.findall("bpmndi:BPMNShape", NS)
    pool = next(s for s in shapes if s.attrib["bpmnElement"] == "Participant_1")
    pb = {k: float(v) for k, v in pool.find("dc:Bounds", NS).attrib.items()}
    for shape in shapes:
        b = {k: float(v) for k, v in shape.find("dc:Bounds", NS).attrib.items()}
        assert pb["x"] <= b["x"] and b["x"] + b["width"] <= pb["x"] + pb["width"]
        assert pb["y"] <= b["y"] and b["y"] + b["height"] <= pb["y"] + pb["height"]


def test_folded_loop_is_nested_subprocess(pdca_candidate):
    root = ET.fromstring(_compile(pdca_candidate).bpmn_xml)
    process = root.find("bpmn:process", NS)
    sub = process.find("bpmn:subProcess", NS)

    assert sub.attrib["id"] == "SubProcess_2"
    assert sub.attrib["name"] == "Ciclo PDCA"
    assert sub.find("bpmn:standardLoopCharacteristics", NS) is not None
    children = [el for el in sub if _local(el.tag) not in {"incoming", "outgoing", "standardLoopCharacteristics", "sequenceFlow"}]
    assert len(children) == 7
    assert len(sub.findall("bpmn:sequenceFlow", NS)) == 7
    assert all(el.attrib["id"].startswith("SubProcess_2_") for el in children)
    assert sub.find("bpmn:exclusiveGateway", NS).attrib["name"] == "Meta atingida?"

    shape = root.find(".//bpmndi:BPMNShape[@bpmnElement='SubProcess_2']", NS)
    assert shape.attrib["isExpanded"] == "true"
    gateway_shape = root.find(".//bpmndi:BPMNShape[@bpmnElement='SubProcess_2_Gateway_5']", NS)
    assert gateway_shape.attrib["isMarkerVisible"] == "true"
    # "Sim"/"Não" inside the loop plus the collapsed exit edge
    assert _count(root, "BPMNLabel") == 3


def test_user_text_is_escaped():
    data = _linear()
    data["processName"] = 'Compra <urgente> & "rápida"'
    data["nodes"][1]["label"] = "Conferir <nota> & 'recibo'"
    xml = _compile(data).bpmn_xml
    assert "&lt;urgente&gt; &amp; &quot;rápida&quot;" in xml
    assert "Conferir &lt;nota&gt; &amp; &apos;recibo&apos;" in xml
    root = ET.fromstring(xml)
    assert root.find("bpmn:process", NS).attrib["name"] == 'Compra <urgente> & "rápida"'
    assert root.find("bpmn:process/bpmn:userTask", NS).attrib["name"] == "Conferir <nota> & 'recibo'"


def test_missing_layout_fails_closed():
    compiled = _compile(_linear())
    layouts = dict(compiled.layouts)
    del layouts["registrar"]
    with pytest.raises(LayoutInvariantError):
        serialize(compiled.graph, layouts)


def _multi_lane():
    labels = [
        "Separar mercadoria",
        "Aprovar orçamento",
        "Integrar pedido com ERP",
        "Escalar para diretoria",
        "Conferir entrega",
    ]
    nodes = [{"id": "start", "type": "start", "label": "Pedido recebido"}]
    nodes += [{"id": f"t{i}", "type": "task", "label": label} for i, label in enumerate(labels, start=1)]
    nodes.append({"id": "end", "type": "end", "label": "Pedido entregue"})
    flows = [
        {"id": f"f{i}", "source": a["id"], "target": b["id"]}
        for i, (a, b) in enumerate(zip(nodes, nodes[1:]), start=1)
    ]
    return {"processName": "Entrega de pedido", "nodes": nodes, "flows": flows}


@pytest.mark.parametrize("candidate", ["multi_lane", "pdca"])
def test_every_node_in_exactly_one_lane(candidate, pdca_candidate):
    data = _multi_lane() if candidate == "multi_lane" else pdca_candidate
    root = ET.fromstring(_compile(data).bpmn_xml)
    process = root.find("bpmn:process", NS)

    node_ids = [
        el.attrib["id"]
        for el in process
        if _local(el.tag) not in {"laneSet", "sequenceFlow"}
    ]
    refs = [el.text for el in process.iterfind("bpmn:laneSet/bpmn:lane/bpmn:flowNodeRef", NS)]
    assert len(refs) == len(set(refs))
    assert sorted(refs) == sorted(node_ids)


@pytest.mark.parametrize("candidate", ["multi_lane", "pdca"])
def test_lane_bounds_do_not_overlap(candidate, pdca_candidate):
    data = _multi_lane() if candidate == "multi_lane" else pdca_candidate
    root = ET.fromstring(_compile(data).bpmn_xml)

    lane_ids = set(LANE_IDS.values())
    bands = sorted(
        (float(b.attrib["y"]), float(b.attrib["height"]))
        for shape in root.iter(f"{{{NS['bpmndi']}}}BPMNShape")
        if shape.attrib["bpmnElement"] in lane_ids
        for b in shape.findall("dc:Bounds", NS)
    )
    assert len(bands) == 4
    for (top, height), (next_top, _) in zip(bands, bands[1:]):
        assert top + height <= next_top


def test_multi_lane_draft_uses_several_lanes():
    root = ET.fromstring(_compile(_multi_lane()).bpmn_xml)
    used = [
        lane.attrib["id"]
        for lane in root.iterfind("bpmn:process/bpmn:laneSet/bpmn:lane", NS)
        if lane.find("bpmn:flowNodeRef", NS) is not None
    ]
    assert len(used) == 4
