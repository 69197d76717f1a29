from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class NodeKind(str, Enum):
    START = "start"
    END = "end"
    GATEWAY_EXCLUSIVE = "gatewayExclusive"
    TASK = "task"
    USER_TASK = "userTask"
    SERVICE_TASK = "serviceTask"
    BUSINESS_RULE_TASK = "businessRuleTask"
    SUBPROCESS = "subprocess"


class Lane(str, Enum):
    # stacking order of the bands, top to bottom
    OPERATIONAL = "operational"
    AUTOMATION = "automation"
    MANAGEMENT = "management"
    EXECUTIVE = "executive"


# input spelling used by the text generator -> kind
DRAFT_TYPES: Dict[str, NodeKind] = {
    "start": NodeKind.START,
    "task": NodeKind.TASK,
    "gateway_exclusive": NodeKind.GATEWAY_EXCLUSIVE,
    "end": NodeKind.END,
}
DRAFT_TYPE_NAMES: Dict[NodeKind, str] = {kind: name for name, kind in DRAFT_TYPES.items()}

CONTROL_KINDS = frozenset(
    {NodeKind.START, NodeKind.END, NodeKind.GATEWAY_EXCLUSIVE}
)
TASK_KINDS = frozenset(
    {
        NodeKind.TASK,
        NodeKind.USER_TASK,
        NodeKind.SERVICE_TASK,
        NodeKind.BUSINESS_RULE_TASK,
    }
)

# kind -> (BPMN tag, rendered id prefix, (width, height))
KIND_TABLE: Dict[NodeKind, Tuple[str, str, Tuple[int, int]]] = {
    NodeKind.START: ("startEvent", "StartEvent", (36, 36)),
    NodeKind.END: ("endEvent", "EndEvent", (36, 36)),
    NodeKind.GATEWAY_EXCLUSIVE: ("exclusiveGateway", "Gateway", (50, 50)),
    NodeKind.TASK: ("task", "Task", (120, 80)),
    NodeKind.USER_TASK: ("userTask", "UserTask", (130, 88)),
    NodeKind.SERVICE_TASK: ("serviceTask", "ServiceTask", (130, 88)),
    NodeKind.BUSINESS_RULE_TASK: ("businessRuleTask", "BusinessRuleTask", (130, 88)),
    NodeKind.SUBPROCESS: ("subProcess", "SubProcess", (190, 110)),
}

LANE_NAMES: Dict[Lane, str] = {
    Lane.OPERATIONAL: "Operacional",
    Lane.AUTOMATION: "Automação",
    Lane.MANAGEMENT: "Gestão",
    Lane.EXECUTIVE: "Diretoria",
}

LANE_IDS: Dict[Lane, str] = {
    Lane.OPERATIONAL: "Lane_Operacional",
    Lane.AUTOMATION: "Lane_Automacao",
    Lane.MANAGEMENT: "Lane_Gestao",
    Lane.EXECUTIVE: "Lane_Diretoria",
}

NODE_LIMITS = (4, 40)
FLOW_LIMITS = (3, 80)


@dataclass(frozen=True)
class DraftLimits:
    max_nodes: int = 24
    max_flows: int = 40

    def __post_init__(self) -> None:
        lo, hi = NODE_LIMITS
        if not lo <= self.max_nodes <= hi:
            raise ValueError(f"max_nodes must be within {lo}..{hi}")
        lo, hi = FLOW_LIMITS
        if not lo <= self.max_flows <= hi:
            raise ValueError(f"max_flows must be within {lo}..{hi}")


@dataclass
class DraftNode:
    id: str
    type: NodeKind
    label: str


@dataclass(frozen=True)
class DraftFlow:
    id: str
    source: str
    target: str
    label: Optional[str] = None


@dataclass
class DraftGraph:
    process_name: str
    nodes: List[DraftNode]
    flows: List[DraftFlow]

    def to_dict(self) -> Dict[str, object]:
        return {
            "processName": self.process_name,
            "nodes": [
                {"id": n.id, "type": DRAFT_TYPE_NAMES[n.type], "label": n.label}
                for n in self.nodes
            ],
            "flows": [_flow_dict(f) for f in self.flows],
        }


@dataclass
class RenderNode:
    id: str
    kind: NodeKind
    label: str
    lane: Optional[Lane] = None
    children: Optional["RenderGraph"] = None
    loop: bool = False


@dataclass
class RenderGraph:
    process_name: str
    nodes: List[RenderNode]
    flows: List[DraftFlow] = field(default_factory=list)

    def node_map(self) -> Dict[str, RenderNode]:
        return {node.id: node for node in self.nodes}


@dataclass(frozen=True)
class LayoutInfo:
    rendered_id: str
    tag_name: str
    x: float
    y: float
    width: float
    height: float
    lane: Optional[Lane] = None

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


def _flow_dict(flow: DraftFlow) -> Dict[str, str]:
    data = {"id": flow.id, "source": flow.source, "target": flow.target}
    if flow.label:
        data["label"] = flow.label
    return data
