# services/draft_compiler/classify.py
from __future__ import annotations

from typing import Tuple

from .models import CONTROL_KINDS, DraftGraph, DraftNode, Lane, NodeKind, RenderGraph, RenderNode
from .rules import DraftRules, contains_any, normalize_label


def classify_label(label: str, rules: DraftRules) -> Tuple[NodeKind, Lane, str]:
    """Return (kind, lane, rule name) for a generic task label.

    Rules are checked in file order, first match wins; never returns None.
    """
    text = normalize_label(label)
    for rule in rules.classifier:
        if contains_any(text, rule.phrases):
            return rule.kind, rule.lane, rule.name
    return rules.default_kind, rules.default_lane, "default"


def _render_node(node: DraftNode, rules: DraftRules) -> RenderNode:
    if node.type in CONTROL_KINDS:
        # start/end/gateway keep their kind, lane is resolved at layout time
        return RenderNode(id=node.id, kind=node.type, label=node.label)
    kind, lane, _ = classify_label(node.label, rules)
    return RenderNode(id=node.id, kind=kind, label=node.label, lane=lane)


def classify(draft: DraftGraph, rules: DraftRules) -> RenderGraph:
    return RenderGraph(
        process_name=draft.process_name,
        nodes=[_render_node(node, rules) for node in draft.nodes],
        flows=list(draft.flows),
    )