from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from .models import DraftFlow, NodeKind, RenderGraph, RenderNode, TASK_KINDS
from .rules import LOOP_ROLES, DraftRules, LoopLabels, contains_any, normalize_label
from .validate import ensure_unique_id

logger = logging.getLogger(__name__)

SUBPROCESS_ID = "ciclo_pdca"


def find_loop_cluster(graph: RenderGraph, rules: DraftRules) -> Optional[Dict[str, RenderNode]]:
    """Pick one task node per loop role, first match per role in node order."""
    taken: Set[str] = set()
    cluster: Dict[str, RenderNode] = {}
    for role in LOOP_ROLES:
        phrases = rules.loop_roles.get(role, ())
        for node in graph.nodes:
            if node.kind not in TASK_KINDS or node.id in taken:
                continue
            if contains_any(normalize_label(node.label), phrases):
                cluster[role] = node
                taken.add(node.id)
                break
        else:
            return None
    return cluster


def _loop_children(cluster: Dict[str, RenderNode], labels: LoopLabels) -> RenderGraph:
    def task(role: str) -> RenderNode:
        source = cluster[role]
        return RenderNode(id=role, kind=source.kind, label=source.label)

    nodes = [
        RenderNode(id="start", kind=NodeKind.START, label=labels.start),
        task("plan"),
        task("execute"),
        task("check"),
        RenderNode(id="gateway", kind=NodeKind.GATEWAY_EXCLUSIVE, label=labels.gateway),
        RenderNode(id="end", kind=NodeKind.END, label=labels.end),
        task("act"),
    ]
    edges = [
        ("start", "plan", None),
        ("plan", "execute", None),
        ("execute", "check", None),
        ("check", "gateway", None),
        ("gateway", "end", labels.met),
        ("gateway", "act", labels.not_met),
        ("act", "plan", None),
    ]
    flows = [
        DraftFlow(id=f"flow_{idx}", source=src, target=tgt, label=label)
        for idx, (src, tgt, label) in enumerate(edges, start=1)
    ]
    return RenderGraph(process_name=labels.subprocess, nodes=nodes, flows=flows)


def fold_loops(graph: RenderGraph, rules: DraftRules) -> RenderGraph:
    """Collapse a Plan/Do/Check/Act cluster into one looping sub-process.

    Best effort: when no cluster is found, or the cluster has no entry or no
    exit edge, the graph is returned unchanged.
    """
    if any(node.kind == NodeKind.SUBPROCESS for node in graph.nodes):
        return graph

    cluster = find_loop_cluster(graph, rules)
    if cluster is None:
        return graph
    member_ids = {node.id for node in cluster.values()}
    cluster_first = next(node.id for node in graph.nodes if node.id in member_ids)

    inbound = [f for f in graph.flows if f.target in member_ids and f.source not in member_ids]
    outbound = [f for f in graph.flows if f.source in member_ids and f.target not in member_ids]
    if not inbound or not outbound:
        logger.warning(
            "Loop cluster %s has no entry or exit edge; fold skipped",
            sorted(member_ids),
        )
        return graph

    labels = rules.loop_labels
    sub_id = ensure_unique_id(SUBPROCESS_ID, {node.id for node in graph.nodes})
    subprocess = RenderNode(
        id=sub_id,
        kind=NodeKind.SUBPROCESS,
        label=labels.subprocess,
        lane=cluster["plan"].lane,
        children=_loop_children(cluster, labels),
        loop=True,
    )

    nodes: List[RenderNode] = []
    for node in graph.nodes:
        if node.id not in member_ids:
            nodes.append(node)
        elif node.id == cluster_first:
            nodes.append(subprocess)

    node_map = graph.node_map()
    targets: List[str] = []
    for flow in outbound:
        if flow.target not in targets:
            targets.append(flow.target)
    exit_targets = [
        target
        for target in targets
        if contains_any(normalize_label(node_map[target].label), rules.loop_exit)
    ]
    collapse_exit = len(exit_targets) == 1

    # ids kept verbatim, new edge ids must not collide with them
    used_ids = {
        f.id
        for f in graph.flows
        if f.target not in member_ids
        and not (collapse_exit and f.source in member_ids)
    }

    flows: List[DraftFlow] = []
    inbound_count = 0
    exit_emitted = False
    for flow in graph.flows:
        src_in = flow.source in member_ids
        tgt_in = flow.target in member_ids
        if src_in and tgt_in:
            continue
        if tgt_in:
            inbound_count += 1
            new_id = ensure_unique_id(f"{sub_id}_in_{inbound_count}", used_ids)
            flows.append(DraftFlow(id=new_id, source=flow.source, target=sub_id, label=flow.label))
        elif src_in:
            if collapse_exit:
                if not exit_emitted:
                    new_id = ensure_unique_id(f"{sub_id}_out_1", used_ids)
                    flows.append(
                        DraftFlow(id=new_id, source=sub_id, target=exit_targets[0], label=labels.exit)
                    )
                    exit_emitted = True
            else:
                flows.append(DraftFlow(id=flow.id, source=sub_id, target=flow.target, label=flow.label))
        else:
            flows.append(flow)

    logger.info(
        "Folded loop cluster %s into %s (%d in, %d out)",
        [cluster[role].id for role in LOOP_ROLES],
        sub_id,
        len(inbound),
        1 if collapse_exit else len(outbound),
    )
    return RenderGraph(process_name=graph.process_name, nodes=nodes, flows=flows)
