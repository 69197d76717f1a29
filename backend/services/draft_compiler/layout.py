# services/draft_compiler/layout.py
# Serpentine grid layout for freshly drafted graphs.
from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import replace
from typing import Dict, List, Set, Tuple

from .models import KIND_TABLE, Lane, LayoutInfo, NodeKind, RenderGraph

POOL_X = 100
POOL_Y = 80
POOL_HEADER_WIDTH = 30  # px, same as bpmn-js participant header
LANE_X = POOL_X + POOL_HEADER_WIDTH
ORIGIN_X = LANE_X + 60  # leave room for the lane header
COL_WIDTH = 220
ROW_HEIGHT = 140
POOL_PAD_RIGHT = 40
MIN_POOL_WIDTH = 600

Bounds = Tuple[float, float, float, float]


def grid_shape(count: int) -> Tuple[int, int]:
    """Return (rows, columns) for ``count`` nodes."""
    if count <= 5:
        rows = 1
    elif count <= 10:
        rows = 2
    else:
        rows = 3
    return rows, max(1, math.ceil(count / rows))


def traversal_order(graph: RenderGraph) -> List[str]:
    """Depth-first order from the start node, then unreached nodes by id."""
    known = {node.id for node in graph.nodes}
    outgoing = defaultdict(list)
    for flow in graph.flows:
        outgoing[flow.source].append(flow)
    for flows in outgoing.values():
        flows.sort(key=lambda f: (f.id, f.target))

    stack = [node.id for node in graph.nodes if node.kind == NodeKind.START][:1]
    order: List[str] = []
    seen: Set[str] = set()
    while stack:
        node_id = stack.pop()
        if node_id in seen:
            continue
        seen.add(node_id)
        order.append(node_id)
        for flow in reversed(outgoing.get(node_id, [])):
            if flow.target in known and flow.target not in seen:
                stack.append(flow.target)

    order.extend(sorted(node_id for node_id in known if node_id not in seen))
    return order


def resolve_lanes(graph: RenderGraph, default: Lane = Lane.OPERATIONAL) -> Dict[str, Lane]:
    """Lane per node; control nodes borrow the dominant lane of their neighbours."""
    own = {node.id: node.lane for node in graph.nodes if node.lane is not None}
    neighbours: Dict[str, List[str]] = defaultdict(list)
    for flow in graph.flows:
        neighbours[flow.source].append(flow.target)
        neighbours[flow.target].append(flow.source)

    resolved: Dict[str, Lane] = {}
    for node in graph.nodes:
        if node.lane is not None:
            resolved[node.id] = node.lane
            continue
        counts = Counter(own[n] for n in neighbours[node.id] if n in own)
        resolved[node.id] = counts.most_common(1)[0][0] if counts else default
    return resolved


def lane_bands(node_count: int) -> Dict[Lane, Tuple[float, float]]:
    """(top, height) of every lane band, stacked in Lane order."""
    rows, _ = grid_shape(node_count)
    height = float(rows * ROW_HEIGHT)
    return {lane: (POOL_Y + idx * height, height) for idx, lane in enumerate(Lane)}


def rendered_ids(graph: RenderGraph, prefix: str = "") -> Dict[str, str]:
    return {
        node.id: f"{prefix}{KIND_TABLE[node.kind][1]}_{idx}"
        for idx, node in enumerate(graph.nodes, start=1)
    }


def layout_graph(
    graph: RenderGraph, use_lanes: bool = True, id_prefix: str = ""
) -> Dict[str, LayoutInfo]:
    """Place every node of ``graph``; total over disconnected graphs."""
    order = traversal_order(graph)
    rows, cols = grid_shape(len(order))
    node_map = graph.node_map()
    ids = rendered_ids(graph, id_prefix)
    lanes = resolve_lanes(graph) if use_lanes else {}
    bands = lane_bands(len(graph.nodes)) if use_lanes else {}

    layouts: Dict[str, LayoutInfo] = {}
    for index, node_id in enumerate(order):
        node = node_map[node_id]
        row, col = divmod(index, cols)
        if row % 2 == 1:
            col = cols - 1 - col
        tag, _, (width, height) = KIND_TABLE[node.kind]
        lane = lanes.get(node_id)
        band_top = bands[lane][0] if lane is not None else float(POOL_Y)
        x = ORIGIN_X + col * COL_WIDTH + (COL_WIDTH - width) / 2
        y = band_top + row * ROW_HEIGHT + (ROW_HEIGHT - height) / 2
        layouts[node_id] = LayoutInfo(
            rendered_id=ids[node_id],
            tag_name=tag,
            x=float(x),
            y=float(y),
            width=float(width),
            height=float(height),
            lane=lane,
        )
    return layouts


def nested_layouts(
    graph: RenderGraph, layouts: Dict[str, LayoutInfo]
) -> Dict[str, Dict[str, LayoutInfo]]:
    """Lay out each sub-process body inside its parent's box."""
    nested: Dict[str, Dict[str, LayoutInfo]] = {}
    for node in graph.nodes:
        parent = layouts.get(node.id)
        if node.children is None or parent is None:
            continue
        inner = layout_graph(node.children, use_lanes=False, id_prefix=f"{parent.rendered_id}_")
        nested[node.id] = fit_into(inner, (parent.x, parent.y, parent.width, parent.height))
    return nested


def pool_bounds(layouts: Dict[str, LayoutInfo], node_count: int) -> Bounds:
    bands = lane_bands(node_count)
    height = sum(h for _, h in bands.values())
    right = max((info.x + info.width for info in layouts.values()), default=float(ORIGIN_X))
    width = max(right + POOL_PAD_RIGHT - POOL_X, float(MIN_POOL_WIDTH))
    return (float(POOL_X), float(POOL_Y), float(width), float(height))


def fit_into(
    layouts: Dict[str, LayoutInfo], bounds: Bounds, padding: float = 10.0, header: float = 16.0
) -> Dict[str, LayoutInfo]:
    """Uniformly scale a nested layout so it sits inside ``bounds``."""
    if not layouts:
        return {}
    left = min(info.x for info in layouts.values())
    top = min(info.y for info in layouts.values())
    content_w = max(info.x + info.width for info in layouts.values()) - left
    content_h = max(info.y + info.height for info in layouts.values()) - top

    bx, by, bw, bh = bounds
    avail_w = bw - 2 * padding
    avail_h = bh - 2 * padding - header
    scale = min(avail_w / content_w, avail_h / content_h, 1.0)
    off_x = bx + padding + (avail_w - content_w * scale) / 2
    off_y = by + padding + header + (avail_h - content_h * scale) / 2

    return {
        node_id: replace(
            info,
            x=round(off_x + (info.x - left) * scale, 2),
            y=round(off_y + (info.y - top) * scale, 2),
            width=round(info.width * scale, 2),
            height=round(info.height * scale, 2),
        )
        for node_id, info in layouts.items()
    }
