# services/draft_compiler/route.py
# Orthogonal waypoints between two laid-out boxes.
from __future__ import annotations

from typing import List, Tuple

from .models import LayoutInfo

Point = Tuple[float, float]

ALIGN_TOLERANCE = 4.0


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _overlaps(a_start: float, a_size: float, b_start: float, b_size: float) -> bool:
    return a_start < b_start + b_size and b_start < a_start + a_size


def _stacked_route(source: LayoutInfo, target: LayoutInfo) -> List[Point]:
    # boxes share a column: leave through bottom/top, enter through top/bottom
    scx, scy = source.center
    tcx, tcy = target.center
    down = tcy > scy
    sy = source.y + source.height if down else source.y
    ty = target.y if down else target.y + target.height

    if abs(tcx - scx) <= ALIGN_TOLERANCE:
        return [(scx, sy), (_clamp(scx, target.x, target.x + target.width), ty)]

    mid_y = float(round((sy + ty) / 2))
    return [(scx, sy), (scx, mid_y), (tcx, mid_y), (tcx, ty)]


def route(source: LayoutInfo, target: LayoutInfo) -> List[Point]:
    """Polyline from the source boundary to the target boundary.

    Exits through the vertical edge facing the target and enters the target
    through the edge facing the source, except for the dog-leg case, which
    enters through the target's top or bottom. Boxes stacked in the same
    column are joined through their horizontal edges.
    """
    if _overlaps(source.x, source.width, target.x, target.width) and not _overlaps(
        source.y, source.height, target.y, target.height
    ):
        return _stacked_route(source, target)

    scx, scy = source.center
    tcx, tcy = target.center
    forward = tcx >= scx
    sx = source.x + source.width if forward else source.x
    tx = target.x if forward else target.x + target.width

    if abs(tcy - scy) <= ALIGN_TOLERANCE:
        ty = _clamp(scy, target.y, target.y + target.height)
        return [(sx, scy), (tx, ty)]

    if abs(sx - tx) <= ALIGN_TOLERANCE:
        ty = target.y if tcy > scy else target.y + target.height
        return [(sx, scy), (tcx, scy), (tcx, ty)]

    mid_x = float(round((sx + tx) / 2))
    return [(sx, scy), (mid_x, scy), (mid_x, tcy), (tx, tcy)]
