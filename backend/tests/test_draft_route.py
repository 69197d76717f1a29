import pytest

from services.draft_compiler import Lane, LayoutInfo, NodeKind
from services.draft_compiler.layout import layout_graph
from services.draft_compiler.models import DraftFlow, RenderGraph, RenderNode
from services.draft_compiler.route import route


def _box(x, y, w=120, h=80, rid="Task_1"):
    return LayoutInfo(rendered_id=rid, tag_name="task", x=x, y=y, width=w, height=h)


def _on_boundary(point, box):
    x, y = point
    inside_x = box.x <= x <= box.x + box.width
    inside_y = box.y <= y <= box.y + box.height
    on_vertical = x in (box.x, box.x + box.width) and inside_y
    on_horizontal = y in (box.y, box.y + box.height) and inside_x
    return on_vertical or on_horizontal


def test_target_left_of_source_is_one_horizontal_segment():
    source, target = _box(500, 100), _box(200, 100)
    assert route(source, target) == [(500, 140), (320, 140)]


def test_target_right_of_source():
    assert route(_box(100, 100), _box(400, 100)) == [(220, 140), (400, 140)]


def test_small_vertical_offset_still_straight():
    points = route(_box(100, 100), _box(400, 103))
    assert len(points) == 2
    assert points[0][1] == points[1][1] == 140


def test_z_route_through_mid_x():
    points = route(_box(100, 100), _box(400, 300))
    assert points == [(220, 140), (310, 140), (310, 340), (400, 340)]


def test_dog_leg_enters_from_top():
    source = _box(100, 100)
    target = _box(220, 300, w=36, h=36, rid="EndEvent_1")
    assert route(source, target) == [(220, 140), (238, 140), (238, 300)]


def test_dog_leg_enters_from_bottom():
    source = _box(100, 400)
    target = _box(220, 100, w=36, h=36, rid="EndEvent_1")
    assert route(source, target) == [(220, 440), (238, 440), (238, 136)]


@pytest.mark.parametrize(
    ("source", "target"),
    [
        (_box(100, 100), _box(400, 100)),
        (_box(500, 100), _box(200, 100)),
        (_box(100, 100), _box(400, 300)),
        (_box(600, 400), _box(100, 50, w=36, h=36)),
        (_box(100, 100), _box(220, 300, w=36, h=36)),
        (_box(300, 100, w=50, h=50), _box(300, 400)),
    ],
)
def test_endpoints_lie_on_box_boundaries(source, target):
    points = route(source, target)
    assert len(points) >= 2
    assert _on_boundary(points[0], source)
    assert _on_boundary(points[-1], target)


def test_stacked_boxes_join_through_horizontal_edges():
    assert route(_box(300, 100), _box(300, 300)) == [(360, 180), (360, 300)]
    assert route(_box(300, 300), _box(300, 100)) == [(360, 300), (360, 180)]


def test_stacked_boxes_with_offset_centres():
    source = _box(300, 100, w=50, h=50)
    target = _box(300, 400)
    assert route(source, target) == [(325, 150), (325, 275), (360, 275), (360, 400)]


def _strictly_inside(point, box):
    x, y = point
    return box.x < x < box.x + box.width and box.y < y < box.y + box.height


def test_row_wrap_edge_stays_outside_both_boxes():
    nodes = [RenderNode(id="s", kind=NodeKind.START, label="Início")]
    nodes += [
        RenderNode(id=f"t{i}", kind=NodeKind.USER_TASK, label=f"Etapa {i}", lane=Lane.OPERATIONAL)
        for i in range(1, 5)
    ]
    nodes.append(RenderNode(id="e", kind=NodeKind.END, label="Fim"))
    flows = [
        DraftFlow(id=f"f{i}", source=a.id, target=b.id)
        for i, (a, b) in enumerate(zip(nodes, nodes[1:]), start=1)
    ]
    layouts = layout_graph(RenderGraph(process_name="Seis etapas", nodes=nodes, flows=flows))

    source, target = layouts["t2"], layouts["t3"]
    assert (source.x, source.y) == (target.x, 106)
    assert route(source, target) == [(740, 194), (740, 246)]

    for flow in flows:
        src, tgt = layouts[flow.source], layouts[flow.target]
        points = route(src, tgt)
        assert _on_boundary(points[0], src)
        assert _on_boundary(points[-1], tgt)
        assert not any(_strictly_inside(p, src) or _strictly_inside(p, tgt) for p in points)
