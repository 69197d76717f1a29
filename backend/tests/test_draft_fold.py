from services.draft_compiler import DraftLimits, Lane, NodeKind
from services.draft_compiler.classify import classify
from services.draft_compiler.fold import fold_loops
from services.draft_compiler.models import DraftFlow, RenderGraph, RenderNode
from services.draft_compiler.validate import validate_candidate


def _classified(candidate, rules):
    return classify(validate_candidate(candidate, DraftLimits()), rules)


def test_pdca_cluster_is_folded(rules, pdca_candidate):
    folded = fold_loops(_classified(pdca_candidate, rules), rules)

    assert [n.id for n in folded.nodes] == ["start", "ciclo_pdca", "std", "end"]
    sub = folded.node_map()["ciclo_pdca"]
    assert sub.kind == NodeKind.SUBPROCESS
    assert sub.loop is True
    assert sub.label == "Ciclo PDCA"
    # lane of the planning step ("planejar" is a management keyword)
    assert sub.lane == Lane.MANAGEMENT

    flows = [(f.id, f.source, f.target, f.label) for f in folded.flows]
    assert flows == [
        ("ciclo_pdca_in_1", "start", "ciclo_pdca", None),
        ("ciclo_pdca_out_1", "ciclo_pdca", "std", "Sim"),
        ("f6", "std", "end", None),
    ]


def test_folded_children_form_the_cycle(rules, pdca_candidate):
    folded = fold_loops(_classified(pdca_candidate, rules), rules)
    children = folded.node_map()["ciclo_pdca"].children

    assert [n.id for n in children.nodes] == [
        "start", "plan", "execute", "check", "gateway", "end", "act",
    ]
    assert children.node_map()["plan"].label == "Planejar melhoria"
    assert len(children.flows) == 7
    edges = {(f.source, f.target): f.label for f in children.flows}
    assert edges[("gateway", "end")] == "Sim"
    assert edges[("gateway", "act")] == "Não"
    assert ("act", "plan") in edges


def test_two_plain_exits_are_kept(rules, pdca_candidate):
    data = pdca_candidate
    data["nodes"][5]["label"] = "Arquivar relatório"
    data["flows"].append({"id": "f8", "source": "act", "target": "end"})
    folded = fold_loops(_classified(data, rules), rules)

    outbound = [(f.id, f.source, f.target) for f in folded.flows if f.source == "ciclo_pdca"]
    assert outbound == [("f5", "ciclo_pdca", "std"), ("f8", "ciclo_pdca", "end")]


def test_missing_role_leaves_graph_unchanged(rules, pdca_candidate):
    data = pdca_candidate
    data["nodes"][4]["label"] = "Registrar ocorrência"
    graph = _classified(data, rules)
    assert fold_loops(graph, rules) is graph


def test_cluster_without_exit_is_not_folded(rules):
    nodes = [
        RenderNode(id="s", kind=NodeKind.START, label="Início"),
        RenderNode(id="p", kind=NodeKind.USER_TASK, label="Planejar", lane=Lane.MANAGEMENT),
        RenderNode(id="d", kind=NodeKind.USER_TASK, label="Executar", lane=Lane.OPERATIONAL),
        RenderNode(id="c", kind=NodeKind.USER_TASK, label="Verificar", lane=Lane.OPERATIONAL),
        RenderNode(id="a", kind=NodeKind.USER_TASK, label="Ajustar", lane=Lane.OPERATIONAL),
        RenderNode(id="e", kind=NodeKind.END, label="Fim"),
    ]
    flows = [
        DraftFlow("f1", "s", "p"),
        DraftFlow("f2", "p", "d"),
        DraftFlow("f3", "d", "c"),
        DraftFlow("f4", "c", "a"),
        DraftFlow("f5", "a", "p"),
        DraftFlow("f6", "s", "e"),
    ]
    graph = RenderGraph(process_name="Sem saída", nodes=nodes, flows=flows)
    assert fold_loops(graph, rules) is graph
