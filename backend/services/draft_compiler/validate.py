from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Set

from jsonschema import Draft7Validator, ValidationError

from .errors import SchemaError
from .models import DRAFT_TYPES, DraftFlow, DraftGraph, DraftLimits, DraftNode, NodeKind

MAX_ID_LEN = 40
MAX_NAME_LEN = 120
MAX_FLOW_LABEL_LEN = 80

_STRING = {"type": "string"}


def candidate_schema(limits: DraftLimits) -> Dict[str, Any]:
    """JSON schema of the AI candidate for the given limits."""
    return {
        "type": "object",
        "required": ["processName", "nodes", "flows"],
        "properties": {
            "processName": _STRING,
            "nodes": {
                "type": "array",
                "minItems": 3,
                "maxItems": limits.max_nodes,
                "items": {
                    "type": "object",
                    "required": ["type", "id", "label"],
                    "properties": {"type": _STRING, "id": _STRING, "label": _STRING},
                },
            },
            "flows": {
                "type": "array",
                "minItems": 2,
                "maxItems": limits.max_flows,
                "items": {
                    "type": "object",
                    "required": ["id", "source", "target"],
                    "properties": {"id": _STRING, "source": _STRING, "target": _STRING},
                },
            },
        },
    }


_TYPE_WORDS = {"object": "objeto", "array": "array", "string": "string"}


def _format_path(parts: Iterable[Any]) -> str:
    out = ""
    for part in parts:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "payload"


def _error_depth(error: ValidationError) -> tuple:
    # errors higher up the document (and count errors before item errors) first
    return (len(error.absolute_path), str(error.validator) not in {"minItems", "maxItems"})


def _to_schema_error(error: ValidationError) -> SchemaError:
    path = _format_path(error.absolute_path)
    if error.validator == "required":
        missing = re.findall(r"'([^']+)' is a required property", error.message)
        field = missing[0] if missing else "?"
        sub = f"{path}.{field}" if error.absolute_path else field
        return SchemaError(sub, "é obrigatório")
    if error.validator == "type":
        return SchemaError(path, f"deve ser {_TYPE_WORDS.get(error.validator_value, error.validator_value)}")
    if error.validator == "minItems":
        return SchemaError(path, f"precisa ter ao menos {error.validator_value} itens")
    if error.validator == "maxItems":
        return SchemaError(path, f"excede limite ({error.validator_value})")
    return SchemaError(path, error.message)


def make_safe_id(value: str, fallback: str) -> str:
    normalized = re.sub(r"[^a-z0-9_-]", "_", value.lower())
    normalized = normalized.strip("_")[:MAX_ID_LEN].strip("_")
    return normalized or fallback


def ensure_unique_id(candidate: str, used: Set[str]) -> str:
    unique = candidate
    suffix = 1
    while unique in used:
        tail = f"_{suffix}"
        unique = candidate[: MAX_ID_LEN - len(tail)] + tail
        suffix += 1
    used.add(unique)
    return unique


def normalize_text(value: str, max_len: int) -> str:
    return re.sub(r"\s+", " ", value.strip())[:max_len].strip()


def _require_text(value: str, path: str) -> str:
    trimmed = value.strip()
    if not trimmed:
        raise SchemaError(path, "não pode ser vazio")
    return trimmed


def validate_candidate(payload: Any, limits: DraftLimits) -> DraftGraph:
    """Turn an untrusted AI candidate into a well-formed DraftGraph.

    Raises SchemaError with a path-qualified message on the first violation.
    """
    validator = Draft7Validator(candidate_schema(limits))
    errors = sorted(validator.iter_errors(payload), key=_error_depth)
    if errors:
        raise _to_schema_error(errors[0])

    process_name = normalize_text(
        _require_text(payload["processName"], "processName"), MAX_NAME_LEN
    )

    nodes: List[DraftNode] = []
    used_node_ids: Set[str] = set()
    for index, raw in enumerate(payload["nodes"]):
        where = f"nodes[{index}]"
        raw_type = _require_text(raw["type"], f"{where}.type")
        kind = DRAFT_TYPES.get(raw_type)
        if kind is None:
            raise SchemaError(f"{where}.type", f"tipo de nó não suportado ({raw_type})")
        raw_id = _require_text(raw["id"], f"{where}.id")
        node_id = ensure_unique_id(make_safe_id(raw_id, f"node_{index + 1}"), used_node_ids)
        label = normalize_text(_require_text(raw["label"], f"{where}.label"), MAX_NAME_LEN)
        nodes.append(DraftNode(id=node_id, type=kind, label=label))

    node_ids = {node.id for node in nodes}
    flows: List[DraftFlow] = []
    used_flow_ids: Set[str] = set()
    for index, raw in enumerate(payload["flows"]):
        where = f"flows[{index}]"
        raw_id = _require_text(raw["id"], f"{where}.id")
        flow_id = ensure_unique_id(make_safe_id(raw_id, f"flow_{index + 1}"), used_flow_ids)
        source = make_safe_id(_require_text(raw["source"], f"{where}.source"), "")
        target = make_safe_id(_require_text(raw["target"], f"{where}.target"), "")
        if source not in node_ids:
            raise SchemaError(f"{where}.source", f"inexistente ({source}) no fluxo {flow_id}")
        if target not in node_ids:
            raise SchemaError(f"{where}.target", f"inexistente ({target}) no fluxo {flow_id}")
        if source == target:
            raise SchemaError(where, f"fluxo {flow_id} não pode ligar o nó {source} nele mesmo")
        raw_label = raw.get("label")
        label = None
        if isinstance(raw_label, str) and raw_label.strip():
            label = normalize_text(raw_label, MAX_FLOW_LABEL_LEN)
        flows.append(DraftFlow(id=flow_id, source=source, target=target, label=label))

    _check_invariants(nodes, flows)
    return DraftGraph(process_name=process_name, nodes=nodes, flows=flows)


def _check_invariants(nodes: List[DraftNode], flows: List[DraftFlow]) -> None:
    starts = [node for node in nodes if node.type == NodeKind.START]
    if len(starts) != 1:
        raise SchemaError("nodes", f"deve haver exatamente 1 nó start (encontrados {len(starts)})")
    ends = [node for node in nodes if node.type == NodeKind.END]
    if not ends:
        raise SchemaError("nodes", "deve haver ao menos 1 nó end")

    outgoing: Dict[str, int] = {}
    incoming: Dict[str, int] = {}
    for flow in flows:
        outgoing[flow.source] = outgoing.get(flow.source, 0) + 1
        incoming[flow.target] = incoming.get(flow.target, 0) + 1

    if not outgoing.get(starts[0].id):
        raise SchemaError("flows", f"nó start {starts[0].id} deve ter ao menos um fluxo de saída")
    if not any(incoming.get(node.id) for node in ends):
        raise SchemaError("flows", "nó end deve receber ao menos um fluxo")
