# services/draft_compiler/compiler.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from .classify import classify
from .errors import DraftCompilerError
from .fold import fold_loops
from .layout import layout_graph
from .models import DraftGraph, DraftLimits, LayoutInfo, RenderGraph
from .rules import DraftRules
from .serialize import serialize
from .validate import validate_candidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompilerConfig:
    rules: DraftRules
    limits: DraftLimits = field(default_factory=DraftLimits)


@dataclass
class CompiledDraft:
    draft: DraftGraph
    graph: RenderGraph
    layouts: Dict[str, LayoutInfo]
    bpmn_xml: str


def compile_draft(candidate: Any, config: CompilerConfig) -> CompiledDraft:
    """Validate, classify, fold, lay out and serialize one AI candidate.

    SchemaError propagates as is. Anything else raised past validation is an
    internal failure and is re-raised as DraftCompilerError.
    """
    draft = validate_candidate(candidate, config.limits)
    try:
        graph = fold_loops(classify(draft, config.rules), config.rules)
        layouts = layout_graph(graph)
        bpmn_xml = serialize(graph, layouts)
    except DraftCompilerError:
        logger.exception("Draft compiler invariant broken for %r", draft.process_name)
        raise
    except Exception as exc:
        logger.exception("Draft compiler failed for %r", draft.process_name)
        raise DraftCompilerError(f"Falha interna ao compilar rascunho: {exc}") from exc

    logger.info(
        "Compiled draft %r: %d nodes, %d flows (%d after fold)",
        draft.process_name,
        len(draft.nodes),
        len(draft.flows),
        len(graph.nodes),
    )
    return CompiledDraft(draft=draft, graph=graph, layouts=layouts, bpmn_xml=bpmn_xml)


__all__ = ["CompilerConfig", "CompiledDraft", "compile_draft"]
