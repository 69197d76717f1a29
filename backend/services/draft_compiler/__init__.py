# services/draft_compiler
# AI candidate JSON -> classified, loop-folded, laid-out BPMN document.
from .compiler import CompiledDraft, CompilerConfig, compile_draft
from .errors import DraftCompilerError, LayoutInvariantError, SchemaError
from .models import DraftGraph, DraftLimits, Lane, LayoutInfo, NodeKind, RenderGraph, RenderNode

__all__ = [
    "CompiledDraft",
    "CompilerConfig",
    "compile_draft",
    "DraftCompilerError",
    "LayoutInvariantError",
    "SchemaError",
    "DraftGraph",
    "DraftLimits",
    "Lane",
    "LayoutInfo",
    "NodeKind",
    "RenderGraph",
    "RenderNode",
]
