from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from core.config import get_openai_client
from services.draft_compiler import DraftLimits, SchemaError

logger = logging.getLogger(__name__)

MAX_CONTEXT_ITEMS = 30

SYSTEM_PROMPT = (
    "Você gera rascunho BPMN em JSON para importação técnica. "
    "Responda SOMENTE JSON puro, sem markdown e sem texto adicional."
)

SCHEMA_DESCRIPTION = {
    "processName": "string (3..120)",
    "nodes": [
        {
            "id": "string único (somente letras, números, _ e -)",
            "type": "start | task | gateway_exclusive | end",
            "label": "string (1..120)",
        }
    ],
    "flows": [
        {
            "id": "string único (somente letras, números, _ e -)",
            "source": "id do nó origem",
            "target": "id do nó destino",
            "label": "string opcional (0..80)",
        }
    ],
}

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


class DraftProviderError(Exception):
    pass


class DraftProviderUnavailable(DraftProviderError):
    """No usable text generator is configured."""


def _as_content(text: str) -> List[Dict[str, str]]:
    return [{"type": "input_text", "text": text}]


def _normalize_list(values: Optional[List[Any]]) -> List[str]:
    if not isinstance(values, list):
        return []
    items = [str(item).strip() for item in values]
    return [item for item in items if item][:MAX_CONTEXT_ITEMS]


def normalize_context(context: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "processName": str(context.get("processName") or "").strip(),
        "objective": str(context.get("objective") or "").strip(),
        "trigger": str(context.get("trigger") or "").strip(),
        "actors": _normalize_list(context.get("actors")),
        "systems": _normalize_list(context.get("systems")),
        "keySteps": _normalize_list(context.get("keySteps")),
        "businessRules": _normalize_list(context.get("businessRules")),
        "exceptions": _normalize_list(context.get("exceptions")),
        "observations": str(context.get("observations") or "").strip(),
    }


def build_prompt(context: Dict[str, Any], limits: DraftLimits) -> str:
    """Instruction block for the text generator (pt-BR)."""
    normalized = normalize_context(context)
    return "\n".join(
        [
            "Você gera rascunho BPMN em JSON para importação técnica.",
            "Responda SOMENTE JSON puro, sem markdown e sem texto adicional.",
            "Nunca inclua chaves fora do schema definido.",
            f"Use no máximo {limits.max_nodes} nós e {limits.max_flows} fluxos.",
            "Regras obrigatórias:",
            "- Exatamente 1 nó start e pelo menos 1 nó end.",
            "- Todos os fluxos devem referenciar nós existentes.",
            "- Processo coerente com as etapas fornecidas.",
            "- Labels em PT-BR claros e curtos.",
            "",
            f"Schema esperado: {json.dumps(SCHEMA_DESCRIPTION, ensure_ascii=False)}",
            "",
            "Dados de entrada (estruturados, sem prompt livre): "
            f"{json.dumps(normalized, ensure_ascii=False)}",
        ]
    )


def parse_candidate_text(raw: str, max_bytes: int) -> Any:
    """Decode the generator output into JSON, enforcing the byte cap."""
    text = (raw or "").strip()
    if len(text.encode("utf-8")) > max_bytes:
        raise SchemaError("payload", f"resposta da IA excede limite de bytes ({max_bytes})")
    text = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaError("payload", f"JSON inválido retornado pela IA ({exc.msg})") from exc


class StubDraftProvider:
    """Offline generator: start -> one task per key step -> end."""

    name = "stub"
    model = "stub-linear"

    def generate(self, prompt: str, context: Dict[str, Any], limits: DraftLimits) -> str:
        ctx = normalize_context(context)
        room = min(limits.max_nodes - 2, limits.max_flows - 1)
        steps = ctx["keySteps"][:room] or [ctx["objective"] or "Executar processo"]

        nodes = [{"id": "start", "type": "start", "label": ctx["trigger"] or "Início"}]
        for idx, step in enumerate(steps, start=1):
            nodes.append({"id": f"step_{idx}", "type": "task", "label": step})
        nodes.append({"id": "end", "type": "end", "label": "Processo concluído"})

        flows = [
            {"id": f"flow_{idx}", "source": src["id"], "target": tgt["id"]}
            for idx, (src, tgt) in enumerate(zip(nodes, nodes[1:]), start=1)
        ]
        payload = {"processName": ctx["processName"] or "Processo", "nodes": nodes, "flows": flows}
        return json.dumps(payload, ensure_ascii=False)


class OpenAIDraftProvider:
    name = "openai"

    def __init__(self, model: str, timeout_s: int, max_tokens: int):
        self.model = model or "gpt-4.1-mini"
        self.timeout_s = timeout_s or 30
        self.max_tokens = max_tokens or 4000

    def _client(self):
        return get_openai_client().with_options(timeout=self.timeout_s)

    def _extract_text(self, response) -> str:
        text = getattr(response, "output_text", None)
        if text:
            return text
        parts: List[str] = []
        for item in getattr(response, "output", None) or []:
            for block in getattr(item, "content", []) or []:
                value = getattr(block, "text", None)
                if value:
                    parts.append(value)
        return "".join(parts)

    def generate(self, prompt: str, context: Dict[str, Any], limits: DraftLimits) -> str:
        if not os.getenv("OPENAI_API_KEY"):
            raise DraftProviderUnavailable("OPENAI_API_KEY não configurada no servidor")
        messages = [
            {"role": "system", "content": _as_content(SYSTEM_PROMPT)},
            {"role": "user", "content": _as_content(prompt)},
        ]
        try:
            response = self._client().responses.create(
                model=self.model,
                input=messages,
                max_output_tokens=self.max_tokens,
            )
        except Exception as exc:
            raise DraftProviderError(f"Falha ao chamar OpenAI: {str(exc)[:300]}") from exc
        text = self._extract_text(response).strip()
        if not text:
            raise DraftProviderError("OpenAI não retornou conteúdo textual válido")
        return text


def get_provider(settings):
    provider = (settings.provider or "auto").lower()
    api_key_present = bool(os.getenv("OPENAI_API_KEY"))

    if provider == "openai" or (provider == "auto" and api_key_present):
        logger.info("Draft provider: openai (%s)", settings.model)
        return OpenAIDraftProvider(settings.model, settings.timeout_s, settings.max_tokens)

    logger.info("Draft provider: stub")
    return StubDraftProvider()
