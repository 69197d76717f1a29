from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.settings import AIDraftSettings, get_settings
from schemas.draft import DRAFT_INTENT, DraftBpmnRequest, DraftCompileRequest, DraftRequestLimits
from services import audit_log
from services.draft_compiler import (
    CompilerConfig,
    DraftCompilerError,
    DraftLimits,
    SchemaError,
    compile_draft,
)
from services.draft_compiler.models import FLOW_LIMITS, NODE_LIMITS
from services.draft_providers import (
    DraftProviderError,
    DraftProviderUnavailable,
    build_prompt,
    get_provider,
    parse_candidate_text,
)
from services.rules_loader import get_rules

logger = logging.getLogger(__name__)

DRAFT_ROUTE = "/api/ai/draft-bpmn"
VISIBILITY = "admin-only"
RESPONSE_BYTES_LIMITS = (2000, 100000)


class DraftServiceError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


def _clamp(value: int, bounds: Tuple[int, int]) -> int:
    lo, hi = bounds
    return min(max(value, lo), hi)


def _status_for(exc: Exception) -> int:
    if isinstance(exc, SchemaError):
        return 400
    if isinstance(exc, DraftProviderUnavailable):
        return 503
    if isinstance(exc, DraftProviderError):
        return 502
    return 500


class DraftService:
    def __init__(self, settings: Optional[AIDraftSettings] = None) -> None:
        self.settings = settings or get_settings().ai_draft
        self.provider = get_provider(self.settings)
        self.rules = get_rules(self.settings.rules_lang)

    def effective_limits(self, requested: Optional[DraftRequestLimits]) -> Tuple[DraftLimits, int]:
        """Request limits win over env defaults; env defaults are clamped to the bounds."""
        requested = requested or DraftRequestLimits()
        max_nodes = requested.max_nodes or _clamp(self.settings.max_nodes, NODE_LIMITS)
        max_flows = requested.max_flows or _clamp(self.settings.max_flows, FLOW_LIMITS)
        max_bytes = requested.max_response_bytes or _clamp(
            self.settings.max_response_bytes, RESPONSE_BYTES_LIMITS
        )
        return DraftLimits(max_nodes=max_nodes, max_flows=max_flows), max_bytes

    def _audit(self, policy_version: str, actor: Dict[str, Any], request: Dict[str, Any], **fields) -> None:
        audit_log.append_audit(
            {
                "route": DRAFT_ROUTE,
                "visibility": VISIBILITY,
                "policyVersion": policy_version,
                "actor": actor,
                "request": request,
                **fields,
            }
        )

    def draft(self, payload: DraftBpmnRequest, actor: Dict[str, Any]) -> Dict[str, Any]:
        policy_version = (payload.policy_version or self.settings.policy_version).strip()
        request_dump = payload.model_dump(by_alias=True, exclude_none=True)

        if payload.intent != DRAFT_INTENT:
            message = f"Somente intent={DRAFT_INTENT} é permitida neste endpoint"
            self._audit(
                policy_version,
                actor,
                request_dump,
                status="rejected",
                reason="intent_not_allowed",
                response={"error": message},
            )
            raise DraftServiceError(status_code=400, message=message)

        limits, max_bytes = self.effective_limits(payload.limits)
        context = payload.context.model_dump(by_alias=True)
        try:
            prompt = build_prompt(context, limits)
            raw = self.provider.generate(prompt, context, limits)
            candidate = parse_candidate_text(raw, max_bytes)
            rules = get_rules(payload.language or self.settings.rules_lang)
            compiled = compile_draft(candidate, CompilerConfig(rules=rules, limits=limits))
        except (DraftCompilerError, DraftProviderError) as exc:
            reason = str(exc)
            logger.warning("Draft request failed (%s): %s", type(exc).__name__, reason)
            self._audit(
                policy_version,
                actor,
                request_dump,
                status="error",
                reason=reason,
                response={"error": reason},
            )
            raise DraftServiceError(status_code=_status_for(exc), message=reason) from exc

        draft = compiled.draft.to_dict()
        result = {
            "policyVersion": policy_version,
            "provider": self.provider.name,
            "model": self.provider.model,
            "createdAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "draft": draft,
            "bpmnXml": compiled.bpmn_xml,
        }
        self._audit(
            policy_version,
            actor,
            request_dump,
            status="success",
            response={
                "provider": result["provider"],
                "model": result["model"],
                "createdAt": result["createdAt"],
                "nodeCount": len(draft["nodes"]),
                "flowCount": len(draft["flows"]),
                "bpmnXmlBytes": len(compiled.bpmn_xml.encode("utf-8")),
                "draft": draft,
            },
        )
        return result

    def compile(self, payload: DraftCompileRequest) -> Dict[str, Any]:
        """Compile a caller-supplied candidate; the text generator is not involved."""
        limits, _ = self.effective_limits(payload.limits)
        try:
            compiled = compile_draft(payload.candidate, CompilerConfig(rules=self.rules, limits=limits))
        except DraftCompilerError as exc:
            raise DraftServiceError(status_code=_status_for(exc), message=str(exc)) from exc
        return {"draft": compiled.draft.to_dict(), "bpmnXml": compiled.bpmn_xml}

    def recent_logs(self, limit: int) -> List[Dict[str, Any]]:
        return audit_log.read_recent(limit)
