# routers/draft_router.py
from __future__ import annotations

import hmac
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from core.settings import get_settings
from schemas.draft import (
    DraftBpmnRequest,
    DraftBpmnResponse,
    DraftCompileRequest,
    DraftCompileResponse,
    DraftLogsResponse,
)
from services.draft_service import DraftService, DraftServiceError

router = APIRouter(prefix="/api/ai", tags=["AI draft"])

DEFAULT_LOGS_LIMIT = 50
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def get_draft_service() -> DraftService:
    return DraftService()


def _request_actor(request: Request) -> Dict[str, Any]:
    forwarded = request.headers.get("x-forwarded-for") or ""
    ip = forwarded.split(",")[0].strip() or (request.client.host if request.client else "")
    user_agent = (request.headers.get("user-agent") or "").strip()
    return {"ip": ip or None, "userAgent": user_agent or None}


def _parse_limit(value: Optional[str]) -> Optional[int]:
    # leading integer wins: "20abc" reads as 20, "abc" is rejected
    if value is None:
        return DEFAULT_LOGS_LIMIT
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def _require_admin(token: Optional[str]) -> None:
    expected = get_settings().ai_draft.admin_token.strip()
    if not expected or not hmac.compare_digest((token or "").encode(), expected.encode()):
        raise HTTPException(status_code=403, detail="Acesso admin-only")


@router.post("/draft-bpmn", response_model=DraftBpmnResponse)
def draft_bpmn(
    payload: DraftBpmnRequest,
    request: Request,
    service: DraftService = Depends(get_draft_service),
) -> Dict[str, Any]:
    try:
        return service.draft(payload, _request_actor(request))
    except DraftServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.post("/draft-bpmn/compile", response_model=DraftCompileResponse)
def compile_candidate(
    payload: DraftCompileRequest,
    service: DraftService = Depends(get_draft_service),
) -> Dict[str, Any]:
    try:
        return service.compile(payload)
    except DraftServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("/draft-bpmn/logs", response_model=DraftLogsResponse)
def draft_logs(
    limit: Optional[str] = None,
    x_admin_token: Optional[str] = Header(default=None, alias="x-admin-token"),
    service: DraftService = Depends(get_draft_service),
) -> Dict[str, Any]:
    _require_admin(x_admin_token)
    parsed = _parse_limit(limit)
    if parsed is None or parsed < 1:
        raise HTTPException(status_code=400, detail="Parâmetro limit inválido")

    logs = service.recent_logs(parsed)
    return {
        "visibility": "admin-only",
        "policyVersion": get_settings().ai_draft.policy_version,
        "count": len(logs),
        "logs": logs,
    }
