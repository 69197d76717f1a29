from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DRAFT_INTENT = "draft_bpmn"


class DraftContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    process_name: str = Field(alias="processName", min_length=3, max_length=120)
    objective: str = Field(min_length=3, max_length=400)
    trigger: str = Field(min_length=3, max_length=240)
    actors: List[str] = Field(min_length=1, max_length=12)
    systems: Optional[List[str]] = Field(default=None, max_length=12)
    key_steps: List[str] = Field(alias="keySteps", min_length=2, max_length=24)
    business_rules: Optional[List[str]] = Field(default=None, alias="businessRules", max_length=20)
    exceptions: Optional[List[str]] = Field(default=None, max_length=10)
    observations: Optional[str] = Field(default=None, max_length=500)


class DraftRequestLimits(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    max_nodes: Optional[int] = Field(default=None, alias="maxNodes", ge=4, le=40)
    max_flows: Optional[int] = Field(default=None, alias="maxFlows", ge=3, le=80)
    max_response_bytes: Optional[int] = Field(
        default=None, alias="maxResponseBytes", ge=2000, le=100000
    )


class DraftBpmnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    # any string is accepted here; the service audits and rejects other intents
    intent: str
    policy_version: Optional[str] = Field(
        default=None, alias="policyVersion", min_length=2, max_length=40
    )
    language: Optional[Literal["pt-BR"]] = None
    context: DraftContext
    limits: Optional[DraftRequestLimits] = None


class DraftCompileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    candidate: Any
    limits: Optional[DraftRequestLimits] = None


class DraftCompileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    draft: Dict[str, Any]
    bpmn_xml: str = Field(alias="bpmnXml")


class DraftBpmnResponse(DraftCompileResponse):
    policy_version: str = Field(alias="policyVersion")
    provider: str
    model: str
    created_at: str = Field(alias="createdAt")


class DraftLogsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    visibility: str = "admin-only"
    policy_version: str = Field(alias="policyVersion")
    count: int
    logs: List[Dict[str, Any]] = Field(default_factory=list)
