from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Optional


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _get_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _get_lower_str(name: str, default: str) -> str:
    return _get_str(name, default).lower()


def _env(getter, name, default):
    return field(default_factory=lambda: getter(name, default))


@dataclass(frozen=True)
class AIDraftSettings:
    provider: str = _env(_get_lower_str, "AI_DRAFT_PROVIDER", "auto")
    model: str = _env(_get_str, "AI_DRAFT_MODEL", "gpt-4.1-mini")
    timeout_s: int = _env(_get_int, "AI_DRAFT_TIMEOUT_S", 30)
    max_tokens: int = _env(_get_int, "AI_DRAFT_MAX_TOKENS", 4000)
    max_nodes: int = _env(_get_int, "AI_DRAFT_MAX_NODES", 24)
    max_flows: int = _env(_get_int, "AI_DRAFT_MAX_FLOWS", 40)
    max_response_bytes: int = _env(_get_int, "AI_DRAFT_MAX_RESPONSE_BYTES", 30000)
    policy_version: str = _env(_get_str, "AI_DRAFT_POLICY_VERSION", "draft-bpmn-policy-v1")
    rules_lang: str = _env(_get_str, "AI_DRAFT_RULES_LANG", "pt-BR")
    audit_log_path: str = _env(_get_str, "AI_AUDIT_LOG_PATH", "logs/ai-draft-audit.jsonl")
    admin_token: str = _env(_get_str, "AI_ADMIN_TOKEN", "")


@dataclass(frozen=True)
class AppSettings:
    ai_draft: AIDraftSettings = field(default_factory=AIDraftSettings)


_SETTINGS: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = AppSettings()
    return _SETTINGS


def reset_settings() -> None:
    """Forget cached settings so the next get_settings() re-reads the env (tests)."""
    global _SETTINGS
    _SETTINGS = None
