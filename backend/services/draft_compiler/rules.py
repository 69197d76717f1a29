from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import Lane, NodeKind

LOOP_ROLES = ("plan", "execute", "check", "act")


@dataclass(frozen=True)
class ClassifierRule:
    name: str
    kind: NodeKind
    lane: Lane
    phrases: Tuple[str, ...]


@dataclass(frozen=True)
class LoopLabels:
    subprocess: str = "Ciclo PDCA"
    start: str = "Início do ciclo"
    end: str = "Meta atingida"
    gateway: str = "Meta atingida?"
    met: str = "Sim"
    not_met: str = "Não"
    exit: str = "Sim"


@dataclass(frozen=True)
class DraftRules:
    classifier: Tuple[ClassifierRule, ...]
    default_kind: NodeKind = NodeKind.USER_TASK
    default_lane: Lane = Lane.OPERATIONAL
    loop_roles: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    loop_exit: Tuple[str, ...] = ()
    loop_labels: LoopLabels = LoopLabels()


def strip_diacritics(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def normalize_label(text: str) -> str:
    """Lowercase, diacritics-free, punctuation-free label padded with spaces."""
    plain = strip_diacritics(text or "").lower()
    plain = re.sub(r"[^a-z0-9]+", " ", plain)
    return f" {plain.strip()} "


def contains_any(normalized: str, phrases: Tuple[str, ...]) -> bool:
    return any(f" {phrase} " in normalized for phrase in phrases)


def _phrases(values: Optional[List[Any]]) -> Tuple[str, ...]:
    seen: List[str] = []
    for item in values or []:
        phrase = normalize_label(str(item)).strip()
        if phrase and phrase not in seen:
            seen.append(phrase)
    return tuple(seen)


def rules_from_mapping(data: Mapping[str, Any]) -> DraftRules:
    """Build DraftRules from the parsed YAML rule file."""
    classifier_cfg = data.get("classifier") or {}
    rules = []
    for entry in classifier_cfg.get("rules") or []:
        rules.append(
            ClassifierRule(
                name=str(entry["name"]),
                kind=NodeKind(entry["type"]),
                lane=Lane(entry["lane"]),
                phrases=_phrases(entry.get("keywords")),
            )
        )
    default = classifier_cfg.get("default") or {}

    loop_cfg = data.get("loop") or {}
    roles_cfg = loop_cfg.get("roles") or {}
    missing = [role for role in LOOP_ROLES if role not in roles_cfg]
    if missing:
        raise ValueError(f"loop.roles is missing {', '.join(missing)}")
    labels_cfg: Dict[str, str] = {
        key: str(value) for key, value in (loop_cfg.get("labels") or {}).items()
    }

    return DraftRules(
        classifier=tuple(rules),
        default_kind=NodeKind(default.get("type", NodeKind.USER_TASK.value)),
        default_lane=Lane(default.get("lane", Lane.OPERATIONAL.value)),
        loop_roles={role: _phrases(roles_cfg[role]) for role in LOOP_ROLES},
        loop_exit=_phrases(loop_cfg.get("exit")),
        loop_labels=LoopLabels(**labels_cfg),
    )
