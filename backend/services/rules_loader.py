# services/rules_loader.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml

from services.draft_compiler.rules import DraftRules, rules_from_mapping

# Fallback locations for config/rules relative to the repo or cwd.
RULES_DIR_CANDIDATES = [
    Path(__file__).resolve().parents[1] / "config" / "rules",
    Path.cwd() / "config" / "rules",
]


def _find_rules_path(lang: str) -> Path:
    fname = f"{lang}.yml"
    for base in RULES_DIR_CANDIDATES:
        candidate = base / fname
        if candidate.exists():
            return candidate
    searched = ", ".join(str((base / fname).resolve()) for base in RULES_DIR_CANDIDATES)
    raise FileNotFoundError(
        f"Could not find draft rules for language '{lang}'. Searched: {searched}"
    )


@lru_cache(maxsize=8)
def get_rules(lang: str = "pt-BR") -> DraftRules:
    """Load the keyword tables used by the classifier and the loop folder."""
    path = _find_rules_path(lang)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return rules_from_mapping(data)


__all__ = ["get_rules"]
