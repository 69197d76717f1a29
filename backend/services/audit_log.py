import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from core.settings import get_settings

logger = logging.getLogger(__name__)

MAX_READ_LIMIT = 200

_log_path: Optional[Path] = None


def set_log_path(path: str | Path | None) -> None:
    """Override the audit file location (useful for tests)."""
    global _log_path
    _log_path = Path(path) if path is not None else None


def _audit_path() -> Path:
    if _log_path is not None:
        return _log_path
    return Path(get_settings().ai_draft.audit_log_path).expanduser().resolve()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def append_audit(record: Dict[str, Any]) -> Dict[str, Any]:
    """Append one audit entry as a JSON line. Returns the stored entry."""
    entry = {"id": str(uuid4()), "timestamp": _now_iso(), **record}
    path = _audit_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
    return entry


def read_recent(limit: int = 50) -> List[Dict[str, Any]]:
    """Newest-first audit entries; broken lines are skipped."""
    safe_limit = min(max(int(limit), 1), MAX_READ_LIMIT)
    path = _audit_path()
    try:
        with path.open("r", encoding="utf-8") as f:
            lines = [line.strip() for line in f if line.strip()]
    except OSError as exc:
        logger.warning("Audit file unavailable (%s): %s", path, exc)
        return []

    items: List[Dict[str, Any]] = []
    for line in lines[-safe_limit:]:
        try:
            items.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    items.reverse()
    return items
