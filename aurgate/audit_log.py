"""Append-only JSONL trail of operator decisions and privileged actions.

Every line carries the id of the run that wrote it, so one install can be
followed through a file shared by many runs.
"""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import WorkdirError


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class AuditLogger:
    path: Path
    run_id: str = field(default_factory=_new_run_id)

    def log(self, event: Dict[str, Any]) -> None:
        line = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "run": self.run_id,
            "pid": os.getpid(),
            **event,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(line, sort_keys=True, default=str) + "\n")
        except OSError as e:
            raise WorkdirError(self.path, f"Failed to append to audit trail ({e})") from e


class NullAuditLogger:
    def log(self, event: Dict[str, Any]) -> None:
        return None


def audit_event(
    *,
    action: str,
    ok: bool,
    details: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
) -> Dict[str, Any]:
    """Flat audit record; details are merged into the top level."""

    event: Dict[str, Any] = {"action": action, "ok": ok}
    if details:
        event.update(details)
    if error is not None:
        event["error"] = error
    return event
