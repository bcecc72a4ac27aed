from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

STATUSES = ("ok", "warn", "error")


@dataclass(frozen=True)
class RunContext:
    run_id: str
    command: str
    started_at_utc: datetime


def new_run_context(command: str) -> RunContext:
    return RunContext(
        run_id=str(uuid.uuid4()),
        command=command,
        started_at_utc=datetime.now(timezone.utc),
    )


def default_log_path(logs_dir: Path, now_utc: Optional[datetime] = None) -> Path:
    ts = now_utc or datetime.now(timezone.utc)
    return logs_dir / f"run-{ts.strftime('%Y%m%d')}.jsonl"


class JsonlLogger:
    """Append-only JSONL event log.

    Every event is stamped with the run id and command of its RunContext.
    """

    def __init__(self, path: Path, ctx: RunContext) -> None:
        self.path = path
        self.ctx = ctx
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: str, **fields: Any) -> None:
        record = {"event": event, "run_id": self.ctx.run_id, "command": self.ctx.command}
        record.update(fields)
        line = json.dumps(record, ensure_ascii=False, sort_keys=True, default=str)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def log_error(self, event: str, exc: BaseException, **fields: Any) -> None:
        self.log(event, error_type=type(exc).__name__, error_message=str(exc), **fields)


@dataclass
class StatusCounter:
    counts: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in STATUSES})

    def add(self, status: str, n: int = 1) -> None:
        self.counts[status] = self.counts.get(status, 0) + n

    @property
    def failed(self) -> bool:
        return self.counts.get("error", 0) > 0


def run_summary_event(*, ctx: RunContext, status_counts: Dict[str, int]) -> Dict[str, Any]:
    ended_at_utc = datetime.now(timezone.utc)
    duration_s = (ended_at_utc - ctx.started_at_utc).total_seconds()

    return {
        "started_at": ctx.started_at_utc.isoformat(),
        "ended_at": ended_at_utc.isoformat(),
        "duration_s": duration_s,
        "status_counts": dict(status_counts),
    }
