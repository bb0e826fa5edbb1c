"""Structured logging: per-pass and per-rule records of a cascade run.

Captures, for one run over a project's documents:
- Each pass with its duration and change count
- Every rule that fired, with the keys its action changed
- Store write failures with the affected document
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class RuleFiring:
    """A rule whose condition held for one document during one pass."""
    rule_id: str
    document_id: str
    changes: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        d = {
            "rule_id": self.rule_id,
            "document_id": self.document_id,
            "timestamp": self.timestamp,
        }
        if self.changes:
            d["changes"] = self.changes
        return d


@dataclass
class PassLog:
    """Log entry for a single evaluation pass."""
    number: int
    started_at: float = field(default_factory=time.time)
    duration_ms: float | None = None
    changes: int = 0
    firings: list[RuleFiring] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = {
            "pass": self.number,
            "started_at": self.started_at,
            "changes": self.changes,
            "firings": [f.to_dict() for f in self.firings],
        }
        if self.duration_ms is not None:
            d["duration_ms"] = round(self.duration_ms, 3)
        return d


@dataclass
class CascadeLog:
    """Aggregated log for one cascade run."""
    project_id: str
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    status: str = "running"
    passes: list[PassLog] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total_duration_ms(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at) * 1000

    @property
    def pass_count(self) -> int:
        return len(self.passes)

    @property
    def total_changes(self) -> int:
        return sum(p.changes for p in self.passes)

    @property
    def firing_count(self) -> int:
        return sum(len(p.firings) for p in self.passes)

    def finish(self, status: str) -> None:
        self.finished_at = time.time()
        self.status = status

    def to_dict(self) -> dict:
        d = {
            "project_id": self.project_id,
            "started_at": self.started_at,
            "status": self.status,
            "passes": [p.to_dict() for p in self.passes],
        }
        if self.finished_at:
            d["finished_at"] = self.finished_at
            d["total_duration_ms"] = round(self.total_duration_ms, 3)
        if self.errors:
            d["errors"] = self.errors
        return d

    def to_json(self, pretty: bool = False) -> str:
        indent = 2 if pretty else None
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def summary(self) -> str:
        duration = f"{self.total_duration_ms:.1f}ms" if self.total_duration_ms else "running"
        lines = [
            f"Cascade: {self.project_id} [{self.status}]",
            f"Duration: {duration}",
            f"Passes: {self.pass_count}, changes: {self.total_changes}",
            "─" * 50,
        ]
        for p in self.passes:
            dur = f"{p.duration_ms:.1f}ms" if p.duration_ms else "—"
            lines.append(f"  pass {p.number}: {p.changes} change(s) [{dur}]")
            for f in p.firings:
                if f.changes:
                    keys = ", ".join(sorted(f.changes))
                    lines.append(f"     └─ {f.rule_id} on {f.document_id}: {keys}")
        if self.errors:
            lines.append("─" * 50)
            for err in self.errors:
                lines.append(f"  ⚠ {err}")
        return "\n".join(lines)


class CascadeLogger:
    """Logger that tracks the passes of one cascade run."""

    def __init__(self, project_id: str):
        self.log = CascadeLog(project_id=project_id)
        self._pass_start: float | None = None

    @property
    def current_pass(self) -> PassLog | None:
        return self.log.passes[-1] if self.log.passes else None

    def start_pass(self) -> PassLog:
        self._pass_start = time.time()
        entry = PassLog(number=len(self.log.passes) + 1)
        self.log.passes.append(entry)
        return entry

    def record_firing(self, rule_id: str, document_id: str, changes: dict[str, Any]) -> None:
        entry = self.current_pass
        if entry is None:
            entry = self.start_pass()
        entry.firings.append(RuleFiring(rule_id, document_id, dict(changes)))
        entry.changes += len(changes)

    def end_pass(self) -> PassLog | None:
        entry = self.current_pass
        if entry and self._pass_start is not None:
            entry.duration_ms = (time.time() - self._pass_start) * 1000
        self._pass_start = None
        return entry

    def finish(self, status: str) -> CascadeLog:
        self.log.finish(status)
        return self.log
