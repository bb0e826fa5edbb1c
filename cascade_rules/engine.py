"""Cascade engine: apply workflow rules across a project until nothing changes.

A run evaluates every rule against every document of a project, pass after
pass, until a pass changes no value (stable) or the iteration cap is hit.
Changed documents are written back to the record store once, after the
last pass.

One run per project at a time: the engine keeps no state between calls,
but two concurrent runs over the same project would interleave writes.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Iterable

from .actions import apply, changed_keys, same_value
from .ast_nodes import Document, DocumentType, Rule, status_key
from .errors import PersistenceError
from .evaluator import evaluate
from .logging import CascadeLog, CascadeLogger
from .parser import parse_workflow_rules
from .resilience import RetryPolicy, STORE_RETRY, execute_with_retry
from .store import RecordStore

logger = logging.getLogger(__name__)


class CascadeState(Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    STABLE = "stable"
    ITERATION_CAP_REACHED = "iteration_cap_reached"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CascadeConfig:
    """Engine settings."""

    # Contradictory rule pairs can flip a value forever
    max_iterations: int = 10
    retry_policy: RetryPolicy = STORE_RETRY


DEFAULT_CONFIG = CascadeConfig()


@dataclass
class CascadeReport:
    """Result of a cascade run."""
    state: CascadeState = CascadeState.IDLE
    iterations: int = 0
    total_changes: int = 0
    applied_actions: list[str] = field(default_factory=list)
    updated_documents: list[Document] = field(default_factory=list)
    errors: list[PersistenceError] = field(default_factory=list)
    log: CascadeLog | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and not self.errors

    @property
    def diverged(self) -> bool:
        return self.state is CascadeState.ITERATION_CAP_REACHED

    def summary(self) -> str:
        status = "✅" if self.success else "❌"
        lines = [
            f"{status} {self.state.value}: {self.iterations} pass(es), "
            f"{self.total_changes} change(s), {len(self.updated_documents)} document(s) updated",
        ]
        if self.error:
            lines.append(f"  Error: {self.error}")
        for err in self.errors:
            lines.append(f"  ⚠ {err}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Project snapshot
# ---------------------------------------------------------------------------

class ProjectSnapshot:
    """Field and status values of every document in one run.

    Each document sees every project document's status, under both
    ``document.<Id>.status`` and ``<Id>.status``, plus its own form
    fields: ``key`` becomes ``key.value``, dotted keys are kept as-is.
    """

    def __init__(self, documents: Iterable[Document], document_types: Iterable[DocumentType]):
        self.documents: list[Document] = list(documents)
        types_by_id = {dt.id: dt for dt in document_types}

        self._by_identifier: dict[str, str] = {}
        self.statuses: dict[str, str] = {}
        self.fields: dict[str, dict[str, Any]] = {}
        self.changes: dict[str, dict[str, Any]] = {}

        for doc in self.documents:
            self.statuses[doc.id] = doc.status
            self.fields[doc.id] = form_fields(doc.form_data)
            dt = types_by_id.get(doc.document_type_id)
            if dt is None or not dt.identifier:
                logger.debug("Document %s has no document type identifier", doc.id)
                continue
            self._by_identifier.setdefault(dt.identifier, doc.id)

    def view(self, document_id: str) -> dict[str, Any]:
        """Snapshot one rule evaluation reads from."""
        snapshot = dict(self.fields[document_id])
        for identifier, doc_id in self._by_identifier.items():
            status = self.statuses[doc_id]
            snapshot[status_key(identifier)] = status
            snapshot[f"{identifier}.status"] = status
        return snapshot

    def assign(self, document_id: str, key: str, value: Any) -> bool:
        """Write one changed key; return True when a stored value changed.

        ``<Id>.status`` of a project document updates that document's
        status, every other key the current document's own fields.
        """
        name, _, prop = key.partition(".")
        if prop == "status" and name in self._by_identifier:
            target = self._by_identifier[name]
            status = value if isinstance(value, str) else str(value)
            if self.statuses[target] == status:
                return False
            self.statuses[target] = status
            self.changes.setdefault(target, {})["status"] = status
            return True

        own = self.fields[document_id]
        if key in own and same_value(own[key], value):
            return False
        own[key] = value
        self.changes.setdefault(document_id, {})[key] = value
        return True

    def updated_documents(self) -> list[Document]:
        """Documents with at least one change, form data merged, in document order."""
        updated = []
        for doc in self.documents:
            changes = self.changes.get(doc.id)
            if not changes:
                continue
            form_data = dict(doc.form_data)
            for key, value in changes.items():
                if key == "status":
                    continue
                form_data[form_key(key)] = value
            status = self.statuses[doc.id]
            form_data["status"] = status
            updated.append(replace(doc, form_data=form_data, status=status))
        return updated


def form_fields(form_data: dict[str, Any]) -> dict[str, Any]:
    fields = {}
    for key, value in form_data.items():
        if key == "status":
            continue
        fields[key if "." in key else f"{key}.value"] = value
    return fields


def form_key(snapshot_key: str) -> str:
    name, _, prop = snapshot_key.partition(".")
    if prop == "value":
        return name
    return snapshot_key


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class CascadeEngine:
    """Runs rule cascades over a project's documents.

    Features:
    - Sequential rule semantics within a pass
    - Iteration cap against oscillating rules
    - Cancellation checked between passes
    - Batch write-back with retry, failures reported per document
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        config: CascadeConfig | None = None,
        sleep_fn: Callable[[float], None] | None = None,
    ):
        self.store = store
        self.config = config or DEFAULT_CONFIG
        self.sleep_fn = sleep_fn

    def cascade(
        self,
        rules: Iterable[Rule],
        documents: Iterable[Document],
        document_types: Iterable[DocumentType] = (),
        project_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> CascadeReport:
        """Run passes in memory until stable, capped or cancelled."""
        rules = [r for r in rules if r.is_complete and r.validation]
        snapshot = ProjectSnapshot(documents, document_types)
        run_log = CascadeLogger(project_id)
        report = CascadeReport(state=CascadeState.EVALUATING)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Cascade for %s cancelled after %d pass(es)", project_id, report.iterations)
                report.state = CascadeState.CANCELLED
                break
            if report.iterations >= self.config.max_iterations:
                logger.warning(
                    "Cascade for %s hit the iteration cap (%d); rules may be oscillating",
                    project_id, self.config.max_iterations,
                )
                report.state = CascadeState.ITERATION_CAP_REACHED
                break

            report.iterations += 1
            changes = self._run_pass(rules, snapshot, run_log, report)
            report.total_changes += changes
            if changes == 0:
                report.state = CascadeState.STABLE
                break

        report.updated_documents = snapshot.updated_documents()
        report.log = run_log.finish(report.state.value)
        logger.info(
            "Cascade for %s: %s after %d pass(es), %d change(s)",
            project_id or "<memory>", report.state.value, report.iterations, report.total_changes,
        )
        return report

    def _run_pass(
        self,
        rules: list[Rule],
        snapshot: ProjectSnapshot,
        run_log: CascadeLogger,
        report: CascadeReport,
    ) -> int:
        run_log.start_pass()
        changes = 0
        for doc in snapshot.documents:
            for rule in rules:
                view = snapshot.view(doc.id)
                if not evaluate(rule.validation, view):
                    continue
                after = apply(rule.action, view)
                applied: dict[str, Any] = {}
                for key in changed_keys(view, after):
                    if snapshot.assign(doc.id, key, after[key]):
                        applied[key] = after[key]
                run_log.record_firing(rule.id, doc.id, applied)
                if applied:
                    changes += len(applied)
                    report.applied_actions.append(rule.describe())
                    logger.debug("Rule %s on %s changed %s", rule.id, doc.id, sorted(applied))
        run_log.end_pass()
        return changes

    # --- store-backed runs ---

    def run_for_project(
        self,
        project_id: str,
        cancel_event: threading.Event | None = None,
    ) -> CascadeReport:
        """Load a project's workflow and documents, cascade, then persist."""
        if self.store is None:
            raise ValueError("run_for_project needs a record store")

        project = self.store.get("Project", project_id)
        if not project.success:
            return _failed(f"Project not found: {project_id}")

        workflow_id = project.data.get("workflowId")
        if not workflow_id:
            logger.info("Project %s has no workflow assigned", project_id)
            return CascadeReport(state=CascadeState.IDLE)

        workflow = self.store.get("Workflow", workflow_id)
        if not workflow.success:
            return _failed(f"Workflow not found: {workflow_id}")

        rules = parse_workflow_rules(workflow.data.get("rules"))
        if not rules:
            logger.info("Workflow %s has no rules", workflow_id)
            return CascadeReport(state=CascadeState.IDLE)

        documents = self.store.list("Document", {"projectId": project_id})
        if not documents.success:
            return _failed(f"Could not load documents: {documents.error}")

        types_result = self.store.list("DocumentType")
        if not types_result.success:
            logger.warning("Could not load document types: %s", types_result.error)
        document_types = [DocumentType.from_record(r) for r in (types_result.data or [])]

        report = self.cascade(
            rules,
            [Document.from_record(r) for r in documents.data],
            document_types,
            project_id=project_id,
            cancel_event=cancel_event,
        )
        self.persist(report)
        return report

    def persist(self, report: CascadeReport) -> None:
        """Write every updated document; failures are collected on the report."""
        for doc in report.updated_documents:
            error = self._write_document(doc)
            if error is not None:
                logger.error("Failed to persist document %s: %s", doc.id, error.message)
                report.errors.append(error)
                if report.log is not None:
                    report.log.errors.append(f"{doc.id}: {error.message}")

    def _write_document(self, doc: Document) -> PersistenceError | None:
        def write():
            result = self.store.update(
                "Document", doc.id, {"formData": json.dumps(doc.form_data), "status": doc.status},
            )
            if not result.success:
                raise PersistenceError(result.error or "update failed", record_id=doc.id)
            return result.data

        outcome = execute_with_retry(write, self.config.retry_policy, self.sleep_fn)
        if outcome.success:
            return None
        if isinstance(outcome.error, PersistenceError):
            return outcome.error
        return PersistenceError(str(outcome.error), record_id=doc.id)


def _failed(message: str) -> CascadeReport:
    logger.error(message)
    return CascadeReport(state=CascadeState.IDLE, error=message)
