"""Project operations: create a project's documents, then cascade its rules.

When a project is created (or its workflow changes) every document type
the workflow mentions gets a document. Each new document starts from the
defaults in its type definition, has the type's own validation rules
applied, and gets an initial status; the workflow cascade runs once all
documents exist.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from .actions import apply, changed_keys
from .ast_nodes import Document, DocumentType, Workflow
from .engine import CascadeEngine, CascadeReport, form_fields, form_key
from .errors import PersistenceError
from .evaluator import evaluate
from .parser import parse_validation_rules_text
from .status import calculate_status
from .store import RecordStore

logger = logging.getLogger(__name__)

BOOLEAN_FIELD_TYPES = frozenset({"boolean", "checkbox"})


@dataclass
class ProjectOperationResult:
    success: bool
    data: Any = None
    error: str | None = None
    created_documents: list[Document] = field(default_factory=list)
    errors: list[PersistenceError] = field(default_factory=list)
    cascade: CascadeReport | None = None


# ---------------------------------------------------------------------------
# Required document types
# ---------------------------------------------------------------------------

def required_document_types(
    workflow: Workflow | None,
    document_types: Iterable[DocumentType],
) -> list[DocumentType]:
    """Active document types mentioned by the workflow's rules.

    A type is also required when another active type's validation rules
    mention it. Catalog order is kept.
    """
    document_types = list(document_types)
    if workflow is None:
        logger.warning("No workflow selected; no documents will be created")
        return []

    texts = [t for rule in workflow.rules for t in (rule.validation_text, rule.action_text)]
    referenced = {dt.id for dt in document_types if _mentioned(dt, texts)}

    for dt in document_types:
        if dt.is_active and dt.validation_rules:
            lines = [line for line in dt.validation_rules.split("\n") if line.strip()]
            referenced.update(other.id for other in document_types if _mentioned(other, lines))

    required = [dt for dt in document_types if dt.is_active and dt.id in referenced]
    if not required:
        logger.warning(
            "No document types found in rules of workflow %r; rules must reference "
            "document types by identifier", workflow.name or workflow.id,
        )
    return required


def _mentioned(document_type: DocumentType, texts: list[str]) -> bool:
    if not document_type.identifier:
        return False
    pattern = re.compile(rf"\b{re.escape(document_type.identifier)}\b")
    return any(pattern.search(text) for text in texts)


# ---------------------------------------------------------------------------
# Initial form data
# ---------------------------------------------------------------------------

def initial_form_data(document_type: DocumentType) -> dict[str, Any]:
    """Default values from the type definition's ``fields`` list."""
    form_data: dict[str, Any] = {}
    if not document_type.definition:
        return form_data
    try:
        definition = json.loads(document_type.definition)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse definition for %s: %s", document_type.name, e)
        return form_data

    fields = definition.get("fields") if isinstance(definition, dict) else None
    if not isinstance(fields, list):
        return form_data
    for f in fields:
        if not isinstance(f, dict) or not f.get("name"):
            continue
        if "defaultValue" in f:
            form_data[f["name"]] = f["defaultValue"]
        elif f.get("type") in BOOLEAN_FIELD_TYPES:
            form_data[f["name"]] = False
        else:
            form_data[f["name"]] = None
    return form_data


def apply_validation_rules(form_data: dict[str, Any], document_type: DocumentType) -> dict[str, Any]:
    """Run a document type's own validation rules over its form data once, in order."""
    rules = parse_validation_rules_text(document_type.validation_rules)
    if not rules:
        return dict(form_data)

    snapshot = form_fields(form_data)
    for rule in rules:
        if not rule.validation:
            continue
        if evaluate(rule.validation, snapshot):
            logger.debug("Applying rule: %s", rule.describe())
            snapshot = apply(rule.action, snapshot)

    updated = dict(form_data)
    for key in changed_keys(form_fields(form_data), snapshot):
        updated[form_key(key)] = snapshot[key]
    return updated


def build_initial_document(project_id: str, document_type: DocumentType) -> dict[str, Any]:
    """Store record for a new document of the given type."""
    form_data = initial_form_data(document_type)
    if document_type.validation_rules and document_type.validation_rules.strip():
        form_data = apply_validation_rules(form_data, document_type)
    form_data["status"] = calculate_status(form_data)
    return {
        "projectId": project_id,
        "documentType": document_type.id,
        "formData": json.dumps(form_data),
    }


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class ProjectOperations:
    """Project create/update with document creation and rule cascade."""

    def __init__(self, store: RecordStore, engine: CascadeEngine | None = None):
        self.store = store
        self.engine = engine or CascadeEngine(store)

    def create_project(
        self,
        project_data: dict[str, Any],
        workflows: Iterable[Workflow],
        document_types: Iterable[DocumentType],
    ) -> ProjectOperationResult:
        result = self.store.create("Project", dict(project_data))
        if not result.success:
            return ProjectOperationResult(False, error=result.error or "Failed to create project")

        project = result.data
        logger.info("Project created: %s", project["id"])
        outcome = self._create_documents(
            project["id"],
            required_document_types(_find(workflows, project.get("workflowId")), document_types),
        )
        outcome.data = project
        if outcome.created_documents:
            outcome.cascade = self._cascade(project["id"])
        return outcome

    def update_project(
        self,
        project_id: str,
        updates: dict[str, Any],
        workflows: Iterable[Workflow],
        document_types: Iterable[DocumentType],
        existing_documents: Iterable[Document],
    ) -> ProjectOperationResult:
        """Update a project, create documents for newly required types, re-run the cascade."""
        result = self.store.update("Project", project_id, dict(updates))
        if not result.success:
            return ProjectOperationResult(False, error=result.error or "Failed to update project")

        existing_types = {doc.document_type_id for doc in existing_documents}
        required = required_document_types(
            _find(workflows, result.data.get("workflowId")), document_types,
        )
        missing = [dt for dt in required if dt.id not in existing_types]
        if not missing:
            logger.info("No missing documents for project %s", project_id)

        outcome = self._create_documents(project_id, missing)
        outcome.data = result.data
        outcome.cascade = self._cascade(project_id)
        return outcome

    def _create_documents(
        self,
        project_id: str,
        document_types: list[DocumentType],
    ) -> ProjectOperationResult:
        """Create documents one at a time; failures are collected, not raised."""
        outcome = ProjectOperationResult(True)
        for dt in document_types:
            result = self.store.create("Document", build_initial_document(project_id, dt))
            if result.success:
                outcome.created_documents.append(Document.from_record(result.data))
                logger.info("Created document for %s", dt.name or dt.id)
            else:
                logger.error("Failed to create document for %s: %s", dt.name or dt.id, result.error)
                outcome.errors.append(PersistenceError(result.error or "create failed", record_id=dt.id))

        if outcome.errors:
            outcome.success = False
            outcome.error = f"Failed to create {len(outcome.errors)} document(s)"
        logger.info(
            "Created %d/%d documents for project %s",
            len(outcome.created_documents), len(document_types), project_id,
        )
        return outcome

    def _cascade(self, project_id: str) -> CascadeReport:
        report = self.engine.run_for_project(project_id)
        if report.error:
            logger.error("Workflow execution failed: %s", report.error)
        elif report.diverged:
            logger.warning("Workflow rules for %s did not settle", project_id)
        return report


def _find(workflows: Iterable[Workflow], workflow_id: str | None) -> Workflow | None:
    if not workflow_id:
        return None
    for wf in workflows:
        if wf.id == workflow_id:
            return wf
    logger.warning("Workflow not found: %s", workflow_id)
    return None
