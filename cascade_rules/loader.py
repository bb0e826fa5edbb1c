"""Load workflows, document types and documents from YAML or JSON text.

A definition file looks like::

    workflow:
      id: wf-permits
      name: Permits
      actors: [applicant, reviewer]
      rules:
        - validation: document.Permit.status == "completed"
          action: Inspection.status = "queued"
    documentTypes:
      - id: dt-1
        name: Building Permit
        identifier: Permit
    documents:
      - id: doc-1
        documentType: dt-1
        formData: {status: waiting}

JSON is a subset of YAML, so the same loader reads both.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import yaml

from .ast_nodes import Document, DocumentType, Workflow
from .errors import ParseError
from .parser import parse_workflow_rules


@dataclass
class Definition:
    """Everything a definition file describes."""
    workflow: Workflow | None = None
    document_types: list[DocumentType] = field(default_factory=list)
    documents: list[Document] = field(default_factory=list)
    records: dict[str, list[dict[str, Any]]] = field(default_factory=dict)


def load_yaml(source: str) -> dict[str, Any]:
    """Parse YAML/JSON source into a mapping."""
    try:
        data = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise ParseError(f"Invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError("Root must be a YAML mapping")
    return data


def load_definition(source: str, project_id: str = "project-1") -> Definition:
    """Load a definition file, also returning store-shaped records."""
    data = load_yaml(source)
    definition = Definition()

    type_records = [_document_type_record(d, i) for i, d in enumerate(data.get("documentTypes") or [])]
    definition.document_types = [DocumentType.from_record(r) for r in type_records]

    workflow_record = None
    if data.get("workflow") is not None:
        workflow_record = workflow_record_from(data["workflow"])
        definition.workflow = workflow_from_record(workflow_record)

    doc_records = []
    for i, item in enumerate(data.get("documents") or []):
        if not isinstance(item, dict):
            raise ParseError(f"Document {i + 1} must be a mapping")
        record = dict(item)
        record.setdefault("id", f"doc-{i + 1}")
        record.setdefault("projectId", project_id)
        form_data = record.get("formData") or {}
        if not isinstance(form_data, str):
            record["formData"] = json.dumps(form_data)
        doc_records.append(record)
    definition.documents = [Document.from_record(r) for r in doc_records]

    definition.records = {"DocumentType": type_records, "Document": doc_records}
    if workflow_record is not None:
        definition.records["Workflow"] = [workflow_record]
        definition.records["Project"] = [{"id": project_id, "workflowId": workflow_record["id"]}]
    return definition


def workflow_record_from(data: Any) -> dict[str, Any]:
    """Normalise a workflow mapping to the stored shape (rules as JSON strings)."""
    if not isinstance(data, dict):
        raise ParseError("'workflow' must be a mapping")
    rules = data.get("rules") or []
    if not isinstance(rules, list):
        raise ParseError("'workflow.rules' must be a list")
    stored = []
    for i, rule in enumerate(rules):
        if isinstance(rule, dict):
            rule = {**rule, "id": rule.get("id") or f"rule-{i + 1}"}
            stored.append(json.dumps(rule))
        else:
            stored.append(rule)
    return {
        "id": data.get("id") or "workflow-1",
        "name": data.get("name") or "",
        "rules": stored,
        "actors": list(data.get("actors") or []),
    }


def workflow_from_record(record: dict[str, Any]) -> Workflow:
    """Build a Workflow from a stored record, parsing its rules fresh."""
    return Workflow(
        id=record["id"],
        name=record.get("name") or "",
        rules=tuple(parse_workflow_rules(record.get("rules"))),
        actors=tuple(a.lower() for a in record.get("actors") or ()),
    )


def _document_type_record(item: Any, index: int) -> dict[str, Any]:
    if not isinstance(item, dict):
        raise ParseError(f"Document type {index + 1} must be a mapping")
    record = dict(item)
    record.setdefault("id", f"dt-{index + 1}")
    definition = record.get("definition")
    if definition is not None and not isinstance(definition, str):
        record["definition"] = json.dumps(definition)
    return record
