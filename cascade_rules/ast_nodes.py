"""AST and record definitions for cascade-rules — frozen (immutable) dataclasses."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)


# Value is the union of all literal/snapshot value types
Value = Union[bool, int, str, None]


# ---------------------------------------------------------------------------
# Condition clauses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatusEquality:
    """document.<doc_type>.status == "value" (or !=)."""
    doc_type: str
    op: str
    value: str

    @property
    def status_key(self) -> str:
        return status_key(self.doc_type)


@dataclass(frozen=True)
class StatusInSet:
    """document.<doc_type>.status in ("a", "b")."""
    doc_type: str
    values: tuple[str, ...]

    @property
    def status_key(self) -> str:
        return status_key(self.doc_type)


@dataclass(frozen=True)
class FieldPropertyCompare:
    """<field>.<property> == literal (or !=)."""
    field: str
    property: str
    op: str
    value: Value

    @property
    def key(self) -> str:
        return f"{self.field}.{self.property}"


@dataclass(frozen=True)
class UnrecognizedClause:
    """Clause text that matched no pattern, or used an unsupported operator."""
    text: str
    reason: str


Clause = Union[StatusEquality, StatusInSet, FieldPropertyCompare, UnrecognizedClause]

# A condition is an ordered list of clauses joined by AND
Condition = tuple[Clause, ...]


# ---------------------------------------------------------------------------
# Actions and rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Assignment:
    """<field>.<property> = literal."""
    field: str
    property: str
    value: Value

    @property
    def key(self) -> str:
        return f"{self.field}.{self.property}"


@dataclass(frozen=True)
class Rule:
    """A validation/action pair, parsed from stored text."""
    id: str
    validation: tuple[Clause, ...]
    action: tuple[Assignment, ...]
    validation_text: str = ""
    action_text: str = ""
    diagnostics: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        """Both halves present; incomplete rules never fire."""
        return bool(self.validation_text.strip()) and bool(self.action_text.strip())

    def describe(self) -> str:
        return f"{self.validation_text} -> {self.action_text}"


@dataclass(frozen=True)
class Workflow:
    """Ordered rule set plus the actor names used by the permissions matrix."""
    id: str
    name: str = ""
    rules: tuple[Rule, ...] = ()
    actors: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# External records (consumed, not owned)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DocumentType:
    id: str
    name: str = ""
    identifier: str | None = None
    definition: str | None = None
    validation_rules: str | None = None
    is_active: bool = True

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> DocumentType:
        return cls(
            id=record["id"],
            name=record.get("name") or "",
            identifier=record.get("identifier") or None,
            definition=record.get("definition"),
            validation_rules=record.get("validationRules"),
            is_active=record.get("isActive") is not False,
        )


@dataclass(frozen=True)
class Document:
    id: str
    project_id: str
    document_type_id: str
    form_data: dict[str, Any] = field(default_factory=dict)
    status: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Document:
        """Build from a store record; form data may be a JSON string."""
        from .status import calculate_status

        form_data = record.get("formData") or {}
        if isinstance(form_data, str):
            try:
                form_data = json.loads(form_data) if form_data.strip() else {}
            except json.JSONDecodeError:
                logger.warning("Unparseable formData on document %s", record.get("id"))
                form_data = {}
        if not isinstance(form_data, dict):
            form_data = {}
        status = record.get("status") or calculate_status(form_data)
        return cls(
            id=record["id"],
            project_id=record.get("projectId", ""),
            document_type_id=record.get("documentTypeId") or record.get("documentType", ""),
            form_data=dict(form_data),
            status=status,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def status_key(doc_type: str) -> str:
    """Snapshot key holding the status of a document type."""
    return f"document.{doc_type}.status"
