"""cascade-rules — workflow rule engine for project documents."""

from .ast_nodes import (
    Assignment,
    Document,
    DocumentType,
    FieldPropertyCompare,
    Rule,
    StatusEquality,
    StatusInSet,
    UnrecognizedClause,
    Workflow,
)
from .actions import apply, apply_text
from .engine import CascadeConfig, CascadeEngine, CascadeReport, CascadeState
from .errors import (
    CascadeRulesError,
    ParseError,
    PersistenceError,
    UnknownReferenceError,
    ValidationError,
)
from .evaluator import evaluate, evaluate_text
from .graph import DependencyGraph, NodeKind, build_graph, generate_mermaid
from .loader import Definition, load_definition
from .logging import CascadeLog, CascadeLogger
from .parser import parse_condition, parse_rule, parse_workflow_rules
from .permissions import Permission, PermissionsMatrix, build_matrix
from .projects import ProjectOperations, ProjectOperationResult, required_document_types
from .references import extract_references, find_invalid_references
from .resilience import RetryPolicy, execute_with_retry
from .status import calculate_status
from .store import MemoryStore, RecordStore, StoreResult
from .validator import Validator

__all__ = [
    "parse_rule",
    "parse_condition",
    "parse_workflow_rules",
    "evaluate",
    "evaluate_text",
    "apply",
    "apply_text",
    "calculate_status",
    "extract_references",
    "find_invalid_references",
    "build_graph",
    "generate_mermaid",
    "DependencyGraph",
    "NodeKind",
    "CascadeEngine",
    "CascadeConfig",
    "CascadeReport",
    "CascadeState",
    "CascadeLog",
    "CascadeLogger",
    "RetryPolicy",
    "execute_with_retry",
    "RecordStore",
    "MemoryStore",
    "StoreResult",
    "ProjectOperations",
    "ProjectOperationResult",
    "required_document_types",
    "Permission",
    "PermissionsMatrix",
    "build_matrix",
    "Validator",
    "Definition",
    "load_definition",
    "Rule",
    "Workflow",
    "Document",
    "DocumentType",
    "Assignment",
    "StatusEquality",
    "StatusInSet",
    "FieldPropertyCompare",
    "UnrecognizedClause",
    "CascadeRulesError",
    "ParseError",
    "ValidationError",
    "UnknownReferenceError",
    "PersistenceError",
]
