"""Reference extractor: document-type and field names mentioned in rule text."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from .ast_nodes import DocumentType

DOCUMENT_REF_RE = re.compile(r"(?:document)\.(\w+)")
FIELD_REF_RE = re.compile(r"(\w+)\.(\w+)")

# Prefixes that introduce a document identifier rather than a field
RESERVED_PREFIXES = frozenset({"document", "process"})


@dataclass(frozen=True)
class DocumentReference:
    identifier: str
    document_type: DocumentType | None = None

    @property
    def invalid(self) -> bool:
        return self.document_type is None

    @property
    def label(self) -> str:
        if self.document_type is not None and self.document_type.name:
            return self.document_type.name
        return self.identifier


@dataclass
class References:
    """Document and field references found in one text, in order of first appearance."""
    documents: list[DocumentReference] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)

    def node_names(self) -> list[str]:
        names: list[str] = []
        for ref in self.documents:
            if ref.identifier not in names:
                names.append(ref.identifier)
        for name in self.fields:
            if name not in names:
                names.append(name)
        return names

    @property
    def invalid_identifiers(self) -> list[str]:
        return [ref.identifier for ref in self.documents if ref.invalid]


def extract_references(
    text: str,
    document_types: Iterable[DocumentType] = (),
) -> References:
    """Scan raw rule text for ``document.<Id>`` and ``<field>.<property>``."""
    catalog = _catalog(document_types)
    refs = References()
    text = text or ""

    seen: set[str] = set()
    for match in DOCUMENT_REF_RE.finditer(text):
        identifier = match.group(1)
        if identifier in seen:
            continue
        seen.add(identifier)
        refs.documents.append(DocumentReference(identifier, catalog.get(identifier)))

    for match in FIELD_REF_RE.finditer(text):
        name = match.group(1)
        if name in RESERVED_PREFIXES or name in refs.fields:
            continue
        refs.fields.append(name)

    return refs


def find_invalid_references(
    text: str,
    document_types: Iterable[DocumentType] = (),
) -> list[str]:
    """Identifiers after ``document.`` that match no known document type."""
    return extract_references(text, document_types).invalid_identifiers


def _catalog(document_types: Iterable[DocumentType]) -> dict[str, DocumentType]:
    catalog: dict[str, DocumentType] = {}
    for dt in document_types:
        if dt.identifier and dt.identifier not in catalog:
            catalog[dt.identifier] = dt
    return catalog
