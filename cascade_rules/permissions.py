"""Permissions matrix: document type x actor -> none / read / write."""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable

from .ast_nodes import DocumentType, Rule
from .references import DOCUMENT_REF_RE

# ``<Identifier>.<prop>`` spellings that name a document rather than a field
DOCUMENT_PROPERTY_RE = re.compile(r"\b(\w+)\.(?:status|value|hidden|disabled)\b")


class Permission(Enum):
    NONE = "X"
    READ = "R"
    WRITE = "W"

    def next(self) -> Permission:
        """X -> R -> W -> X."""
        return _CYCLE[self]


_CYCLE = {
    Permission.NONE: Permission.READ,
    Permission.READ: Permission.WRITE,
    Permission.WRITE: Permission.NONE,
}


class PermissionsMatrix:
    """Per-workflow access grid, defaulting to Permission.NONE."""

    def __init__(self, actors: Iterable[str] = ()):
        self.actors: list[str] = []
        self._cells: dict[str, dict[str, Permission]] = {}
        for actor in actors:
            self.add_actor(actor)

    @property
    def document_type_ids(self) -> list[str]:
        return list(self._cells)

    def initialize(self, document_type_ids: Iterable[str]) -> None:
        """Add a NONE cell for every missing (document type, actor) pair."""
        for dt_id in document_type_ids:
            row = self._cells.setdefault(dt_id, {})
            for actor in self.actors:
                row.setdefault(actor, Permission.NONE)

    def get(self, document_type_id: str, actor: str) -> Permission:
        return self._cells.get(document_type_id, {}).get(actor, Permission.NONE)

    def set(self, document_type_id: str, actor: str, permission: Permission) -> None:
        self._cells.setdefault(document_type_id, {})[actor] = permission

    def toggle(self, document_type_id: str, actor: str) -> Permission:
        permission = self.get(document_type_id, actor).next()
        self.set(document_type_id, actor, permission)
        return permission

    def add_actor(self, name: str) -> bool:
        """Add an actor (lower-cased); False when blank or already present."""
        actor = name.strip().lower()
        if not actor or actor in self.actors:
            return False
        self.actors.append(actor)
        self.initialize(list(self._cells))
        return True

    def remove_actor(self, name: str) -> bool:
        actor = name.strip().lower()
        if actor not in self.actors:
            return False
        self.actors.remove(actor)
        for row in self._cells.values():
            row.pop(actor, None)
        return True

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {
            dt_id: {actor: perm.value for actor, perm in row.items()}
            for dt_id, row in self._cells.items()
        }

    @classmethod
    def from_dict(cls, data: dict[str, dict[str, str]], actors: Iterable[str] = ()) -> PermissionsMatrix:
        matrix = cls(actors)
        for dt_id, row in data.items():
            for actor, value in row.items():
                matrix.set(dt_id, actor, Permission(value))
        matrix.initialize(list(data))
        return matrix


def document_types_from_rules(
    rules: Iterable[Rule],
    document_types: Iterable[DocumentType] = (),
) -> list[str]:
    """Document type ids referenced by a rule set, in order of first mention.

    ``document.<Id>`` always counts; unknown identifiers get a normalised
    id so they still get a row. ``<Id>.status`` (or ``value``, ``hidden``,
    ``disabled``) counts when ``<Id>`` is a known identifier.
    """
    catalog: dict[str, DocumentType] = {}
    for dt in document_types:
        if dt.identifier:
            catalog.setdefault(dt.identifier, dt)

    ids: list[str] = []
    for rule in rules:
        for text in (rule.validation_text or "", rule.action_text or ""):
            mentions = []
            for m in DOCUMENT_REF_RE.finditer(text):
                dt = catalog.get(m.group(1))
                mentions.append((m.start(1), dt.id if dt else _normalise(m.group(1))))
            for m in DOCUMENT_PROPERTY_RE.finditer(text):
                if m.group(1) in catalog:
                    mentions.append((m.start(1), catalog[m.group(1)].id))
            for _, dt_id in sorted(mentions):
                if dt_id not in ids:
                    ids.append(dt_id)
    return ids


def build_matrix(
    rules: Iterable[Rule],
    actors: Iterable[str],
    document_types: Iterable[DocumentType] = (),
    existing: PermissionsMatrix | None = None,
) -> PermissionsMatrix:
    """Matrix covering the document types the given rules mention."""
    matrix = existing or PermissionsMatrix()
    for actor in actors:
        matrix.add_actor(actor)
    matrix.initialize(document_types_from_rules(rules, document_types))
    return matrix


def _normalise(identifier: str) -> str:
    return re.sub(r"[^a-z0-9]", "", identifier.lower())
