"""Dependency graph: rule set -> layered DAG layout, plus Mermaid export."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .ast_nodes import DocumentType, Rule
from .references import extract_references


class NodeKind(Enum):
    START = "start"
    MIDDLE = "middle"
    END = "end"


@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str
    kind: NodeKind
    column: int
    row: int
    invalid: bool = False


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    rule_index: int

    @property
    def id(self) -> str:
        return f"connection-{self.rule_index}-{self.source}-{self.target}"


@dataclass(frozen=True)
class RuleConnection:
    """Names read by a rule's validation and written by its action."""
    sources: tuple[str, ...]
    targets: tuple[str, ...]
    rule_index: int


@dataclass
class DependencyGraph:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    invalid_references: list[str] = field(default_factory=list)

    def node(self, node_id: str) -> GraphNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def columns(self) -> list[list[str]]:
        """Node ids per column, ordered by row."""
        if not self.nodes:
            return []
        width = max(n.column for n in self.nodes) + 1
        cols: list[list[GraphNode]] = [[] for _ in range(width)]
        for n in self.nodes:
            cols[n.column].append(n)
        return [[n.id for n in sorted(col, key=lambda n: n.row)] for col in cols]

    @property
    def is_empty(self) -> bool:
        return not self.nodes


def build_graph(
    rules: Iterable[Rule],
    document_types: Iterable[DocumentType] = (),
) -> DependencyGraph:
    """Build the visualization graph for a rule set.

    Total over any input: nodes caught in a cycle are placed in the column
    after the last one Kahn's algorithm assigned.
    """
    document_types = list(document_types)
    names: list[str] = []
    labels: dict[str, str] = {}
    invalid: list[str] = []
    connections: list[RuleConnection] = []

    for index, rule in enumerate(rules):
        validation_refs = extract_references(rule.validation_text, document_types)
        action_refs = extract_references(rule.action_text, document_types)

        for refs in (validation_refs, action_refs):
            for ref in refs.documents:
                labels.setdefault(ref.identifier, ref.label)
                if ref.invalid and ref.identifier not in invalid:
                    invalid.append(ref.identifier)
            for name in refs.node_names():
                if name not in names:
                    names.append(name)

        sources = validation_refs.node_names()
        targets = action_refs.node_names()
        if sources and targets:
            connections.append(RuleConnection(tuple(sources), tuple(targets), index))

    if not names:
        return DependencyGraph()

    columns = _layout_columns(names, connections)

    edges: list[GraphEdge] = []
    for conn in connections:
        for source in conn.sources:
            for target in conn.targets:
                if source != target:
                    edges.append(GraphEdge(source, target, conn.rule_index))

    has_out = {e.source for e in edges}
    has_in = {e.target for e in edges}

    nodes: list[GraphNode] = []
    rows: dict[int, int] = {}
    for name in names:
        col = columns[name]
        row = rows.get(col, 0)
        rows[col] = row + 1
        nodes.append(GraphNode(
            id=name,
            label=labels.get(name, name),
            kind=_node_kind(name in has_in, name in has_out),
            column=col,
            row=row,
            invalid=name in invalid,
        ))

    return DependencyGraph(nodes=nodes, edges=edges, invalid_references=invalid)


def _layout_columns(names: list[str], connections: list[RuleConnection]) -> dict[str, int]:
    """Kahn's algorithm, one column per processed level."""
    adjacency: dict[str, list[str]] = {name: [] for name in names}
    in_degree: dict[str, int] = {name: 0 for name in names}
    for conn in connections:
        for source in conn.sources:
            for target in conn.targets:
                if source != target and target not in adjacency[source]:
                    adjacency[source].append(target)
                    in_degree[target] += 1

    node_columns: dict[str, int] = {}
    queue = [name for name in names if in_degree[name] == 0]
    for name in queue:
        node_columns[name] = 0

    current = 0
    while queue:
        level, queue = queue, []
        for node in level:
            for neighbor in adjacency[node]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)
                    node_columns[neighbor] = max(current + 1, node_columns.get(neighbor, 0))
        current += 1

    # Cycle members never reach in-degree 0
    for name in names:
        if name not in node_columns:
            node_columns[name] = current

    # Renumber so no column is left empty
    used = sorted(set(node_columns.values()))
    compact = {col: i for i, col in enumerate(used)}
    return {name: compact[col] for name, col in node_columns.items()}


def _node_kind(has_incoming: bool, has_outgoing: bool) -> NodeKind:
    if has_outgoing and not has_incoming:
        return NodeKind.START
    if has_incoming and not has_outgoing:
        return NodeKind.END
    return NodeKind.MIDDLE


# ---------------------------------------------------------------------------
# Mermaid
# ---------------------------------------------------------------------------

_KIND_STYLES = {
    NodeKind.START:  "fill:#065f46,stroke:#10b981,color:#e2e8f0",
    NodeKind.MIDDLE: "fill:#1e40af,stroke:#3b82f6,color:#e2e8f0",
    NodeKind.END:    "fill:#7c3aed,stroke:#8b5cf6,color:#e2e8f0",
}

_INVALID_STYLE = "fill:#7f1d1d,stroke:#ef4444,color:#fee2e2,stroke-dasharray:4"


def generate_mermaid(graph: DependencyGraph) -> str:
    """Render a DependencyGraph as a left-to-right Mermaid flowchart."""
    lines: list[str] = ["graph LR"]

    for node in graph.nodes:
        lines.append(f"    {node.id}{_node_shape(node)}")

    if graph.edges:
        lines.append("")
        for edge in graph.edges:
            lines.append(f"    {edge.source} -->|rule {edge.rule_index + 1}| {edge.target}")

    if graph.nodes:
        lines.append("")
        for node in graph.nodes:
            style = _INVALID_STYLE if node.invalid else _KIND_STYLES[node.kind]
            lines.append(f"    style {node.id} {style}")

    return "\n".join(lines)


def _node_shape(node: GraphNode) -> str:
    label = node.label.replace('"', "'")
    if node.kind is NodeKind.START:
        return f'(["{label}"])'  # stadium
    if node.kind is NodeKind.END:
        return f'[["{label}"]]'  # subroutine
    return f'["{label}"]'
