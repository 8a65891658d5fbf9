"""Dependency graph records produced by the dependency graph builder.

- Node: one per source unit
- Edge: one per resolved import, ``import`` or ``lazy`` (deferred)
- Cycle: an ordered list of node ids closing back on the first
"""

from enum import Enum

from pydantic import Field, model_validator

from .base import Record


class EdgeType(str, Enum):
    """Relation carried by a dependency edge."""

    IMPORT = "import"
    LAZY = "lazy"  # Deferred import, does not bind at load time


class CycleSeverity(str, Enum):
    """Severity of a dependency cycle."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DependencyNodeMetrics(Record):
    import_count: int = 0
    complexity: float = 0.0


class DependencyNode(Record):
    id: str
    type: str
    metrics: DependencyNodeMetrics = Field(default_factory=DependencyNodeMetrics)


class DependencyEdge(Record):
    source: str
    target: str
    type: EdgeType = EdgeType.IMPORT


class DependencyCycle(Record):
    nodes: list[str] = Field(..., min_length=1)
    severity: CycleSeverity


class DependencyMetrics(Record):
    node_count: int = 0
    edge_count: int = 0
    average_dependencies: float = 0.0
    cyclomatic_complexity: int = 0
    dependency_cohesion: float = 1.0


class DependencyGraphResult(Record):
    """Complete dependency graph of a source bundle."""

    nodes: list[DependencyNode] = Field(default_factory=list)
    edges: list[DependencyEdge] = Field(default_factory=list)
    cycles: list[DependencyCycle] = Field(default_factory=list)
    metrics: DependencyMetrics = Field(default_factory=DependencyMetrics)

    @model_validator(mode="after")
    def _check_references(self) -> "DependencyGraphResult":
        known = {node.id for node in self.nodes}
        for edge in self.edges:
            if edge.source not in known or edge.target not in known:
                raise ValueError(
                    f"Edge {edge.source} -> {edge.target} references an unknown node"
                )
        for cycle in self.cycles:
            missing = [node_id for node_id in cycle.nodes if node_id not in known]
            if missing:
                raise ValueError(f"Cycle references unknown nodes: {missing}")
        return self

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]
