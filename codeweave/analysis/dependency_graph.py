"""Dependency Graph Builder - import graph, cycles and graph metrics.

Nodes are source units, edges are imports resolved to other units of the same
bundle. Imports that cannot be resolved (third-party packages, missing files)
only count toward a node's ``importCount``.

Cycles are the strongly connected components of the graph (Tarjan) with more
than one node, plus self-loops. Each is reported as a closed walk that visits
every member of its component.
"""

import asyncio
import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from codeweave.analysis.parsing import ImportRef, ParsedUnit, SourceParser
from codeweave.analysis.ports import DependencyGraphBuilder
from codeweave.core.config import Settings, get_settings
from codeweave.engine.context import path_keys
from codeweave.models import (
    CycleSeverity,
    DependencyCycle,
    DependencyEdge,
    DependencyGraphResult,
    DependencyMetrics,
    DependencyNode,
    DependencyNodeMetrics,
    EdgeType,
    SourceBundle,
)

logger = structlog.get_logger()


@dataclass
class SourceDeclaration:
    """Import declarations of one source unit, already resolved to unit ids."""

    id: str
    imports: list[str] = field(default_factory=list)
    lazy_imports: list[str] = field(default_factory=list)
    type: str = "module"
    import_count: int | None = None
    complexity: float = 0.0


def strongly_connected_components(
    nodes: Iterable[str],
    successors: dict[str, list[str]],
) -> list[list[str]]:
    """Tarjan's algorithm, iterative so deep graphs do not hit the recursion limit."""
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[list[str]] = []
    counter = 0

    for root in nodes:
        if root in index:
            continue

        index[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(successors.get(root, [])))]

        while work:
            node, children = work[-1]
            advanced = False
            for child in children:
                if child not in index:
                    index[child] = lowlink[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(successors.get(child, []))))
                    advanced = True
                    break
                if child in on_stack:
                    lowlink[node] = min(lowlink[node], index[child])
            if advanced:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))

    return components


class ImportGraphBuilder(DependencyGraphBuilder):
    """Default dependency graph builder.

    Cycle severity:
    - low: the members form no cycle once lazy (deferred) imports are dropped
    - high: at least ``cycle_high_min_nodes`` nodes, or nodes in more than
      one architectural boundary
    - medium: otherwise
    """

    def __init__(
        self,
        parser: SourceParser | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.parser = parser or SourceParser()
        self.cycle_high_min_nodes = settings.cycle_high_min_nodes
        self.architecture_boundaries = sorted(
            (b.rstrip("/") + "/" for b in settings.architecture_boundaries),
            key=len,
            reverse=True,
        )
        self._logger = logger.bind(component="ImportGraphBuilder")

    async def analyze(self, source: SourceBundle) -> DependencyGraphResult:
        graph = await asyncio.to_thread(self.analyze_bundle, source)

        if graph.cycles:
            await self._logger.awarning(
                "Dependency cycles detected",
                cycles=[c.nodes for c in graph.cycles],
            )
        return graph

    def analyze_bundle(self, source: SourceBundle) -> DependencyGraphResult:
        return self.build(self.declarations(self.parser.parse_bundle(source)))

    def declarations(self, units: list[ParsedUnit]) -> list[SourceDeclaration]:
        """Resolve each unit's imports to other units of the bundle."""
        owners: dict[str, str] = {}
        for unit in units:
            for key in path_keys(unit.path):
                owners.setdefault(key, unit.path)

        declarations = []
        for unit in units:
            eager: list[str] = []
            lazy: list[str] = []
            for ref in unit.imports:
                target = self._resolve(unit, ref, owners)
                if target is None or target == unit.path:
                    continue
                (lazy if ref.lazy else eager).append(target)

            declarations.append(SourceDeclaration(
                id=unit.path,
                imports=eager,
                lazy_imports=lazy,
                type=unit.language,
                import_count=len(unit.imports),
                complexity=float(1 + unit.decision_points),
            ))
        return declarations

    def build(self, declarations: Iterable[SourceDeclaration]) -> DependencyGraphResult:
        """Build the graph from resolved declarations."""
        declarations = sorted(declarations, key=lambda d: d.id)
        known = {d.id for d in declarations}

        edge_types: dict[tuple[str, str], EdgeType] = {}
        for declaration in declarations:
            for target in declaration.lazy_imports:
                if target in known:
                    edge_types.setdefault((declaration.id, target), EdgeType.LAZY)
            for target in declaration.imports:
                # An eager import of the same target wins over a lazy one
                if target in known:
                    edge_types[(declaration.id, target)] = EdgeType.IMPORT

        nodes = [
            DependencyNode(
                id=d.id,
                type=d.type,
                metrics=DependencyNodeMetrics(
                    import_count=(
                        d.import_count
                        if d.import_count is not None
                        else len(d.imports) + len(d.lazy_imports)
                    ),
                    complexity=d.complexity,
                ),
            )
            for d in declarations
        ]
        edges = [
            DependencyEdge(source=source, target=target, type=edge_type)
            for (source, target), edge_type in sorted(edge_types.items())
        ]

        successors: dict[str, list[str]] = {d.id: [] for d in declarations}
        for edge in edges:
            successors[edge.source].append(edge.target)

        cycles = self._find_cycles([d.id for d in declarations], successors, edge_types)

        return DependencyGraphResult(
            nodes=nodes,
            edges=edges,
            cycles=cycles,
            metrics=self._metrics(nodes, edges),
        )

    def cycle_severity(
        self,
        members: list[str],
        edge_types: dict[tuple[str, str], EdgeType],
    ) -> CycleSeverity:
        """Severity of the cycle group formed by ``members``."""
        if not self._has_eager_cycle(members, edge_types):
            return CycleSeverity.LOW
        if len(members) >= self.cycle_high_min_nodes:
            return CycleSeverity.HIGH
        if len({self._boundary(node_id) for node_id in members}) > 1:
            return CycleSeverity.HIGH
        return CycleSeverity.MEDIUM

    def _find_cycles(
        self,
        node_ids: list[str],
        successors: dict[str, list[str]],
        edge_types: dict[tuple[str, str], EdgeType],
    ) -> list[DependencyCycle]:
        cycles = []
        for component in strongly_connected_components(node_ids, successors):
            if len(component) == 1:
                node_id = component[0]
                if (node_id, node_id) not in edge_types:
                    continue
                walk = [node_id]
            else:
                walk = self._closed_walk(component, successors)
            cycles.append(DependencyCycle(
                nodes=walk,
                severity=self.cycle_severity(component, edge_types),
            ))
        return sorted(cycles, key=lambda c: c.nodes)

    def _closed_walk(self, component: list[str], successors: dict[str, list[str]]) -> list[str]:
        """Closed walk through every member of a strongly connected component.

        Starts at the smallest id and repeatedly takes the shortest path to the
        nearest unvisited member (smallest id on ties), then back to the start.
        A member may appear more than once. The edge from the last node back
        to the first is implied.
        """
        members = set(component)
        start = component[0]
        walk = [start]
        unvisited = members - {start}

        while unvisited:
            path = self._shortest_path(walk[-1], unvisited, members, successors)
            walk.extend(path)
            unvisited -= set(path)

        walk.extend(self._shortest_path(walk[-1], {start}, members, successors)[:-1])
        return walk

    @staticmethod
    def _shortest_path(
        source: str,
        targets: set[str],
        members: set[str],
        successors: dict[str, list[str]],
    ) -> list[str]:
        """Breadth-first path inside the component, excluding ``source``."""
        parents: dict[str, str] = {}
        seen = {source}
        frontier = [source]
        while frontier:
            next_frontier = []
            for node in frontier:
                for target in sorted(successors[node]):
                    if target in members and target not in seen:
                        seen.add(target)
                        parents[target] = node
                        next_frontier.append(target)
            hits = sorted(t for t in parents if t in targets)
            if hits:
                path = [hits[0]]
                while parents[path[-1]] != source:
                    path.append(parents[path[-1]])
                return path[::-1]
            frontier = next_frontier
        return []

    @staticmethod
    def _has_eager_cycle(
        members: list[str],
        edge_types: dict[tuple[str, str], EdgeType],
    ) -> bool:
        """Whether the members still form a cycle once lazy imports are dropped."""
        member_set = set(members)
        eager: dict[str, list[str]] = {node_id: [] for node_id in members}
        for (source, target), edge_type in edge_types.items():
            if edge_type != EdgeType.IMPORT or source not in member_set or target not in member_set:
                continue
            if source == target:
                return True
            eager[source].append(target)
        return any(
            len(component) > 1
            for component in strongly_connected_components(members, eager)
        )

    def _boundary(self, node_id: str) -> str | None:
        for boundary in self.architecture_boundaries:
            if node_id.startswith(boundary):
                return boundary
        return None

    def _metrics(
        self,
        nodes: list[DependencyNode],
        edges: list[DependencyEdge],
    ) -> DependencyMetrics:
        node_count = len(nodes)
        edge_count = len(edges)
        if node_count == 0:
            return DependencyMetrics()

        intra = sum(
            1 for edge in edges
            if posixpath.dirname(edge.source) == posixpath.dirname(edge.target)
        )
        components = self._weak_components([n.id for n in nodes], edges)

        return DependencyMetrics(
            node_count=node_count,
            edge_count=edge_count,
            average_dependencies=round(edge_count / node_count, 4),
            cyclomatic_complexity=edge_count - node_count + 2 * components,
            dependency_cohesion=round(intra / edge_count, 4) if edge_count else 1.0,
        )

    def _weak_components(self, node_ids: list[str], edges: list[DependencyEdge]) -> int:
        parent = {node_id: node_id for node_id in node_ids}

        def find(node_id: str) -> str:
            while parent[node_id] != node_id:
                parent[node_id] = parent[parent[node_id]]
                node_id = parent[node_id]
            return node_id

        for edge in edges:
            root_a, root_b = find(edge.source), find(edge.target)
            if root_a != root_b:
                parent[root_a] = root_b

        return len({find(node_id) for node_id in node_ids})

    def _resolve(self, unit: ParsedUnit, ref: ImportRef, owners: dict[str, str]) -> str | None:
        for candidate in self._candidates(unit, ref):
            for key in path_keys(candidate):
                if key in owners:
                    return owners[key]
        return None

    def _candidates(self, unit: ParsedUnit, ref: ImportRef) -> list[str]:
        base = posixpath.dirname(unit.path)

        if unit.language == "python":
            if ref.level:
                for _ in range(ref.level - 1):
                    base = posixpath.dirname(base)
                module_path = posixpath.join(base, *ref.module.split(".")) if ref.module else base
            elif ref.module:
                module_path = ref.module.replace(".", "/")
            else:
                return []
            # "from pkg import mod" may name a submodule
            submodules = [posixpath.join(module_path, name) for name in ref.names if name != "*"]
            return [posixpath.normpath(p) for p in submodules + [module_path] if p]

        module = ref.module
        if module.startswith(("./", "../")) or module in (".", ".."):
            return [posixpath.normpath(posixpath.join(base, module))]
        if module.startswith(("@/", "~/")):
            return [module[2:], posixpath.join("src", module[2:])]
        if module.startswith("/"):
            return [module.lstrip("/")]
        return []
