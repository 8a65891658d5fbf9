"""Tests for the dependency graph builder."""

import pytest

from codeweave.analysis.dependency_graph import (
    ImportGraphBuilder,
    SourceDeclaration,
    strongly_connected_components,
)
from codeweave.core.config import Settings
from codeweave.models import CycleSeverity, EdgeType, SourceBundle


def decl(node_id, *imports, lazy=()):
    return SourceDeclaration(id=node_id, imports=list(imports), lazy_imports=list(lazy))


@pytest.fixture
def builder(settings):
    """A builder with default cycle policy."""
    return ImportGraphBuilder(settings=settings)


class TestCycles:
    """Tests for cycle detection and severity."""

    def test_three_node_cycle_is_high(self, builder):
        """Test A->B->C->A is one high severity cycle."""
        graph = builder.build([decl("A", "B"), decl("B", "C"), decl("C", "A")])

        assert len(graph.cycles) == 1
        assert graph.cycles[0].nodes == ["A", "B", "C"]
        assert graph.cycles[0].severity == CycleSeverity.HIGH

    def test_two_node_cycle_is_medium(self, builder):
        """Test a two-node cycle within one boundary is medium."""
        graph = builder.build([decl("A", "B"), decl("B", "A")])

        assert graph.cycles[0].nodes == ["A", "B"]
        assert graph.cycles[0].severity == CycleSeverity.MEDIUM

    def test_lazy_edge_lowers_severity(self, builder):
        """Test a cycle closed by a deferred import is low."""
        graph = builder.build([decl("A", "B"), decl("B", "C"), decl("C", lazy=["A"])])

        assert graph.cycles[0].severity == CycleSeverity.LOW

    def test_eager_import_wins_over_lazy(self, builder):
        """Test a target imported both ways is an eager edge."""
        graph = builder.build([decl("A", "B", lazy=["B"]), decl("B", "A")])

        assert [e.type for e in graph.edges] == [EdgeType.IMPORT, EdgeType.IMPORT]
        assert graph.cycles[0].severity == CycleSeverity.MEDIUM

    def test_cycle_across_boundaries_is_high(self):
        """Test a two-node cycle spanning boundaries is high."""
        builder = ImportGraphBuilder(
            settings=Settings(architecture_boundaries=["src/ui", "src/domain"]),
        )

        graph = builder.build([
            decl("src/ui/view.ts", "src/domain/model.ts"),
            decl("src/domain/model.ts", "src/ui/view.ts"),
        ])

        assert graph.cycles[0].severity == CycleSeverity.HIGH

    def test_high_threshold_configurable(self):
        """Test the node count for high severity comes from settings."""
        builder = ImportGraphBuilder(settings=Settings(cycle_high_min_nodes=4))

        graph = builder.build([decl("A", "B"), decl("B", "C"), decl("C", "A")])

        assert graph.cycles[0].severity == CycleSeverity.MEDIUM

    def test_self_loop(self, builder):
        """Test a unit importing itself is a one-node cycle."""
        graph = builder.build([decl("A", "A")])

        assert graph.cycles[0].nodes == ["A"]

    def test_acyclic_graph(self, builder):
        """Test a DAG has no cycles."""
        graph = builder.build([decl("A", "B", "C"), decl("B", "C"), decl("C")])

        assert graph.cycles == []

    def test_cycle_nodes_form_a_closed_path(self, builder):
        """Test consecutive cycle nodes are joined by edges and cover the component."""
        graph = builder.build([
            decl("A", "D"),
            decl("B", "A"),
            decl("C", "B"),
            decl("D", "C", "B"),
        ])
        edges = {(e.source, e.target) for e in graph.edges}

        assert len(graph.cycles) == 1
        cycle = graph.cycles[0].nodes
        assert set(cycle) == {"A", "B", "C", "D"}
        assert cycle[0] == "A"
        for source, target in zip(cycle, cycle[1:] + cycle[:1]):
            assert (source, target) in edges

    def test_nested_cycles_report_whole_component(self, builder):
        """Test cycles sharing a node are one group with every member."""
        graph = builder.build([
            decl("A", "B"),
            decl("B", "A", "C"),
            decl("C", "D"),
            decl("D", "B"),
        ])

        assert len(graph.cycles) == 1
        assert graph.cycles[0].nodes == ["A", "B", "C", "D", "B"]
        assert graph.cycles[0].severity == CycleSeverity.HIGH

    def test_lazy_edge_outside_remaining_cycle(self, builder):
        """Test a lazy edge does not lower a group that still has an eager cycle."""
        graph = builder.build([
            decl("A", "B"),
            decl("B", "A", lazy=["C"]),
            decl("C", "A"),
        ])

        assert set(graph.cycles[0].nodes) == {"A", "B", "C"}
        assert graph.cycles[0].severity == CycleSeverity.HIGH

    def test_every_cycle_through_lazy_edge_is_low(self, builder):
        """Test a group whose cycles all pass a lazy edge is low."""
        graph = builder.build([
            decl("A", "B", "C"),
            decl("B", lazy=["A"]),
            decl("C", lazy=["A"]),
        ])

        assert graph.cycles[0].severity == CycleSeverity.LOW

    def test_separate_cycles(self, builder):
        """Test independent cycles are all reported in order."""
        graph = builder.build([
            decl("A", "B"), decl("B", "A"),
            decl("X", "Y"), decl("Y", "X"),
        ])

        assert [c.nodes for c in graph.cycles] == [["A", "B"], ["X", "Y"]]

    def test_strongly_connected_components(self):
        """Test Tarjan groups mutually reachable nodes."""
        components = strongly_connected_components(
            ["a", "b", "c", "d"],
            {"a": ["b"], "b": ["a", "c"], "c": ["d"], "d": ["c"]},
        )

        assert sorted(components) == [["a", "b"], ["c", "d"]]


class TestGraphStructure:
    """Tests for nodes, edges and metrics."""

    def test_unknown_targets_dropped(self, builder):
        """Test imports of units outside the bundle produce no edges."""
        graph = builder.build([decl("A", "B", "missing"), decl("B")])

        assert [(e.source, e.target) for e in graph.edges] == [("A", "B")]
        assert graph.nodes[0].metrics.import_count == 2

    def test_metrics(self, builder):
        """Test graph metrics for two components."""
        graph = builder.build([
            decl("pkg/a", "pkg/b", "lib/c"),
            decl("pkg/b"),
            decl("lib/c"),
            decl("other/d"),
        ])

        metrics = graph.metrics
        assert metrics.node_count == 4
        assert metrics.edge_count == 2
        assert metrics.average_dependencies == 0.5
        # E - N + 2P with P = 2
        assert metrics.cyclomatic_complexity == 2
        assert metrics.dependency_cohesion == 0.5

    def test_empty_graph(self, builder):
        """Test an empty bundle yields an empty graph."""
        graph = builder.build([])

        assert graph.nodes == []
        assert graph.metrics.node_count == 0
        assert graph.metrics.dependency_cohesion == 1.0

    def test_edges_reference_nodes(self, builder):
        """Test the graph rejects edges to unknown nodes."""
        graph = builder.build([decl("A", "B"), decl("B")])

        with pytest.raises(ValueError):
            type(graph).model_validate({
                "nodes": [n.to_record() for n in graph.nodes],
                "edges": [{"source": "A", "target": "ghost"}],
            })


class TestImportResolution:
    """Tests for resolving source imports to bundle units."""

    @pytest.mark.asyncio
    async def test_python_imports(self, builder):
        """Test absolute, relative and deferred Python imports."""
        source = SourceBundle(files={
            "app/__init__.py": "",
            "app/models.py": "class User:\n    pass\n",
            "app/service.py": (
                "import os\n"
                "from app.models import User\n"
                "from . import repository\n"
            ),
            "app/repository.py": (
                "def load():\n"
                "    from .service import helper\n"
                "    return helper\n"
            ),
        })

        graph = await builder.analyze(source)

        edges = {(e.source, e.target): e.type for e in graph.edges}
        assert edges[("app/service.py", "app/models.py")] == EdgeType.IMPORT
        assert edges[("app/service.py", "app/repository.py")] == EdgeType.IMPORT
        assert edges[("app/repository.py", "app/service.py")] == EdgeType.LAZY
        assert graph.cycles[0].severity == CycleSeverity.LOW

    @pytest.mark.asyncio
    async def test_type_checking_imports_are_lazy(self, builder):
        """Test imports guarded by TYPE_CHECKING are deferred."""
        source = SourceBundle(files={
            "a.py": "from typing import TYPE_CHECKING\nif TYPE_CHECKING:\n    from b import B\n",
            "b.py": "from a import A\n",
        })

        graph = await builder.analyze(source)

        edges = {(e.source, e.target): e.type for e in graph.edges}
        assert edges[("a.py", "b.py")] == EdgeType.LAZY
        assert edges[("b.py", "a.py")] == EdgeType.IMPORT

    @pytest.mark.asyncio
    async def test_script_imports(self, builder):
        """Test relative, aliased and dynamic script imports."""
        source = SourceBundle(files={
            "src/utils/format.ts": "export const formatDate = (d) => d.toISOString();\n",
            "src/hooks/useAuth.ts": "import { formatDate } from '@/utils/format';\nimport axios from 'axios';\n",
            "src/components/Login.tsx": (
                "import { useAuth } from '../hooks/useAuth';\n"
                "const Lazy = () => import('./Heavy');\n"
            ),
            "src/components/Heavy.tsx": "export default function Heavy() { return null; }\n",
        })

        graph = await builder.analyze(source)

        edges = {(e.source, e.target): e.type for e in graph.edges}
        assert edges == {
            ("src/hooks/useAuth.ts", "src/utils/format.ts"): EdgeType.IMPORT,
            ("src/components/Login.tsx", "src/hooks/useAuth.ts"): EdgeType.IMPORT,
            ("src/components/Login.tsx", "src/components/Heavy.tsx"): EdgeType.LAZY,
        }
        assert graph.cycles == []

    @pytest.mark.asyncio
    async def test_three_file_cycle(self, builder):
        """Test a three-file import cycle in sources is high severity."""
        source = SourceBundle(files={
            "a.ts": "import { b } from './b';\nexport const a = 1;\n",
            "b.ts": "import { c } from './c';\nexport const b = 2;\n",
            "c.ts": "import { a } from './a';\nexport const c = 3;\n",
        })

        graph = await builder.analyze(source)

        assert [c.nodes for c in graph.cycles] == [["a.ts", "b.ts", "c.ts"]]
        assert graph.cycles[0].severity == CycleSeverity.HIGH
