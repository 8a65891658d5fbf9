"""Code Analyzer - structure, complexity and documentation of a source bundle.

Provides:
- Classes, functions, imports and exports per unit
- Cyclomatic and cognitive complexity
- Maintainability index (Halstead volume, cyclomatic complexity, LOC)
- Fan-in/fan-out and instability
- Documentation ratio and a reliability estimate
"""

import asyncio
import math

import structlog

from codeweave.analysis.parsing import ParsedUnit, SourceParser
from codeweave.analysis.ports import CodeAnalyzer
from codeweave.models import (
    CodeAnalysisReport,
    CodeStructure,
    ComplexityMetrics,
    ExportInfo,
    FanMetrics,
    ImportInfo,
    SourceBundle,
)

logger = structlog.get_logger()

# Reliability penalties
PARSE_ERROR_PENALTY = 0.5
BROAD_EXCEPT_PENALTY = 0.1


def maintainability_index(volume: float, cyclomatic: int, loc: int) -> float:
    """Classic maintainability index clamped to 0..100."""
    mi = (
        171
        - 5.2 * math.log(max(volume, 1))
        - 0.23 * cyclomatic
        - 16.2 * math.log(max(loc, 1))
    )
    return round(max(0.0, min(100.0, mi)), 2)


class SourceCodeAnalyzer(CodeAnalyzer):
    """Default code analyzer over tree-sitter (Python) and regex (JS/TS) parses."""

    def __init__(self, parser: SourceParser | None = None):
        self.parser = parser or SourceParser()
        self._logger = logger.bind(component="SourceCodeAnalyzer")

    async def analyze(self, source: SourceBundle) -> CodeAnalysisReport:
        report = await asyncio.to_thread(self.analyze_bundle, source)

        await self._logger.adebug(
            "Code analyzed",
            files=len(source.files),
            cyclomatic=report.complexity_metrics.cyclomatic_complexity,
            maintainability=report.complexity_metrics.maintainability_index,
        )
        return report

    def analyze_bundle(self, source: SourceBundle) -> CodeAnalysisReport:
        return self.analyze_units(self.parser.parse_bundle(source))

    def analyze_units(self, units: list[ParsedUnit]) -> CodeAnalysisReport:
        structure = CodeStructure()
        for unit in units:
            structure.classes.extend(unit.classes)
            structure.functions.extend(f.name for f in unit.functions)
            structure.imports.extend(
                ImportInfo(source=self._import_source(ref.module, ref.level), specifiers=ref.names)
                for ref in unit.imports
            )
            structure.exports.extend(ExportInfo(name=name, type=kind) for name, kind in unit.exports)

        cyclomatic = 1 + sum(unit.decision_points for unit in units)
        volume = sum(unit.halstead_volume for unit in units)
        loc = sum(unit.loc for unit in units)

        complexity = ComplexityMetrics(
            cyclomatic_complexity=cyclomatic,
            maintainability_index=maintainability_index(volume, cyclomatic, loc) if loc else 100.0,
            cognitive_complexity=sum(unit.cognitive_complexity for unit in units),
            dependency_metrics=self._fan_metrics(structure),
        )

        return CodeAnalysisReport(
            code_structure=structure,
            complexity_metrics=complexity,
            documentation=self._documentation(units),
            reliability=self._reliability(units),
        )

    def _import_source(self, module: str, level: int) -> str:
        return "." * level + module

    def _fan_metrics(self, structure: CodeStructure) -> FanMetrics:
        fan_out = len({imp.source for imp in structure.imports})
        fan_in = len(structure.exports)
        total = fan_in + fan_out
        return FanMetrics(
            fan_in=fan_in,
            fan_out=fan_out,
            instability=round(fan_out / total, 4) if total else 0.0,
        )

    def _documentation(self, units: list[ParsedUnit]) -> float:
        """Share of documented classes and functions."""
        documentable = sum(unit.documentable for unit in units)
        if documentable == 0:
            documented_modules = sum(1 for unit in units if unit.module_documented)
            return 1.0 if units and documented_modules == len(units) else 0.0
        return round(sum(unit.documented for unit in units) / documentable, 4)

    def _reliability(self, units: list[ParsedUnit]) -> float:
        if not units:
            return 1.0
        scores = []
        for unit in units:
            score = 1.0
            if unit.has_errors:
                score -= PARSE_ERROR_PENALTY
            score -= BROAD_EXCEPT_PENALTY * unit.broad_excepts
            scores.append(max(0.0, score))
        return round(sum(scores) / len(scores), 4)
