"""Performance Analyzer - complexity class estimates and bottlenecks.

Time complexity is estimated from the deepest loop nesting of any function
(recursion adds one level). It is a static estimate, not a measurement.
"""

import asyncio

import structlog

from codeweave.analysis.parsing import ParsedUnit, SourceParser
from codeweave.analysis.ports import PerformanceAnalyzer
from codeweave.models import Bottleneck, PerformanceMetricsResult, Priority, SourceBundle

logger = structlog.get_logger()

BLOCKING_CALLS = (
    "time.sleep",
    "requests.get",
    "requests.post",
    "readFileSync",
    "writeFileSync",
    "execSync",
)
GROWTH_CALLS = (".append", ".extend", ".push", ".add", ".update", ".concat")


def complexity_class(depth: int) -> str:
    if depth <= 0:
        return "O(1)"
    if depth == 1:
        return "O(n)"
    return f"O(n^{depth})"


class StaticPerformanceAnalyzer(PerformanceAnalyzer):
    """Default performance analyzer."""

    def __init__(self, parser: SourceParser | None = None):
        self.parser = parser or SourceParser()
        self._logger = logger.bind(component="StaticPerformanceAnalyzer")

    async def analyze(self, source: SourceBundle) -> PerformanceMetricsResult:
        return await asyncio.to_thread(self.analyze_bundle, source)

    def analyze_bundle(self, source: SourceBundle) -> PerformanceMetricsResult:
        units = self.parser.parse_bundle(source)

        depth = max((self._unit_depth(unit) for unit in units), default=0)
        bottlenecks = [b for unit in units for b in self._bottlenecks(unit)]

        return PerformanceMetricsResult(
            time_complexity=complexity_class(depth),
            space_complexity=self._space_complexity(units),
            bottlenecks=bottlenecks,
            optimization_potential=max((b.impact for b in bottlenecks), default=0.0),
        )

    def _unit_depth(self, unit: ParsedUnit) -> int:
        depths = [unit.max_loop_depth]
        depths.extend(f.max_loop_depth + int(f.recursive) for f in unit.functions)
        return max(depths)

    def _space_complexity(self, units: list[ParsedUnit]) -> str:
        for unit in units:
            grows = any(callee.endswith(GROWTH_CALLS) for callee, _ in unit.calls)
            recursive = any(f.recursive for f in unit.functions)
            if (grows and unit.max_loop_depth) or recursive:
                return "O(n)"
        return "O(1)"

    def _bottlenecks(self, unit: ParsedUnit) -> list[Bottleneck]:
        bottlenecks = []
        for function in unit.functions:
            if function.max_loop_depth >= 2:
                bottlenecks.append(Bottleneck(
                    location=f"{unit.path}:{function.line}",
                    type="nested-loop",
                    severity=Priority.HIGH if function.max_loop_depth >= 3 else Priority.MEDIUM,
                    impact=min(1.0, 0.3 * function.max_loop_depth),
                ))
            if function.recursive:
                bottlenecks.append(Bottleneck(
                    location=f"{unit.path}:{function.line}",
                    type="recursion",
                    severity=Priority.LOW,
                    impact=0.2,
                ))

        for callee, line in unit.calls:
            if callee.endswith(BLOCKING_CALLS):
                bottlenecks.append(Bottleneck(
                    location=f"{unit.path}:{line}",
                    type="blocking-call",
                    severity=Priority.MEDIUM,
                    impact=0.4,
                ))
        return bottlenecks
