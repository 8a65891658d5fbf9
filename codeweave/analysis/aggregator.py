"""Analysis Aggregator - fans out to analyzer ports and merges their results.

Pipeline for one request, keyed by the source fingerprint plus any coverage
and module details supplied by the caller:
1. Cache lookup (a valid hit is returned unchanged)
2. Join or start the in-flight computation for the key
3. Run every port concurrently; a failing or slow port degrades only its
   own section
4. Merge sections by name and derive the quality indicators
5. Store the result in the cache
"""

import asyncio
import json
from collections.abc import Iterable, Mapping

import structlog

from codeweave.analysis.accessibility import MarkupAccessibilityAnalyzer
from codeweave.analysis.cache import AnalysisCache, InFlightRegistry
from codeweave.analysis.code_analyzer import SourceCodeAnalyzer
from codeweave.analysis.dependency_graph import ImportGraphBuilder
from codeweave.analysis.parsing import SourceParser
from codeweave.analysis.patterns import PatternContextAnalyzer
from codeweave.analysis.performance import StaticPerformanceAnalyzer
from codeweave.analysis.ports import AnalyzerPort
from codeweave.analysis.security import PatternSecurityScanner
from codeweave.core.config import QualityWeights, Settings, get_settings
from codeweave.core.errors import AnalyzerFailure
from codeweave.models import (
    AccessibilityReport,
    AnalysisResult,
    AnalysisSection,
    AnalyzerDiagnostic,
    CodeAnalysisReport,
    ContextAnalysisResult,
    DependencyGraphResult,
    GenerationState,
    ModuleAnalysis,
    ModuleDefinition,
    ModuleQualityMetrics,
    ModuleStatus,
    PerformanceMetricsResult,
    QualityIndicators,
    SecurityReport,
    SemanticAnalysisResult,
    SourceBundle,
    fingerprint_files,
    fingerprint_source,
)

logger = structlog.get_logger()

SECTION_TYPES = {
    AnalysisSection.SEMANTIC: CodeAnalysisReport,
    AnalysisSection.CONTEXT: ContextAnalysisResult,
    AnalysisSection.DEPENDENCY_GRAPH: DependencyGraphResult,
    AnalysisSection.PERFORMANCE: PerformanceMetricsResult,
    AnalysisSection.SECURITY: SecurityReport,
    AnalysisSection.ACCESSIBILITY: AccessibilityReport,
}

SourceInput = str | Mapping[str, str] | SourceBundle


def default_ports(settings: Settings | None = None) -> list[AnalyzerPort]:
    """The built-in analyzer for every section, sharing one parser."""
    parser = SourceParser()
    return [
        SourceCodeAnalyzer(parser),
        PatternContextAnalyzer(parser),
        ImportGraphBuilder(parser, settings),
        StaticPerformanceAnalyzer(parser),
        PatternSecurityScanner(),
        MarkupAccessibilityAnalyzer(),
    ]


def quality_score(indicators: QualityIndicators, weights: QualityWeights) -> float:
    """Weighted mean of the five quality sub-scores."""
    weighted = (
        weights.maintainability * indicators.maintainability
        + weights.reliability * indicators.reliability
        + weights.security * indicators.security
        + weights.coverage * indicators.coverage
        + weights.documentation * indicators.documentation
    )
    return round(weighted / weights.total, 4)


class AnalysisAggregator:
    """Runs all analyzer ports for a source and merges one ``AnalysisResult``."""

    def __init__(
        self,
        ports: Iterable[AnalyzerPort] | None = None,
        cache: AnalysisCache | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        ports = list(ports) if ports is not None else default_ports(self.settings)

        self.ports: dict[AnalysisSection, AnalyzerPort] = {}
        for port in ports:
            if port.section in self.ports:
                raise ValueError(f"Duplicate analyzer for section {port.section.value}")
            self.ports[port.section] = port

        self.cache = cache or AnalysisCache(settings=self.settings)
        self.in_flight = InFlightRegistry()
        self.timeout = self.settings.analyzer_timeout_seconds
        self.weights = self.settings.quality_weights
        self._logger = logger.bind(component="AnalysisAggregator")

    async def analyze(
        self,
        fingerprint: str,
        source: SourceInput,
        *,
        coverage: float | None = None,
        module: ModuleDefinition | None = None,
        module_status: ModuleStatus = ModuleStatus.COMPLETED,
    ) -> AnalysisResult:
        """Analyze a source, reusing cached or in-flight work for the fingerprint.

        Args:
            fingerprint: Content fingerprint of the source
            source: Source text, path -> text mapping, or SourceBundle
            coverage: Test coverage in 0..1 supplied by the caller
            module: Module the source belongs to, adds ``moduleAnalysis``
            module_status: Status reported in ``moduleAnalysis``

        Returns:
            The merged, possibly degraded, AnalysisResult
        """
        key = self.cache_key(fingerprint, coverage=coverage, module=module, module_status=module_status)
        cached = self.cache.get(key)
        if cached is not None:
            await self._logger.adebug("Cache hit", fingerprint=fingerprint, key=key)
            return cached

        bundle = self._as_bundle(source)
        return await self.in_flight.join(
            key,
            lambda: self._compute(key, fingerprint, bundle, coverage, module, module_status),
        )

    def cache_key(
        self,
        fingerprint: str,
        *,
        coverage: float | None = None,
        module: ModuleDefinition | None = None,
        module_status: ModuleStatus = ModuleStatus.COMPLETED,
    ) -> str:
        """Cache key of an analysis request.

        Coverage and module details change the merged result, so they are part
        of the key. A plain source analysis is keyed by its fingerprint alone.
        """
        if coverage is None and module is None:
            return fingerprint
        inputs = json.dumps(
            {
                "coverage": coverage,
                "module": module.to_record() if module is not None else None,
                "status": module_status.value if module is not None else None,
            },
            sort_keys=True,
        )
        return f"{fingerprint}:{fingerprint_source(inputs)}"

    async def analyze_files(
        self,
        files: Mapping[str, str],
        *,
        coverage: float | None = None,
        module: ModuleDefinition | None = None,
    ) -> AnalysisResult:
        """Analyze a set of files under their content fingerprint."""
        return await self.analyze(
            fingerprint_files(files),
            SourceBundle(files=dict(files)),
            coverage=coverage,
            module=module,
        )

    async def analyze_generation(self, state: GenerationState) -> AnalysisResult:
        """Analyze everything a generation run produced."""
        coverage_values = list(state.project_context.test_coverage.values())
        coverage = sum(coverage_values) / len(coverage_values) if coverage_values else None
        return await self.analyze_files(state.generated_files, coverage=coverage)

    async def analyze_modules(self, state: GenerationState) -> dict[str, AnalysisResult]:
        """Analyze each completed module's declared files separately."""
        jobs = {}
        for module_id in sorted(state.completed_modules):
            module = state.module_definitions[module_id]
            files = {
                f.path: state.generated_files[f.path]
                for f in module.files
                if f.path in state.generated_files
            }
            if not files:
                continue
            jobs[module_id] = self.analyze_files(
                files,
                coverage=state.project_context.test_coverage.get(module_id),
                module=module,
            )

        results = await asyncio.gather(*jobs.values())
        return dict(zip(jobs.keys(), results))

    async def _compute(
        self,
        key: str,
        fingerprint: str,
        source: SourceBundle,
        coverage: float | None,
        module: ModuleDefinition | None,
        module_status: ModuleStatus,
    ) -> AnalysisResult:
        started = self.cache.clock()

        await self._logger.ainfo(
            "Analyzing source",
            fingerprint=fingerprint,
            units=len(source.files),
            analyzers=len(self.ports),
        )

        outcomes = await asyncio.gather(
            *(self._run_port(port, source) for port in self.ports.values())
        )
        sections = {section: value for section, value, _ in outcomes if value is not None}
        diagnostics = sorted(
            (diagnostic for _, _, diagnostic in outcomes if diagnostic is not None),
            key=lambda d: list(AnalysisSection).index(d.section),
        )

        result = self.merge(
            fingerprint,
            sections,
            diagnostics,
            coverage=coverage,
            module=module,
            module_status=module_status,
        )
        self.cache.put(key, result, computed_at=started)

        await self._logger.ainfo(
            "Analysis complete",
            fingerprint=fingerprint,
            quality=result.semantic_analysis.quality_indicators.quality,
            degraded=result.degraded,
        )
        return result

    async def _run_port(self, port: AnalyzerPort, source: SourceBundle):
        """Run one port, turning any failure into a diagnostic."""
        try:
            value = await asyncio.wait_for(port.analyze(source), timeout=self.timeout)
            expected = SECTION_TYPES[port.section]
            if not isinstance(value, expected):
                raise TypeError(
                    f"returned {type(value).__name__}, expected {expected.__name__}"
                )
            return port.section, value, None
        except asyncio.TimeoutError as e:
            failure = AnalyzerFailure(port.section.value, port.name, e)
            message = f"timed out after {self.timeout}s"
        except Exception as e:
            failure = AnalyzerFailure(port.section.value, port.name, e)
            message = str(e) or type(e).__name__

        await self._logger.awarning(
            "Analyzer failed",
            section=failure.section,
            analyzer=failure.analyzer,
            error=message,
        )
        return port.section, None, AnalyzerDiagnostic(
            section=port.section,
            analyzer=port.name,
            error_type=type(failure.cause).__name__,
            message=message,
        )

    def merge(
        self,
        fingerprint: str,
        sections: Mapping[AnalysisSection, object],
        diagnostics: list[AnalyzerDiagnostic],
        *,
        coverage: float | None = None,
        module: ModuleDefinition | None = None,
        module_status: ModuleStatus = ModuleStatus.COMPLETED,
    ) -> AnalysisResult:
        """Merge section results into an ``AnalysisResult``.

        A section whose analyzer failed contributes 0 to the quality
        sub-scores derived from it.
        """
        failed = {d.section for d in diagnostics}
        code = sections.get(AnalysisSection.SEMANTIC) or CodeAnalysisReport()
        security = sections.get(AnalysisSection.SECURITY) or SecurityReport()
        performance = sections.get(AnalysisSection.PERFORMANCE) or PerformanceMetricsResult()

        code_ok = AnalysisSection.SEMANTIC not in failed
        indicators = QualityIndicators(
            maintainability=code.complexity_metrics.maintainability_index / 100 if code_ok else 0.0,
            reliability=code.reliability if code_ok else 0.0,
            security=1.0 - security.risk_score if AnalysisSection.SECURITY not in failed else 0.0,
            coverage=min(max(coverage or 0.0, 0.0), 1.0),
            documentation=code.documentation if code_ok else 0.0,
        )
        indicators.quality = quality_score(indicators, self.weights)

        semantic = SemanticAnalysisResult(
            code_structure=code.code_structure,
            complexity_metrics=code.complexity_metrics,
            quality_indicators=indicators,
        )

        accessibility = None
        if AnalysisSection.ACCESSIBILITY in self.ports:
            accessibility = sections.get(AnalysisSection.ACCESSIBILITY) or AccessibilityReport()

        module_analysis = None
        if module is not None:
            module_analysis = ModuleAnalysis(
                id=module.id,
                name=module.name,
                description=module.description,
                dependencies=sorted(module.dependencies),
                complexity=float(code.complexity_metrics.cyclomatic_complexity),
                status=module_status,
                quality_metrics=ModuleQualityMetrics(
                    test_coverage=indicators.coverage,
                    code_quality=indicators.quality,
                    performance=round(1.0 - performance.optimization_potential, 4),
                ),
            )

        return AnalysisResult(
            fingerprint=fingerprint,
            semantic_analysis=semantic,
            context_analysis=sections.get(AnalysisSection.CONTEXT) or ContextAnalysisResult(),
            dependency_graph=sections.get(AnalysisSection.DEPENDENCY_GRAPH) or DependencyGraphResult(),
            performance_metrics=performance,
            security_report=security,
            module_analysis=module_analysis,
            accessibility_report=accessibility,
            diagnostics=diagnostics,
        )

    def _as_bundle(self, source: SourceInput) -> SourceBundle:
        if isinstance(source, SourceBundle):
            return source
        if isinstance(source, str):
            return SourceBundle.from_text(source)
        return SourceBundle(files=dict(source))
