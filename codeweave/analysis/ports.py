"""Analyzer ports consumed by the analysis aggregator.

Each port is a capability with a fixed result schema and a fixed report
section. Implementations may fail or hang; the aggregator isolates them.
CPU-bound implementations run their work in a worker thread so the event
loop stays free to apply timeouts and run other ports.
"""

from abc import ABC, abstractmethod
from typing import ClassVar

from codeweave.models import (
    AccessibilityReport,
    AnalysisSection,
    CodeAnalysisReport,
    ContextAnalysisResult,
    DependencyGraphResult,
    PerformanceMetricsResult,
    SecurityReport,
    SourceBundle,
)


class AnalyzerPort(ABC):
    """Base class for all analyzer ports."""

    section: ClassVar[AnalysisSection]

    @property
    def name(self) -> str:
        """Analyzer name used in diagnostics and logs."""
        return type(self).__name__

    @abstractmethod
    async def analyze(self, source: SourceBundle):
        """Analyze a source bundle and return this port's section result."""
        pass


class CodeAnalyzer(AnalyzerPort):
    """Structure, complexity and documentation of source code."""

    section = AnalysisSection.SEMANTIC

    @abstractmethod
    async def analyze(self, source: SourceBundle) -> CodeAnalysisReport:
        pass


class ContextAnalyzer(AnalyzerPort):
    """Design patterns, optimization suggestions and contextual dependencies."""

    section = AnalysisSection.CONTEXT

    @abstractmethod
    async def analyze(self, source: SourceBundle) -> ContextAnalysisResult:
        pass


class DependencyGraphBuilder(AnalyzerPort):
    """Module dependency graph with cycles and graph metrics."""

    section = AnalysisSection.DEPENDENCY_GRAPH

    @abstractmethod
    async def analyze(self, source: SourceBundle) -> DependencyGraphResult:
        pass


class PerformanceAnalyzer(AnalyzerPort):
    """Estimated complexity classes and bottlenecks."""

    section = AnalysisSection.PERFORMANCE

    @abstractmethod
    async def analyze(self, source: SourceBundle) -> PerformanceMetricsResult:
        pass


class SecurityScanner(AnalyzerPort):
    """Vulnerabilities, risk score and recommendations."""

    section = AnalysisSection.SECURITY

    @abstractmethod
    async def analyze(self, source: SourceBundle) -> SecurityReport:
        pass


class AccessibilityAnalyzer(AnalyzerPort):
    """WCAG violations of UI markup."""

    section = AnalysisSection.ACCESSIBILITY

    @abstractmethod
    async def analyze(self, source: SourceBundle) -> AccessibilityReport:
        pass
