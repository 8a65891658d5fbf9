"""Analysis pipeline.

- Analyzer Ports: abstract capabilities, one per report section
- Default analyzers: tree-sitter/regex based implementations of every port
- Analysis Cache: fingerprint-keyed results with expiry and coalescing
- Analysis Aggregator: fan-out, isolation, deterministic merge
- Report Generator: text, JSON and Markdown reports
"""

from .ports import (
    AccessibilityAnalyzer,
    AnalyzerPort,
    CodeAnalyzer,
    ContextAnalyzer,
    DependencyGraphBuilder,
    PerformanceAnalyzer,
    SecurityScanner,
)
from .parsing import ImportRef, ParsedUnit, SourceParser, unit_language
from .code_analyzer import SourceCodeAnalyzer, maintainability_index
from .dependency_graph import (
    ImportGraphBuilder,
    SourceDeclaration,
    strongly_connected_components,
)
from .patterns import PatternContextAnalyzer
from .performance import StaticPerformanceAnalyzer
from .security import PatternSecurityScanner, SecurityRule
from .accessibility import MarkupAccessibilityAnalyzer, MarkupRule
from .cache import AnalysisCache, CacheStats, InFlightRegistry
from .aggregator import AnalysisAggregator, default_ports, quality_score
from .reporter import AnalysisReport, ReportFormat, ReportGenerator, ReportSummary

__all__ = [
    # Ports
    "AccessibilityAnalyzer",
    "AnalyzerPort",
    "CodeAnalyzer",
    "ContextAnalyzer",
    "DependencyGraphBuilder",
    "PerformanceAnalyzer",
    "SecurityScanner",
    # Parsing
    "ImportRef",
    "ParsedUnit",
    "SourceParser",
    "unit_language",
    # Default analyzers
    "ImportGraphBuilder",
    "MarkupAccessibilityAnalyzer",
    "MarkupRule",
    "PatternContextAnalyzer",
    "PatternSecurityScanner",
    "SecurityRule",
    "SourceCodeAnalyzer",
    "SourceDeclaration",
    "StaticPerformanceAnalyzer",
    "maintainability_index",
    "strongly_connected_components",
    # Cache
    "AnalysisCache",
    "CacheStats",
    "InFlightRegistry",
    # Aggregator
    "AnalysisAggregator",
    "default_ports",
    "quality_score",
    # Reporter
    "AnalysisReport",
    "ReportFormat",
    "ReportGenerator",
    "ReportSummary",
]
