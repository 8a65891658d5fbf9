"""Data models for the generation and analysis orchestrator."""

from .base import Record, SortedStrSet
from .modules import (
    FileDefinition,
    FileRequirements,
    FileType,
    ModuleContextHints,
    ModuleDefinition,
)
from .context import (
    GenerationHistoryEntry,
    GenerationState,
    ProjectContext,
    ProjectDependencies,
    ProjectStructure,
)
from .graph import (
    CycleSeverity,
    DependencyCycle,
    DependencyEdge,
    DependencyGraphResult,
    DependencyMetrics,
    DependencyNode,
    DependencyNodeMetrics,
    EdgeType,
)
from .analysis import (
    AccessibilityReport,
    AccessibilityViolation,
    AnalysisResult,
    AnalysisSection,
    AnalyzerDiagnostic,
    Bottleneck,
    CachedAnalysis,
    CodeAnalysisReport,
    CodeStructure,
    ComplexityMetrics,
    ContextAnalysisResult,
    ContextDependency,
    DetectedPattern,
    ExportInfo,
    FanMetrics,
    ImportInfo,
    ModuleAnalysis,
    ModuleQualityMetrics,
    ModuleStatus,
    OptimizationSuggestion,
    PerformanceMetricsResult,
    Priority,
    QualityIndicators,
    SecurityIssue,
    SecurityRecommendation,
    SecurityReport,
    SemanticAnalysisResult,
    ViolationImpact,
    VulnerabilitySeverity,
)
from .source import SourceBundle, fingerprint_files, fingerprint_source

__all__ = [
    # Base
    "Record",
    "SortedStrSet",
    # Modules
    "FileDefinition",
    "FileRequirements",
    "FileType",
    "ModuleContextHints",
    "ModuleDefinition",
    # Context
    "GenerationHistoryEntry",
    "GenerationState",
    "ProjectContext",
    "ProjectDependencies",
    "ProjectStructure",
    # Graph
    "CycleSeverity",
    "DependencyCycle",
    "DependencyEdge",
    "DependencyGraphResult",
    "DependencyMetrics",
    "DependencyNode",
    "DependencyNodeMetrics",
    "EdgeType",
    # Analysis
    "AccessibilityReport",
    "AccessibilityViolation",
    "AnalysisResult",
    "AnalysisSection",
    "AnalyzerDiagnostic",
    "Bottleneck",
    "CachedAnalysis",
    "CodeAnalysisReport",
    "CodeStructure",
    "ComplexityMetrics",
    "ContextAnalysisResult",
    "ContextDependency",
    "DetectedPattern",
    "ExportInfo",
    "FanMetrics",
    "ImportInfo",
    "ModuleAnalysis",
    "ModuleQualityMetrics",
    "ModuleStatus",
    "OptimizationSuggestion",
    "PerformanceMetricsResult",
    "Priority",
    "QualityIndicators",
    "SecurityIssue",
    "SecurityRecommendation",
    "SecurityReport",
    "SemanticAnalysisResult",
    "ViolationImpact",
    "VulnerabilitySeverity",
    # Source
    "SourceBundle",
    "fingerprint_files",
    "fingerprint_source",
]
