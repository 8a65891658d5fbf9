"""Analysis result records.

Every section of ``AnalysisResult`` has a closed schema and a default value,
so a failed analyzer degrades its section to the default instead of leaving
a hole in the report.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import ConfigDict, Field, model_validator

from .base import Record
from .graph import DependencyGraphResult


class AnalysisSection(str, Enum):
    """Fixed section names of an ``AnalysisResult``."""

    SEMANTIC = "semanticAnalysis"
    CONTEXT = "contextAnalysis"
    DEPENDENCY_GRAPH = "dependencyGraph"
    PERFORMANCE = "performanceMetrics"
    SECURITY = "securityReport"
    ACCESSIBILITY = "accessibilityReport"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class VulnerabilitySeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ViolationImpact(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SERIOUS = "serious"
    CRITICAL = "critical"


class ModuleStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Semantic analysis


class ImportInfo(Record):
    source: str
    specifiers: list[str] = Field(default_factory=list)


class ExportInfo(Record):
    name: str
    type: str


class CodeStructure(Record):
    classes: list[str] = Field(default_factory=list)
    functions: list[str] = Field(default_factory=list)
    imports: list[ImportInfo] = Field(default_factory=list)
    exports: list[ExportInfo] = Field(default_factory=list)


class FanMetrics(Record):
    fan_in: int = 0
    fan_out: int = 0
    instability: float = 0.0


class ComplexityMetrics(Record):
    cyclomatic_complexity: int = 1
    maintainability_index: float = Field(default=100.0, ge=0, le=100)
    cognitive_complexity: int = 0
    dependency_metrics: FanMetrics = Field(default_factory=FanMetrics)


class QualityIndicators(Record):
    maintainability: float = Field(default=0.0, ge=0, le=1)
    reliability: float = Field(default=0.0, ge=0, le=1)
    security: float = Field(default=0.0, ge=0, le=1)
    coverage: float = Field(default=0.0, ge=0, le=1)
    documentation: float = Field(default=0.0, ge=0, le=1)
    quality: float = Field(default=0.0, ge=0, le=1)


class SemanticAnalysisResult(Record):
    code_structure: CodeStructure = Field(default_factory=CodeStructure)
    complexity_metrics: ComplexityMetrics = Field(default_factory=ComplexityMetrics)
    quality_indicators: QualityIndicators = Field(default_factory=QualityIndicators)


class CodeAnalysisReport(Record):
    """Partial result of a code analyzer port.

    The aggregator turns it into ``SemanticAnalysisResult`` once the quality
    indicators can be derived from all sections.
    """

    code_structure: CodeStructure = Field(default_factory=CodeStructure)
    complexity_metrics: ComplexityMetrics = Field(default_factory=ComplexityMetrics)
    documentation: float = Field(default=0.0, ge=0, le=1)
    reliability: float = Field(default=1.0, ge=0, le=1)


# Context analysis


class DetectedPattern(Record):
    type: str
    location: str
    confidence: float = Field(ge=0, le=1)


class OptimizationSuggestion(Record):
    type: str
    description: str
    priority: Priority
    impact: float = Field(ge=0, le=1)
    location: str | None = None


class ContextDependency(Record):
    name: str
    type: str
    usage: list[str] = Field(default_factory=list)


class ContextAnalysisResult(Record):
    patterns: list[DetectedPattern] = Field(default_factory=list)
    optimization_suggestions: list[OptimizationSuggestion] = Field(default_factory=list)
    contextual_dependencies: list[ContextDependency] = Field(default_factory=list)


# Performance


class Bottleneck(Record):
    location: str
    type: str
    severity: Priority
    impact: float = Field(ge=0, le=1)


class PerformanceMetricsResult(Record):
    time_complexity: str = "O(1)"
    space_complexity: str = "O(1)"
    bottlenecks: list[Bottleneck] = Field(default_factory=list)
    optimization_potential: float = Field(default=0.0, ge=0, le=1)


# Security


class SecurityIssue(Record):
    type: str
    severity: VulnerabilitySeverity
    description: str
    location: str | None = None
    fix: str | None = None


class SecurityRecommendation(Record):
    type: str
    description: str
    priority: Priority
    implementation: str


class SecurityReport(Record):
    vulnerabilities: list[SecurityIssue] = Field(default_factory=list)
    risk_score: float = Field(default=0.0, ge=0, le=1)
    recommendations: list[SecurityRecommendation] = Field(default_factory=list)


# Accessibility


class AccessibilityViolation(Record):
    rule: str
    impact: ViolationImpact
    element: str
    description: str
    suggestion: str


class AccessibilityReport(Record):
    score: float = Field(default=1.0, ge=0, le=1)
    wcag_level: str = "AA"
    violations: list[AccessibilityViolation] = Field(default_factory=list)
    missing_labels: list[str] = Field(default_factory=list)


# Module analysis


class ModuleQualityMetrics(Record):
    test_coverage: float = Field(default=0.0, ge=0, le=1)
    code_quality: float = Field(default=0.0, ge=0, le=1)
    performance: float = Field(default=0.0, ge=0, le=1)


class ModuleAnalysis(Record):
    id: str
    name: str
    description: str = ""
    dependencies: list[str] = Field(default_factory=list)
    complexity: float = 0.0
    status: ModuleStatus = ModuleStatus.PENDING
    quality_metrics: ModuleQualityMetrics = Field(default_factory=ModuleQualityMetrics)


# Aggregate


class AnalyzerDiagnostic(Record):
    """Why a section of the report holds its default value."""

    section: AnalysisSection
    analyzer: str
    error_type: str
    message: str


class AnalysisResult(Record):
    """Aggregate report for one source fingerprint. Immutable."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    semantic_analysis: SemanticAnalysisResult = Field(default_factory=SemanticAnalysisResult)
    context_analysis: ContextAnalysisResult = Field(default_factory=ContextAnalysisResult)
    dependency_graph: DependencyGraphResult = Field(default_factory=DependencyGraphResult)
    performance_metrics: PerformanceMetricsResult = Field(default_factory=PerformanceMetricsResult)
    security_report: SecurityReport = Field(default_factory=SecurityReport)
    module_analysis: ModuleAnalysis | None = None
    accessibility_report: AccessibilityReport | None = None
    diagnostics: list[AnalyzerDiagnostic] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def degraded(self) -> bool:
        """True when at least one analyzer failed."""
        return bool(self.diagnostics)

    def failed_sections(self) -> list[AnalysisSection]:
        return [d.section for d in self.diagnostics]


class CachedAnalysis(Record):
    """A cached ``AnalysisResult`` with its validity window."""

    result: AnalysisResult
    timestamp: float
    expires_at: float

    @model_validator(mode="after")
    def _check_window(self) -> "CachedAnalysis":
        if self.expires_at <= self.timestamp:
            raise ValueError("expiresAt must be later than timestamp")
        return self

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at
