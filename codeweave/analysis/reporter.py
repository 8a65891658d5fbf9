"""Report Generator for analysis results.

Renders ``AnalysisResult`` records as human-readable text or Markdown, or as
JSON with the camelCase record names.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from codeweave.models import AnalysisResult, CycleSeverity, VulnerabilitySeverity

logger = structlog.get_logger()


class ReportFormat(str, Enum):
    """Output format for reports."""

    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"


@dataclass
class ReportSummary:
    """Summary statistics over one or more analysis results."""

    total_results: int = 0
    degraded_results: int = 0
    average_quality: float = 0.0
    vulnerabilities: int = 0
    critical_vulnerabilities: int = 0
    cycles: int = 0
    high_severity_cycles: int = 0
    by_vulnerability_type: dict[str, int] = field(default_factory=dict)


@dataclass
class AnalysisReport:
    """Complete analysis report."""

    timestamp: datetime
    summary: ReportSummary
    results: list[AnalysisResult]
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "summary": {
                "totalResults": self.summary.total_results,
                "degradedResults": self.summary.degraded_results,
                "averageQuality": self.summary.average_quality,
                "vulnerabilities": self.summary.vulnerabilities,
                "criticalVulnerabilities": self.summary.critical_vulnerabilities,
                "cycles": self.summary.cycles,
                "highSeverityCycles": self.summary.high_severity_cycles,
                "byVulnerabilityType": self.summary.by_vulnerability_type,
            },
            "results": [r.to_record() for r in self.results],
            "metadata": self.metadata,
        }


class ReportGenerator:
    """Generates analysis reports in various formats."""

    def __init__(self):
        self._logger = logger.bind(component="ReportGenerator")

    def generate(
        self,
        results: AnalysisResult | list[AnalysisResult],
        format: ReportFormat = ReportFormat.TEXT,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Generate a report from analysis results.

        Args:
            results: One result or a list of results
            format: Output format
            metadata: Additional metadata to include

        Returns:
            Formatted report string
        """
        if isinstance(results, AnalysisResult):
            results = [results]

        report = AnalysisReport(
            timestamp=datetime.now(timezone.utc),
            summary=self._build_summary(results),
            results=results,
            metadata=metadata or {},
        )

        match format:
            case ReportFormat.JSON:
                return self._format_json(report)
            case ReportFormat.MARKDOWN:
                return self._format_markdown(report)
            case _:
                return self._format_text(report)

    def _build_summary(self, results: list[AnalysisResult]) -> ReportSummary:
        summary = ReportSummary()

        for result in results:
            summary.total_results += 1
            if result.degraded:
                summary.degraded_results += 1

            for vuln in result.security_report.vulnerabilities:
                summary.vulnerabilities += 1
                if vuln.severity == VulnerabilitySeverity.CRITICAL:
                    summary.critical_vulnerabilities += 1
                summary.by_vulnerability_type[vuln.type] = (
                    summary.by_vulnerability_type.get(vuln.type, 0) + 1
                )

            for cycle in result.dependency_graph.cycles:
                summary.cycles += 1
                if cycle.severity == CycleSeverity.HIGH:
                    summary.high_severity_cycles += 1

        if results:
            qualities = [r.semantic_analysis.quality_indicators.quality for r in results]
            summary.average_quality = round(sum(qualities) / len(qualities), 4)

        return summary

    def _format_text(self, report: AnalysisReport) -> str:
        lines = []
        s = report.summary

        lines.append("=" * 60)
        lines.append("CODE ANALYSIS REPORT")
        lines.append("=" * 60)
        lines.append(f"Timestamp: {report.timestamp.isoformat()}")
        lines.append("")

        lines.append("SUMMARY")
        lines.append("-" * 40)
        lines.append(f"Results:           {s.total_results}")
        lines.append(f"Degraded:          {s.degraded_results}")
        lines.append(f"Average Quality:   {s.average_quality:.2f}")
        lines.append(f"Vulnerabilities:   {s.vulnerabilities}")
        lines.append(f"  - Critical:      {s.critical_vulnerabilities}")
        lines.append(f"Cycles:            {s.cycles}")
        lines.append(f"  - High:          {s.high_severity_cycles}")
        lines.append("")

        lines.append("DETAILED RESULTS")
        lines.append("-" * 40)

        for result in report.results:
            q = result.semantic_analysis.quality_indicators
            c = result.semantic_analysis.complexity_metrics
            status = "✗ DEGRADED" if result.degraded else "✓ OK"
            lines.append(f"\n{status} {result.fingerprint}")
            lines.append(
                f"  Quality {q.quality:.2f} (maintainability {q.maintainability:.2f}, "
                f"reliability {q.reliability:.2f}, security {q.security:.2f}, "
                f"coverage {q.coverage:.2f}, documentation {q.documentation:.2f})"
            )
            lines.append(
                f"  Complexity: cyclomatic {c.cyclomatic_complexity}, "
                f"cognitive {c.cognitive_complexity}, MI {c.maintainability_index:.1f}"
            )
            lines.append(f"  Time complexity: {result.performance_metrics.time_complexity}")

            for cycle in result.dependency_graph.cycles:
                path = " -> ".join(cycle.nodes + cycle.nodes[:1])
                lines.append(f"  [CYCLE {cycle.severity.value.upper()}] {path}")
            for vuln in result.security_report.vulnerabilities:
                location = f" at {vuln.location}" if vuln.location else ""
                lines.append(f"  [{vuln.severity.value.upper()}] {vuln.type}{location}: {vuln.description}")
            for diagnostic in result.diagnostics:
                lines.append(
                    f"  [FAILED] {diagnostic.section.value} ({diagnostic.analyzer}): "
                    f"{diagnostic.error_type}: {diagnostic.message}"
                )

        lines.append("")
        lines.append("=" * 60)

        return "\n".join(lines)

    def _format_json(self, report: AnalysisReport) -> str:
        return json.dumps(report.to_dict(), indent=2)

    def _format_markdown(self, report: AnalysisReport) -> str:
        lines = []
        s = report.summary

        lines.append("# Code Analysis Report")
        lines.append("")
        lines.append(f"**Generated:** {report.timestamp.isoformat()}")
        lines.append("")

        lines.append("## Summary")
        lines.append("")
        lines.append("| Metric | Value |")
        lines.append("|--------|-------|")
        lines.append(f"| Results | {s.total_results} |")
        lines.append(f"| Degraded | {s.degraded_results} |")
        lines.append(f"| Average Quality | {s.average_quality:.2f} |")
        lines.append(f"| Vulnerabilities | {s.vulnerabilities} |")
        lines.append(f"| Critical Vulnerabilities | {s.critical_vulnerabilities} |")
        lines.append(f"| Dependency Cycles | {s.cycles} |")
        lines.append("")

        if s.by_vulnerability_type:
            lines.append("### Vulnerabilities by Type")
            lines.append("")
            for vtype, count in sorted(s.by_vulnerability_type.items()):
                lines.append(f"- **{vtype}**: {count}")
            lines.append("")

        lines.append("## Detailed Results")
        lines.append("")

        for result in report.results:
            status = "❌" if result.degraded else "✅"
            q = result.semantic_analysis.quality_indicators
            lines.append(f"### {status} `{result.fingerprint}`")
            lines.append("")
            lines.append("| Indicator | Score |")
            lines.append("|-----------|-------|")
            for name in ("maintainability", "reliability", "security", "coverage", "documentation", "quality"):
                lines.append(f"| {name.capitalize()} | {getattr(q, name):.2f} |")
            lines.append("")

            if result.dependency_graph.cycles:
                lines.append("**Dependency Cycles:**")
                lines.append("")
                for cycle in result.dependency_graph.cycles:
                    path = " → ".join(cycle.nodes + cycle.nodes[:1])
                    lines.append(f"- `{path}` ({cycle.severity.value})")
                lines.append("")

            if result.security_report.recommendations:
                lines.append("**Security Recommendations:**")
                lines.append("")
                for rec in result.security_report.recommendations:
                    lines.append(f"- `{rec.type}` ({rec.priority.value}): {rec.description}")
                lines.append("")

            if result.diagnostics:
                lines.append("**Failed Analyzers:**")
                lines.append("")
                for d in result.diagnostics:
                    lines.append(f"- `{d.section.value}` ({d.analyzer}): {d.message}")
                lines.append("")

        return "\n".join(lines)

    def save_report(
        self,
        results: AnalysisResult | list[AnalysisResult],
        output_path: str | Path,
        format: ReportFormat | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Generate and save report to file.

        Args:
            results: Analysis results
            output_path: Where to save
            format: Output format (inferred from extension if None)
            metadata: Additional metadata
        """
        path = Path(output_path)

        if format is None:
            format = {
                ".txt": ReportFormat.TEXT,
                ".json": ReportFormat.JSON,
                ".md": ReportFormat.MARKDOWN,
            }.get(path.suffix.lower(), ReportFormat.TEXT)

        path.write_text(self.generate(results, format, metadata))

        self._logger.info(
            "Report saved",
            path=str(path),
            format=format.value,
        )
