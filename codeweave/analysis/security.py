"""Security Scanner - pattern rules for common vulnerability classes."""

import asyncio
import re
from dataclasses import dataclass

import structlog

from codeweave.analysis.parsing import line_of
from codeweave.analysis.ports import SecurityScanner
from codeweave.models import (
    Priority,
    SecurityIssue,
    SecurityRecommendation,
    SecurityReport,
    SourceBundle,
    VulnerabilitySeverity,
)

logger = structlog.get_logger()

SEVERITY_WEIGHTS = {
    VulnerabilitySeverity.CRITICAL: 1.0,
    VulnerabilitySeverity.HIGH: 0.8,
    VulnerabilitySeverity.MEDIUM: 0.5,
    VulnerabilitySeverity.LOW: 0.2,
}

SEVERITY_ORDER = [
    VulnerabilitySeverity.LOW,
    VulnerabilitySeverity.MEDIUM,
    VulnerabilitySeverity.HIGH,
    VulnerabilitySeverity.CRITICAL,
]

SEVERITY_PRIORITY = {
    VulnerabilitySeverity.CRITICAL: Priority.HIGH,
    VulnerabilitySeverity.HIGH: Priority.HIGH,
    VulnerabilitySeverity.MEDIUM: Priority.MEDIUM,
    VulnerabilitySeverity.LOW: Priority.LOW,
}

RECOMMENDATIONS = {
    "code-injection": (
        "Found {count} code injection risks. Never evaluate dynamic strings as code",
        "Replace eval/exec with explicit parsing or a dispatch table",
    ),
    "xss": (
        "Found {count} potential XSS vulnerabilities. Implement proper input sanitization",
        "Use DOMPurify or similar libraries for sanitization",
    ),
    "sql-injection": (
        "Found {count} SQL injection risks. Use parameterized queries",
        "Use ORM or prepared statements",
    ),
    "command-injection": (
        "Found {count} command injection risks. Avoid shell interpolation",
        "Pass argument lists to subprocess APIs without a shell",
    ),
    "insecure-deserialization": (
        "Found {count} unsafe deserialization calls",
        "Deserialize untrusted data with safe loaders only",
    ),
    "hardcoded-secret": (
        "Found {count} hardcoded credentials. Move secrets out of source code",
        "Read secrets from the environment or a secret manager",
    ),
    "weak-hash": (
        "Found {count} uses of weak hash algorithms",
        "Use SHA-256 or a dedicated password hashing function",
    ),
    "insecure-transport": (
        "Found {count} plain HTTP URLs",
        "Use HTTPS for all remote endpoints",
    ),
}
DEFAULT_RECOMMENDATION = (
    "Found {count} security issues of type {type}",
    "Follow OWASP security guidelines",
)


@dataclass
class SecurityRule:
    """A vulnerability pattern."""

    type: str
    severity: VulnerabilitySeverity
    pattern: re.Pattern
    description: str
    fix: str


DEFAULT_RULES = [
    SecurityRule(
        type="code-injection",
        severity=VulnerabilitySeverity.CRITICAL,
        pattern=re.compile(r"(?<![\w.])eval\s*\("),
        description="Dangerous use of eval() detected",
        fix="Parse the input explicitly instead of evaluating it",
    ),
    SecurityRule(
        type="code-injection",
        severity=VulnerabilitySeverity.CRITICAL,
        pattern=re.compile(r"(?<![\w.])exec\s*\(|\bnew\s+Function\s*\("),
        description="Dynamic code execution detected",
        fix="Remove dynamic code execution",
    ),
    SecurityRule(
        type="xss",
        severity=VulnerabilitySeverity.HIGH,
        pattern=re.compile(r"\binnerHTML\b|dangerouslySetInnerHTML|document\.write\s*\("),
        description="Potential XSS vulnerability with raw HTML injection",
        fix="Render text content or sanitize the HTML first",
    ),
    SecurityRule(
        type="sql-injection",
        severity=VulnerabilitySeverity.HIGH,
        pattern=re.compile(
            r"\.(?:execute|query|raw)\s*\(\s*(?:f[\"']|`[^`]*\$\{|[\"'][^\"']*[\"']\s*(?:\+|%\s))",
        ),
        description="SQL statement built from interpolated strings",
        fix="Use query parameters",
    ),
    SecurityRule(
        type="command-injection",
        severity=VulnerabilitySeverity.HIGH,
        pattern=re.compile(r"shell\s*=\s*True|\bos\.system\s*\(|child_process\.exec(?:Sync)?\s*\("),
        description="Shell command execution with possible interpolation",
        fix="Pass an argument list without a shell",
    ),
    SecurityRule(
        type="insecure-deserialization",
        severity=VulnerabilitySeverity.HIGH,
        pattern=re.compile(r"\bpickle\.loads?\s*\(|\byaml\.load\s*\((?![^)]*Loader)"),
        description="Deserialization of possibly untrusted data",
        fix="Use json or yaml.safe_load",
    ),
    SecurityRule(
        type="hardcoded-secret",
        severity=VulnerabilitySeverity.HIGH,
        pattern=re.compile(
            r"(?i)\b(?:password|passwd|secret|api_?key|access_?token|auth_?token)\b\s*[:=]\s*[\"'][^\"'\s]{4,}[\"']",
        ),
        description="Hardcoded credential",
        fix="Load the value from configuration",
    ),
    SecurityRule(
        type="weak-hash",
        severity=VulnerabilitySeverity.MEDIUM,
        pattern=re.compile(r"\bhashlib\.(?:md5|sha1)\s*\(|createHash\(\s*[\"'](?:md5|sha1)[\"']"),
        description="Weak hash algorithm",
        fix="Use hashlib.sha256 or bcrypt/argon2 for passwords",
    ),
    SecurityRule(
        type="insecure-transport",
        severity=VulnerabilitySeverity.LOW,
        pattern=re.compile(r"[\"']http://(?!localhost|127\.0\.0\.1|0\.0\.0\.0)"),
        description="Plain HTTP URL",
        fix="Use https://",
    ),
]


class PatternSecurityScanner(SecurityScanner):
    """Default security scanner over regular-expression rules."""

    def __init__(self, rules: list[SecurityRule] | None = None):
        self.rules = rules if rules is not None else list(DEFAULT_RULES)
        self._logger = logger.bind(component="PatternSecurityScanner")

    async def analyze(self, source: SourceBundle) -> SecurityReport:
        report = await asyncio.to_thread(self.analyze_bundle, source)

        if report.vulnerabilities:
            await self._logger.awarning(
                "Vulnerabilities detected",
                count=len(report.vulnerabilities),
                risk_score=report.risk_score,
            )
        return report

    def analyze_bundle(self, source: SourceBundle) -> SecurityReport:
        vulnerabilities = self.detect(source)
        return SecurityReport(
            vulnerabilities=vulnerabilities,
            risk_score=self.risk_score(vulnerabilities),
            recommendations=self.recommendations(vulnerabilities),
        )

    def detect(self, source: SourceBundle) -> list[SecurityIssue]:
        issues = []
        for path, text in source.units():
            for rule in self.rules:
                for match in rule.pattern.finditer(text):
                    issues.append(SecurityIssue(
                        type=rule.type,
                        severity=rule.severity,
                        description=rule.description,
                        location=f"{path}:{line_of(text, match.start())}",
                        fix=rule.fix,
                    ))
        return issues

    def risk_score(self, vulnerabilities: list[SecurityIssue]) -> float:
        """Mean severity weight of all findings, 0 without findings."""
        if not vulnerabilities:
            return 0.0
        total = sum(SEVERITY_WEIGHTS[v.severity] for v in vulnerabilities)
        return round(min(total / len(vulnerabilities), 1.0), 4)

    def recommendations(self, vulnerabilities: list[SecurityIssue]) -> list[SecurityRecommendation]:
        grouped: dict[str, list[SecurityIssue]] = {}
        for vulnerability in vulnerabilities:
            grouped.setdefault(vulnerability.type, []).append(vulnerability)

        recommendations = []
        for vuln_type in sorted(grouped):
            vulns = grouped[vuln_type]
            worst = max((v.severity for v in vulns), key=SEVERITY_ORDER.index)
            description, implementation = RECOMMENDATIONS.get(vuln_type, DEFAULT_RECOMMENDATION)
            recommendations.append(SecurityRecommendation(
                type=vuln_type,
                description=description.format(count=len(vulns), type=vuln_type),
                priority=SEVERITY_PRIORITY[worst],
                implementation=implementation,
            ))
        return recommendations
