"""Accessibility Analyzer - WCAG checks over HTML and JSX markup.

Only units that can hold markup (.html, .jsx, .tsx, .vue, .svelte) are
checked. A bundle without markup scores 1.0.
"""

import asyncio
import re
from dataclasses import dataclass

import structlog

from codeweave.analysis.parsing import MARKUP_SUFFIXES, line_of
from codeweave.analysis.ports import AccessibilityAnalyzer
from codeweave.models import (
    AccessibilityReport,
    AccessibilityViolation,
    SourceBundle,
    ViolationImpact,
)

logger = structlog.get_logger()

IMPACT_WEIGHTS = {
    ViolationImpact.MINOR: 0.02,
    ViolationImpact.MODERATE: 0.05,
    ViolationImpact.SERIOUS: 0.1,
    ViolationImpact.CRITICAL: 0.15,
}

_INPUT = re.compile(r"<input\b([^>]*)/?>", re.IGNORECASE)
_LABEL_FOR = re.compile(r"<label\b[^>]*\b(?:htmlFor|for)\s*=\s*[{\"']+([\w-]+)", re.IGNORECASE)
_ATTR = re.compile(r"\b([\w-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|\{[\"']?([^}\"']*)[\"']?\})")
_UNLABELED_TYPES = {"hidden", "submit", "button", "reset", "image"}


@dataclass
class MarkupRule:
    """An element-level accessibility rule."""

    rule: str
    impact: ViolationImpact
    pattern: re.Pattern
    description: str
    suggestion: str


DEFAULT_RULES = [
    MarkupRule(
        rule="image-alt",
        impact=ViolationImpact.CRITICAL,
        pattern=re.compile(r"<img\b(?![^>]*\balt\s*=)[^>]*>", re.IGNORECASE),
        description="Images must have alternate text",
        suggestion="Add an alt attribute (empty for decorative images)",
    ),
    MarkupRule(
        rule="button-name",
        impact=ViolationImpact.CRITICAL,
        pattern=re.compile(
            r"<button\b(?![^>]*\baria-label(?:ledby)?\s*=)[^>]*>\s*</button>",
            re.IGNORECASE,
        ),
        description="Buttons must have discernible text",
        suggestion="Add text content or an aria-label",
    ),
    MarkupRule(
        rule="anchor-is-valid",
        impact=ViolationImpact.MODERATE,
        pattern=re.compile(r"<a\b(?![^>]*\bhref\s*=)[^>]*>", re.IGNORECASE),
        description="Anchors must have a valid href",
        suggestion="Add an href or use a button for actions",
    ),
    MarkupRule(
        rule="click-events-have-key-events",
        impact=ViolationImpact.SERIOUS,
        pattern=re.compile(
            r"<(?:div|span)\b(?=[^>]*\bonClick\b)(?![^>]*\b(?:role|onKeyDown|onKeyUp|onKeyPress)\b)[^>]*>",
        ),
        description="Clickable static elements must be keyboard accessible",
        suggestion="Use a button, or add a role and a keyboard handler",
    ),
    MarkupRule(
        rule="html-has-lang",
        impact=ViolationImpact.SERIOUS,
        pattern=re.compile(r"<html\b(?![^>]*\blang\s*=)[^>]*>", re.IGNORECASE),
        description="The html element must have a lang attribute",
        suggestion='Add lang="en" (or the page language)',
    ),
]


class MarkupAccessibilityAnalyzer(AccessibilityAnalyzer):
    """Default accessibility analyzer."""

    def __init__(self, rules: list[MarkupRule] | None = None, wcag_level: str = "AA"):
        self.rules = rules if rules is not None else list(DEFAULT_RULES)
        self.wcag_level = wcag_level
        self._logger = logger.bind(component="MarkupAccessibilityAnalyzer")

    async def analyze(self, source: SourceBundle) -> AccessibilityReport:
        return await asyncio.to_thread(self.analyze_bundle, source)

    def analyze_bundle(self, source: SourceBundle) -> AccessibilityReport:
        violations: list[AccessibilityViolation] = []
        missing_labels: list[str] = []

        for path, text in source.units():
            if SourceBundle.suffix(path) not in MARKUP_SUFFIXES:
                continue
            violations.extend(self._check_rules(path, text))
            unlabeled = self._unlabeled_inputs(path, text)
            missing_labels.extend(unlabeled)
            violations.extend(
                AccessibilityViolation(
                    rule="label",
                    impact=ViolationImpact.CRITICAL,
                    element=element,
                    description="Form elements must have labels",
                    suggestion="Add a <label> bound to the input or an aria-label",
                )
                for element in unlabeled
            )

        penalty = sum(IMPACT_WEIGHTS[v.impact] for v in violations)
        return AccessibilityReport(
            score=round(max(0.0, 1.0 - penalty), 4),
            wcag_level=self.wcag_level,
            violations=violations,
            missing_labels=missing_labels,
        )

    def _check_rules(self, path: str, text: str) -> list[AccessibilityViolation]:
        violations = []
        for rule in self.rules:
            for match in rule.pattern.finditer(text):
                violations.append(AccessibilityViolation(
                    rule=rule.rule,
                    impact=rule.impact,
                    element=f"{path}:{line_of(text, match.start())}",
                    description=rule.description,
                    suggestion=rule.suggestion,
                ))
        return violations

    def _unlabeled_inputs(self, path: str, text: str) -> list[str]:
        labelled_ids = set(_LABEL_FOR.findall(text))
        unlabeled = []
        for match in _INPUT.finditer(text):
            attrs = {
                m.group(1).lower(): next((g for g in m.groups()[1:] if g is not None), "")
                for m in _ATTR.finditer(match.group(1))
            }
            if attrs.get("type", "text").lower() in _UNLABELED_TYPES:
                continue
            if "aria-label" in attrs or "aria-labelledby" in attrs:
                continue
            if attrs.get("id") and attrs["id"] in labelled_ids:
                continue
            name = attrs.get("name") or attrs.get("id")
            unlabeled.append(name or f"{path}:{line_of(text, match.start())}")
        return unlabeled
