"""Context Analyzer - design patterns, optimization suggestions, dependencies."""

import asyncio
import re

import structlog

from codeweave.analysis.parsing import ParsedUnit, SourceParser, line_of
from codeweave.analysis.ports import ContextAnalyzer
from codeweave.engine.context import external_package
from codeweave.models import (
    ContextAnalysisResult,
    ContextDependency,
    DetectedPattern,
    OptimizationSuggestion,
    Priority,
    SourceBundle,
)

logger = structlog.get_logger()

HOOK_NAME = re.compile(r"^use[A-Z]")
HOOK_CALL = re.compile(r"(?<![\w$.])(use[A-Z][\w$]*)\s*\(")
CURRIED_ARROW = re.compile(r"=>\s*(?:\([^)]*\)|[A-Za-z_$][\w$]*)\s*=>")

# Class patterns: (pattern, member predicate, confidence)
CLASS_PATTERNS = [
    ("singleton", lambda m: m in ("getInstance", "get_instance", "instance"), 0.9),
    ("observer", lambda m: m in ("subscribe", "unsubscribe", "notify"), 0.85),
    ("factory", lambda m: "create" in m.lower() or "factory" in m.lower(), 0.8),
]

COMPLEXITY_THRESHOLD = 15
PARAMETER_THRESHOLD = 5
IMPORT_THRESHOLD = 10


class PatternContextAnalyzer(ContextAnalyzer):
    """Default context analyzer."""

    def __init__(self, parser: SourceParser | None = None):
        self.parser = parser or SourceParser()
        self._logger = logger.bind(component="PatternContextAnalyzer")

    async def analyze(self, source: SourceBundle) -> ContextAnalysisResult:
        result = await asyncio.to_thread(self.analyze_bundle, source)

        await self._logger.adebug(
            "Context analyzed",
            patterns=len(result.patterns),
            suggestions=len(result.optimization_suggestions),
        )
        return result

    def analyze_bundle(self, source: SourceBundle) -> ContextAnalysisResult:
        units = self.parser.parse_bundle(source)
        return ContextAnalysisResult(
            patterns=[p for unit in units for p in self.detect_patterns(unit)],
            optimization_suggestions=[s for unit in units for s in self.suggest(unit)],
            contextual_dependencies=self.dependencies(units),
        )

    def detect_patterns(self, unit: ParsedUnit) -> list[DetectedPattern]:
        patterns = []

        for class_name in unit.classes:
            members = unit.methods.get(class_name, [])
            for pattern_type, matches, confidence in CLASS_PATTERNS:
                if any(matches(member) for member in members):
                    patterns.append(DetectedPattern(
                        type=pattern_type,
                        location=f"{unit.path}:{class_name}",
                        confidence=confidence,
                    ))

        for function in unit.functions:
            if HOOK_NAME.match(function.name):
                patterns.append(DetectedPattern(
                    type="custom-hook",
                    location=f"{unit.path}:{function.line}",
                    confidence=0.95,
                ))

        if unit.language in ("javascript", "typescript"):
            seen = set()
            for match in HOOK_CALL.finditer(unit.text):
                hook = match.group(1)
                if hook in seen or hook in {f.name for f in unit.functions}:
                    continue
                seen.add(hook)
                patterns.append(DetectedPattern(
                    type="react-hook",
                    location=f"{unit.path}:{line_of(unit.text, match.start())}",
                    confidence=0.95,
                ))
            if CURRIED_ARROW.search(unit.text):
                patterns.append(DetectedPattern(
                    type="higher-order-function",
                    location=unit.path,
                    confidence=0.85,
                ))

        return patterns

    def suggest(self, unit: ParsedUnit) -> list[OptimizationSuggestion]:
        suggestions = []

        if unit.cognitive_complexity > COMPLEXITY_THRESHOLD:
            suggestions.append(OptimizationSuggestion(
                type="reduce-complexity",
                description=(
                    f"Cognitive complexity {unit.cognitive_complexity} exceeds "
                    f"{COMPLEXITY_THRESHOLD}; extract nested branches into functions"
                ),
                priority=Priority.HIGH,
                impact=0.6,
                location=unit.path,
            ))

        for function in unit.functions:
            if function.parameters > PARAMETER_THRESHOLD:
                suggestions.append(OptimizationSuggestion(
                    type="parameter-object",
                    description=f"'{function.name}' takes {function.parameters} parameters",
                    priority=Priority.MEDIUM,
                    impact=0.3,
                    location=f"{unit.path}:{function.line}",
                ))

        if len(unit.imports) > IMPORT_THRESHOLD:
            suggestions.append(OptimizationSuggestion(
                type="split-module",
                description=f"Module has {len(unit.imports)} imports",
                priority=Priority.LOW,
                impact=0.2,
                location=unit.path,
            ))

        if unit.documentable and unit.documented / unit.documentable < 0.5:
            suggestions.append(OptimizationSuggestion(
                type="add-documentation",
                description="Less than half of the definitions are documented",
                priority=Priority.LOW,
                impact=0.2,
                location=unit.path,
            ))

        return suggestions

    def dependencies(self, units: list[ParsedUnit]) -> list[ContextDependency]:
        usage: dict[tuple[str, str], set[str]] = {}
        for unit in units:
            for ref in unit.imports:
                if ref.level or not external_package(ref.module):
                    name = "." * ref.level + ref.module
                    kind = "internal"
                else:
                    name = external_package(ref.module)
                    kind = "external"
                if ref.lazy:
                    kind = "lazy"
                usage.setdefault((name, kind), set()).add(unit.path)

        return [
            ContextDependency(name=name, type=kind, usage=sorted(paths))
            for (name, kind), paths in sorted(usage.items())
        ]
