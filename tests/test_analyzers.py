"""Tests for the security, performance, context and accessibility analyzers."""

import re

import pytest

from codeweave.analysis.accessibility import MarkupAccessibilityAnalyzer
from codeweave.analysis.patterns import PatternContextAnalyzer
from codeweave.analysis.performance import StaticPerformanceAnalyzer, complexity_class
from codeweave.analysis.security import PatternSecurityScanner, SecurityRule
from codeweave.models import Priority, SourceBundle, ViolationImpact, VulnerabilitySeverity

RECURSIVE_AND_NESTED = '''import time


def fib(n):
    if n < 2:
        return n
    return fib(n - 1) + fib(n - 2)


def pairs(items):
    result = []
    for a in items:
        for b in items:
            result.append((a, b))
    return result


def wait():
    time.sleep(1)
'''


class TestSecurityScanner:
    """Tests for PatternSecurityScanner."""

    @pytest.mark.asyncio
    async def test_detects_vulnerabilities(self, vulnerable_code):
        """Test every known vulnerability class is reported with its location."""
        report = await PatternSecurityScanner().analyze(SourceBundle(files={"app.py": vulnerable_code}))

        found = {v.type for v in report.vulnerabilities}
        assert found == {
            "code-injection",
            "command-injection",
            "hardcoded-secret",
            "insecure-deserialization",
            "sql-injection",
            "weak-hash",
        }
        eval_issue = next(v for v in report.vulnerabilities if v.type == "code-injection")
        assert eval_issue.severity == VulnerabilitySeverity.CRITICAL
        assert eval_issue.location == "app.py:9"
        assert eval_issue.fix

    @pytest.mark.asyncio
    async def test_risk_score_is_mean_severity(self, vulnerable_code):
        """Test the risk score averages the severity weights."""
        report = await PatternSecurityScanner().analyze(SourceBundle.from_text(vulnerable_code))

        # 1 critical, 4 high, 1 medium
        assert report.risk_score == pytest.approx(0.7833)

    @pytest.mark.asyncio
    async def test_recommendations_grouped_by_type(self, vulnerable_code):
        """Test one recommendation per vulnerability type, prioritized by severity."""
        report = await PatternSecurityScanner().analyze(SourceBundle.from_text(vulnerable_code))

        priorities = {r.type: r.priority for r in report.recommendations}
        assert list(priorities) == sorted(priorities)
        assert priorities["code-injection"] == Priority.HIGH
        assert priorities["weak-hash"] == Priority.MEDIUM

    @pytest.mark.asyncio
    async def test_clean_code(self, sample_python_code):
        """Test clean code has no findings and zero risk."""
        report = await PatternSecurityScanner().analyze(SourceBundle.from_text(sample_python_code))

        assert report.vulnerabilities == []
        assert report.risk_score == 0.0
        assert report.recommendations == []

    @pytest.mark.asyncio
    async def test_script_xss(self):
        """Test raw HTML injection in scripts is flagged."""
        code = "el.innerHTML = userInput;\nconst url = 'http://example.com/api';\n"

        report = await PatternSecurityScanner().analyze(SourceBundle(files={"view.js": code}))

        assert [v.type for v in report.vulnerabilities] == ["xss", "insecure-transport"]

    @pytest.mark.asyncio
    async def test_custom_rules(self):
        """Test scanners accept their own rule set."""
        rule = SecurityRule(
            type="debug-flag",
            severity=VulnerabilitySeverity.LOW,
            pattern=re.compile(r"DEBUG\s*=\s*True"),
            description="Debug mode enabled",
            fix="Disable debug mode",
        )

        report = await PatternSecurityScanner([rule]).analyze(SourceBundle.from_text("DEBUG = True\n"))

        assert [v.type for v in report.vulnerabilities] == ["debug-flag"]
        assert report.risk_score == 0.2
        assert report.recommendations[0].priority == Priority.LOW


class TestPerformanceAnalyzer:
    """Tests for StaticPerformanceAnalyzer."""

    @pytest.mark.parametrize("depth,expected", [(0, "O(1)"), (1, "O(n)"), (2, "O(n^2)"), (3, "O(n^3)")])
    def test_complexity_class(self, depth, expected):
        """Test loop depth maps to a complexity class."""
        assert complexity_class(depth) == expected

    @pytest.mark.asyncio
    async def test_python_estimates(self):
        """Test nested loops, recursion and blocking calls."""
        result = await StaticPerformanceAnalyzer().analyze(
            SourceBundle(files={"algo.py": RECURSIVE_AND_NESTED}),
        )

        assert result.time_complexity == "O(n^2)"
        assert result.space_complexity == "O(n)"
        kinds = {b.type: b for b in result.bottlenecks}
        assert set(kinds) == {"nested-loop", "recursion", "blocking-call"}
        assert kinds["nested-loop"].location == "algo.py:10"
        assert kinds["nested-loop"].severity == Priority.MEDIUM
        assert kinds["blocking-call"].location == "algo.py:19"
        assert result.optimization_potential == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_constant_code(self):
        """Test straight-line code is constant time and space."""
        result = await StaticPerformanceAnalyzer().analyze(
            SourceBundle.from_text("def add(a, b):\n    return a + b\n"),
        )

        assert result.time_complexity == "O(1)"
        assert result.space_complexity == "O(1)"
        assert result.bottlenecks == []
        assert result.optimization_potential == 0.0

    @pytest.mark.asyncio
    async def test_script_loops(self):
        """Test loop nesting in scripts."""
        code = "function scan(rows) {\n  for (const r of rows) {\n    r.cells.forEach((c) => {\n      c.x++;\n    });\n  }\n}\n"

        result = await StaticPerformanceAnalyzer().analyze(SourceBundle(files={"scan.js": code}))

        assert result.time_complexity == "O(n^2)"


class TestContextAnalyzer:
    """Tests for PatternContextAnalyzer."""

    @pytest.mark.asyncio
    async def test_class_patterns(self, sample_python_code):
        """Test a class exposing get_instance is a singleton."""
        result = await PatternContextAnalyzer().analyze(
            SourceBundle(files={"app/service.py": sample_python_code}),
        )

        singleton = next(p for p in result.patterns if p.type == "singleton")
        assert singleton.location == "app/service.py:UserService"
        assert singleton.confidence == 0.9

    @pytest.mark.asyncio
    async def test_observer_and_factory(self):
        """Test observer and factory members."""
        code = (
            "class Bus:\n"
            "    def subscribe(self, fn):\n        pass\n"
            "    def notify(self):\n        pass\n\n"
            "class Widgets:\n"
            "    def create_widget(self):\n        pass\n"
        )

        result = await PatternContextAnalyzer().analyze(SourceBundle(files={"bus.py": code}))

        assert sorted(p.type for p in result.patterns) == ["factory", "observer"]

    @pytest.mark.asyncio
    async def test_hook_patterns(self, sample_typescript_code):
        """Test custom hooks and React hook usage."""
        result = await PatternContextAnalyzer().analyze(
            SourceBundle(files={"src/hooks/useUser.ts": sample_typescript_code}),
        )

        types = [p.type for p in result.patterns]
        assert types.count("custom-hook") == 1
        assert types.count("react-hook") == 2

    @pytest.mark.asyncio
    async def test_higher_order_function(self):
        """Test curried arrow functions."""
        code = "export const withLog = (fn) => (...args) => fn(...args);\n"

        result = await PatternContextAnalyzer().analyze(SourceBundle(files={"log.ts": code}))

        assert [p.type for p in result.patterns] == ["higher-order-function"]

    @pytest.mark.asyncio
    async def test_suggestions(self, sample_python_code):
        """Test poorly documented and long-signature code gets suggestions."""
        code = sample_python_code + "\n\ndef build(a, b, c, d, e, f):\n    return a\n"

        result = await PatternContextAnalyzer().analyze(SourceBundle(files={"app/service.py": code}))

        types = {s.type for s in result.optimization_suggestions}
        assert types == {"add-documentation", "parameter-object"}

    @pytest.mark.asyncio
    async def test_complexity_suggestion(self):
        """Test deeply nested branching is flagged."""
        code = (
            "def f(a, b, c, d):\n"
            "    if a:\n"
            "        for x in a:\n"
            "            pass\n"
            "        if b:\n"
            "            for x in b:\n"
            "                pass\n"
            "            if c:\n"
            "                for x in c:\n"
            "                    pass\n"
            "                if d:\n"
            "                    for x in d:\n"
            "                        pass\n"
        )

        result = await PatternContextAnalyzer().analyze(SourceBundle(files={"deep.py": code}))

        assert "reduce-complexity" in {s.type for s in result.optimization_suggestions}

    @pytest.mark.asyncio
    async def test_contextual_dependencies(self, sample_python_code):
        """Test imports are split into internal and external dependencies."""
        result = await PatternContextAnalyzer().analyze(
            SourceBundle(files={"app/service.py": sample_python_code}),
        )

        deps = [(d.name, d.type, d.usage) for d in result.contextual_dependencies]
        assert deps == [
            (".models", "internal", ["app/service.py"]),
            ("os", "external", ["app/service.py"]),
            ("typing", "external", ["app/service.py"]),
        ]


class TestAccessibilityAnalyzer:
    """Tests for MarkupAccessibilityAnalyzer."""

    @pytest.fixture
    def markup(self):
        """A page and a form with known violations."""
        return SourceBundle(files={
            "index.html": "<html>\n<body>\n  <img src=\"logo.png\">\n</body>\n</html>\n",
            "Form.jsx": (
                "export const Form = () => (\n"
                "  <form>\n"
                "    <button></button>\n"
                "    <a onClick={go}>Go</a>\n"
                "    <div onClick={open}>Open</div>\n"
                "    <label htmlFor=\"email\">Email</label>\n"
                "    <input id=\"email\" type=\"email\" />\n"
                "    <input name=\"password\" type=\"password\" />\n"
                "    <input type=\"submit\" />\n"
                "  </form>\n"
                ");\n"
            ),
        })

    @pytest.mark.asyncio
    async def test_violations(self, markup):
        """Test each rule fires on its offending element."""
        report = await MarkupAccessibilityAnalyzer().analyze(markup)

        rules = sorted(v.rule for v in report.violations)
        assert rules == [
            "anchor-is-valid",
            "button-name",
            "click-events-have-key-events",
            "html-has-lang",
            "image-alt",
            "label",
        ]
        image = next(v for v in report.violations if v.rule == "image-alt")
        assert image.element == "index.html:3"
        assert image.impact == ViolationImpact.CRITICAL

    @pytest.mark.asyncio
    async def test_missing_labels(self, markup):
        """Test only unlabeled form inputs are reported."""
        report = await MarkupAccessibilityAnalyzer().analyze(markup)

        assert report.missing_labels == ["password"]

    @pytest.mark.asyncio
    async def test_score(self, markup):
        """Test the score subtracts impact weights."""
        report = await MarkupAccessibilityAnalyzer(wcag_level="AAA").analyze(markup)

        assert report.score == pytest.approx(0.3)
        assert report.wcag_level == "AAA"

    @pytest.mark.asyncio
    async def test_non_markup_ignored(self, sample_python_code):
        """Test units that cannot contain markup are skipped."""
        report = await MarkupAccessibilityAnalyzer().analyze(
            SourceBundle(files={"app/service.py": sample_python_code + "\nHTML = '<img src=x>'\n"}),
        )

        assert report.violations == []
        assert report.score == 1.0
