"""Demo script: dependency-ordered generation followed by analysis.

This demonstrates:
1. Dependency Resolver - deterministic module order
2. Generation State Machine - module-by-module generation with shared context
3. Analysis Aggregator - all analyzers fanned out over the produced files
4. Analysis Cache - repeated analysis of unchanged files is free
5. Report Generator - text summary

A canned collaborator stands in for the LLM so the demo runs offline.

Usage:
    python examples/demo_pipeline.py
"""

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codeweave.analysis import AnalysisAggregator, ReportFormat, ReportGenerator
from codeweave.core.logging import configure_logging
from codeweave.engine import GenerationStateMachine, resolve
from codeweave.models import FileDefinition, FileType, ModuleDefinition, ProjectContext

console = Console()


CANNED_FILES = {
    "src/utils/format.ts": (
        "/** Format a date for display. */\n"
        "export const formatDate = (d: Date): string => d.toISOString();\n"
    ),
    "src/hooks/useAuth.ts": (
        "import { useState } from 'react';\n"
        "import axios from 'axios';\n"
        "import { formatDate } from '@/utils/format';\n"
        "\n"
        "export function useAuth() {\n"
        "  const [user, setUser] = useState(null);\n"
        "  const login = async (name: string) => {\n"
        "    const res = await axios.post('http://api.example.com/login', { name });\n"
        "    setUser({ ...res.data, at: formatDate(new Date()) });\n"
        "  };\n"
        "  return { user, login };\n"
        "}\n"
    ),
    "src/components/LoginForm.tsx": (
        "import { useAuth } from '../hooks/useAuth';\n"
        "\n"
        "export function LoginForm() {\n"
        "  const { login } = useAuth();\n"
        "  return (\n"
        "    <form>\n"
        "      <img src=\"logo.png\" />\n"
        "      <input name=\"username\" />\n"
        "      <button onClick={() => login('demo')}>Sign in</button>\n"
        "    </form>\n"
        "  );\n"
        "}\n"
    ),
    "src/components/LoginForm.test.tsx": (
        "import { LoginForm } from './LoginForm';\n"
        "\n"
        "test('renders', () => {\n"
        "  expect(LoginForm).toBeDefined();\n"
        "});\n"
    ),
}


class CannedCollaborator:
    """Returns prepared sources instead of calling a model."""

    async def generate(self, module: ModuleDefinition, context: ProjectContext) -> dict[str, str]:
        console.print(
            f"  Generating [cyan]{module.id}[/cyan] "
            f"(known exports: {', '.join(sorted(context.exports)) or 'none'})"
        )
        return {f.path: CANNED_FILES[f.path] for f in module.files}


def build_modules() -> list[ModuleDefinition]:
    """Three modules of a small login feature."""
    return [
        ModuleDefinition(
            id="login",
            name="Login Form",
            dependencies={"auth", "utils"},
            files=[
                FileDefinition(path="src/components/LoginForm.tsx", type=FileType.COMPONENT),
                FileDefinition(path="src/components/LoginForm.test.tsx", type=FileType.TEST),
            ],
        ),
        ModuleDefinition(
            id="auth",
            name="Auth Hook",
            dependencies={"utils"},
            files=[FileDefinition(path="src/hooks/useAuth.ts", type=FileType.HOOK)],
        ),
        ModuleDefinition(
            id="utils",
            name="Utilities",
            files=[FileDefinition(path="src/utils/format.ts", type=FileType.UTIL)],
        ),
    ]


def demo_resolver(modules: list[ModuleDefinition]):
    """Demonstrate the Dependency Resolver."""
    console.print("\n[bold cyan]═══ Dependency Resolver Demo ═══[/bold cyan]\n")

    order = resolve({module.id: module for module in modules})
    console.print(f"Generation order: {' → '.join(order)}")


async def demo_generation(modules: list[ModuleDefinition]):
    """Demonstrate the Generation State Machine."""
    console.print("\n[bold cyan]═══ Generation State Machine Demo ═══[/bold cyan]\n")

    run = await GenerationStateMachine(modules, CannedCollaborator()).run()

    status = "[green]COMPLETED[/green]" if run.succeeded else f"[red]{run.status.value}[/red]"
    console.print(f"\nStatus: {status}")

    context = run.state.project_context
    table = Table(title="Project Context")
    table.add_column("Entry", style="cyan")
    table.add_column("Value", style="yellow")
    table.add_row("Files", str(len(run.state.generated_files)))
    table.add_row("External packages", ", ".join(sorted(context.dependencies.external)))
    table.add_row(
        "Internal dependencies",
        "; ".join(f"{m} → {', '.join(deps)}" for m, deps in sorted(context.dependencies.internal.items())),
    )
    table.add_row(
        "Test coverage",
        ", ".join(f"{m}: {c:.0%}" for m, c in sorted(context.test_coverage.items())),
    )
    console.print(table)

    return run


async def demo_analysis(run):
    """Demonstrate the Analysis Aggregator and its cache."""
    console.print("\n[bold cyan]═══ Analysis Aggregator Demo ═══[/bold cyan]\n")

    aggregator = AnalysisAggregator()
    result = await aggregator.analyze_generation(run.state)

    indicators = result.semantic_analysis.quality_indicators
    table = Table(title="Quality Indicators")
    table.add_column("Indicator", style="cyan")
    table.add_column("Score", style="green")
    for name in ("maintainability", "reliability", "security", "coverage", "documentation", "quality"):
        table.add_row(name, f"{getattr(indicators, name):.2f}")
    console.print(table)

    if result.security_report.vulnerabilities:
        console.print("\n[bold]Security Findings:[/bold]")
        for vuln in result.security_report.vulnerabilities:
            console.print(f"  • [{vuln.severity.value}] {vuln.type} at {vuln.location}")

    if result.accessibility_report and result.accessibility_report.violations:
        console.print("\n[bold]Accessibility Violations:[/bold]")
        for violation in result.accessibility_report.violations:
            console.print(f"  • {violation.rule} at {violation.element}")

    again = await aggregator.analyze_generation(run.state)
    console.print(f"\nSecond analysis served from cache: {again is result}")
    console.print(f"Cache stats: {aggregator.cache.stats()}")

    per_module = await aggregator.analyze_modules(run.state)
    return [result, *per_module.values()]


def demo_report(results):
    """Demonstrate the Report Generator."""
    console.print("\n[bold cyan]═══ Report Generator Demo ═══[/bold cyan]\n")

    report = ReportGenerator().generate(results, ReportFormat.TEXT)
    console.print(Panel(report, title="Analysis Report"))


async def run_demo():
    """Run the complete pipeline demo."""
    configure_logging("WARNING")

    console.print(Panel.fit(
        "[bold magenta]CodeWeave[/bold magenta]\n"
        "[cyan]Generation and Analysis Pipeline Demo[/cyan]",
        border_style="bright_blue",
    ))

    modules = build_modules()
    demo_resolver(modules)
    run = await demo_generation(modules)
    results = await demo_analysis(run)
    demo_report(results)

    console.print(Panel.fit(
        "[bold green]✓ Demo Complete![/bold green]",
        border_style="green",
    ))


if __name__ == "__main__":
    asyncio.run(run_demo())
