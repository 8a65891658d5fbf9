"""Error taxonomy for scheduling, generation and analysis.

- Scheduling errors (``CycleError``, ``UnknownDependencyError``) are fatal and
  raised to the caller immediately.
- ``ModuleGenerationError`` halts a generation run; the partial state stays
  inspectable on the run result.
- ``AnalyzerFailure`` never leaves the aggregator; it becomes a diagnostic on
  the degraded ``AnalysisResult``.
"""

from typing import Any


class CodeWeaveError(Exception):
    """Base class for all orchestrator errors."""

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": str(self)}


class SchedulingError(CodeWeaveError):
    """The module set cannot be scheduled."""


class CycleError(SchedulingError):
    """The module dependency graph contains a cycle.

    ``cycle`` lists module ids such that each depends on the next and the
    last depends on the first.
    """

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Circular module dependency: {path}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "cycle": self.cycle}


class UnknownDependencyError(SchedulingError):
    """A module depends on an id that is not part of the batch."""

    def __init__(self, module_id: str, dependency_id: str):
        self.module_id = module_id
        self.dependency_id = dependency_id
        super().__init__(
            f"Module '{module_id}' depends on unknown module '{dependency_id}'"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "module_id": self.module_id,
            "dependency_id": self.dependency_id,
        }


class ModuleGenerationError(CodeWeaveError):
    """Generating a single module failed."""

    def __init__(self, module_id: str, message: str):
        self.module_id = module_id
        self.message = message
        super().__init__(f"Generation of module '{module_id}' failed: {message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "module_id": self.module_id,
            "reason": self.message,
        }


class AnalyzerFailure(CodeWeaveError):
    """An analyzer port failed or timed out."""

    def __init__(self, section: str, analyzer: str, cause: BaseException):
        self.section = section
        self.analyzer = analyzer
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"Analyzer '{analyzer}' failed for {section}: {detail}")

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "section": self.section,
            "analyzer": self.analyzer,
            "error_type": type(self.cause).__name__,
        }


class InvalidStateError(CodeWeaveError):
    """An operation was attempted in a state that does not allow it."""
