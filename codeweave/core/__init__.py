"""Core infrastructure: configuration, error taxonomy and logging setup."""

from .config import QualityWeights, Settings, get_settings
from .errors import (
    AnalyzerFailure,
    CodeWeaveError,
    CycleError,
    InvalidStateError,
    ModuleGenerationError,
    SchedulingError,
    UnknownDependencyError,
)
from .logging import configure_logging

__all__ = [
    # Config
    "QualityWeights",
    "Settings",
    "get_settings",
    # Errors
    "AnalyzerFailure",
    "CodeWeaveError",
    "CycleError",
    "InvalidStateError",
    "ModuleGenerationError",
    "SchedulingError",
    "UnknownDependencyError",
    # Logging
    "configure_logging",
]
