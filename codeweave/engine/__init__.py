"""Generation engine.

- Dependency Resolver: deterministic module order, cycle detection
- Project Context Tracker: folds completed modules into the ProjectContext
- Generation State Machine: drives module-by-module generation
"""

from .resolver import DependencyResolver, resolve
from .context import ProjectContextTracker, classify_path, external_package, path_keys
from .state_machine import (
    GenerationRun,
    GenerationStateMachine,
    GenerationStatus,
    MachineState,
    ModuleCollaborator,
    run_generation,
)

__all__ = [
    # Resolver
    "DependencyResolver",
    "resolve",
    # Context
    "ProjectContextTracker",
    "classify_path",
    "external_package",
    "path_keys",
    # State machine
    "GenerationRun",
    "GenerationStateMachine",
    "GenerationStatus",
    "MachineState",
    "ModuleCollaborator",
    "run_generation",
]
