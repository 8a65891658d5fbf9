"""Dependency Resolver - deterministic generation order for modules.

Topologically sorts a batch of module definitions (Kahn's algorithm over
edges dependency -> dependent). Among modules that become ready together,
the one with the lower ``order`` hint goes first, then the lower id.
"""

import heapq
from collections.abc import Mapping

import structlog

from codeweave.core.errors import CycleError, UnknownDependencyError
from codeweave.models import ModuleDefinition

logger = structlog.get_logger()


class DependencyResolver:
    """Orders module definitions so every module follows its dependencies."""

    def __init__(self):
        self._logger = logger.bind(component="DependencyResolver")

    def resolve(self, modules: Mapping[str, ModuleDefinition]) -> list[str]:
        """Get the generation order.

        Args:
            modules: Module id -> definition for the whole batch

        Returns:
            Module ids, each after all of its dependencies

        Raises:
            UnknownDependencyError: A dependency is not part of the batch
            CycleError: The dependency graph is not acyclic
        """
        self._check_known(modules)

        in_degree = {module_id: 0 for module_id in modules}
        dependents: dict[str, list[str]] = {module_id: [] for module_id in modules}
        for module_id, module in modules.items():
            for dep_id in module.dependencies:
                in_degree[module_id] += 1
                dependents[dep_id].append(module_id)

        ready = [
            (modules[module_id].order, module_id)
            for module_id, degree in in_degree.items()
            if degree == 0
        ]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            _, module_id = heapq.heappop(ready)
            order.append(module_id)
            for dependent_id in dependents[module_id]:
                in_degree[dependent_id] -= 1
                if in_degree[dependent_id] == 0:
                    heapq.heappush(ready, (modules[dependent_id].order, dependent_id))

        if len(order) < len(modules):
            remaining = {module_id for module_id, degree in in_degree.items() if degree > 0}
            cycle = self._find_cycle(modules, remaining)
            self._logger.warning("Cycle detected", cycle=cycle)
            raise CycleError(cycle)

        self._logger.debug("Modules resolved", order=order)
        return order

    def ordered_levels(self, modules: Mapping[str, ModuleDefinition]) -> list[list[str]]:
        """Group the resolved order into levels of mutually independent modules.

        Each level depends only on modules of earlier levels. Useful for
        previewing a generation plan.
        """
        order = self.resolve(modules)
        level_of: dict[str, int] = {}
        levels: list[list[str]] = []

        for module_id in order:
            deps = modules[module_id].dependencies
            level = max((level_of[dep] + 1 for dep in deps), default=0)
            level_of[module_id] = level
            if level == len(levels):
                levels.append([])
            levels[level].append(module_id)

        return levels

    def _check_known(self, modules: Mapping[str, ModuleDefinition]) -> None:
        for module_id in sorted(modules):
            for dep_id in sorted(modules[module_id].dependencies):
                if dep_id not in modules:
                    raise UnknownDependencyError(module_id, dep_id)

    def _find_cycle(
        self,
        modules: Mapping[str, ModuleDefinition],
        remaining: set[str],
    ) -> list[str]:
        """Extract one real cycle among modules Kahn's algorithm could not place.

        Every remaining module still has a remaining dependency, so following
        dependencies from any of them must revisit a module.
        """
        path: list[str] = []
        position: dict[str, int] = {}
        current = min(remaining)

        while current not in position:
            position[current] = len(path)
            path.append(current)
            current = min(dep for dep in modules[current].dependencies if dep in remaining)

        return path[position[current]:]


def resolve(modules: Mapping[str, ModuleDefinition]) -> list[str]:
    """Resolve a generation order with a default resolver."""
    return DependencyResolver().resolve(modules)
