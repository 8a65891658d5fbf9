"""Generation State Machine - drives module-by-module code generation.

States::

    idle -> scheduling -> generating(module) -> generating(next)
                                             -> completed | failed | cancelled

The machine is a LangGraph workflow (schedule -> generate, looping -> finish).
Modules are generated strictly one at a time in resolver order, so each module
sees the ProjectContext exactly as left by the modules completed before it.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, TypedDict, runtime_checkable

import structlog
from langgraph.graph import END, StateGraph

from codeweave.core.errors import (
    InvalidStateError,
    ModuleGenerationError,
    SchedulingError,
)
from codeweave.engine.context import ProjectContextTracker
from codeweave.engine.resolver import DependencyResolver
from codeweave.models import (
    GenerationHistoryEntry,
    GenerationState,
    ModuleDefinition,
    ProjectContext,
)

logger = structlog.get_logger()


class GenerationStatus(str, Enum):
    """Lifecycle state of a generation run."""

    IDLE = "idle"
    SCHEDULING = "scheduling"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            GenerationStatus.COMPLETED,
            GenerationStatus.FAILED,
            GenerationStatus.CANCELLED,
        )


@runtime_checkable
class ModuleCollaborator(Protocol):
    """Produces the files of one module."""

    async def generate(
        self,
        module: ModuleDefinition,
        context: ProjectContext,
    ) -> Mapping[str, str]:
        """Generate file contents for a module.

        Args:
            module: The module to generate
            context: Snapshot of the project context; mutations are discarded

        Returns:
            Path -> content for every produced file

        Raises:
            ModuleGenerationError: Generation failed
        """
        ...


@dataclass
class GenerationRun:
    """Outcome of a generation run."""

    status: GenerationStatus
    state: GenerationState
    order: list[str]
    error: ModuleGenerationError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == GenerationStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "order": self.order,
            "error": self.error.to_dict() if self.error else None,
            "state": self.state.to_record(),
        }


class MachineState(TypedDict, total=False):
    """Control state flowing through the LangGraph workflow."""

    order: list[str]
    cursor: int
    status: str


class GenerationStateMachine:
    """Runs one generation batch.

    The machine is the single writer of its ``GenerationState`` and
    ``ProjectContext``. Collaborators receive snapshots.
    """

    def __init__(
        self,
        modules: Mapping[str, ModuleDefinition] | Iterable[ModuleDefinition],
        collaborator: ModuleCollaborator,
        resolver: DependencyResolver | None = None,
    ):
        if isinstance(modules, Mapping):
            definitions = dict(modules)
        else:
            definitions = {module.id: module for module in modules}

        self.collaborator = collaborator
        self.resolver = resolver or DependencyResolver()
        self.state = GenerationState(module_definitions=definitions)
        self.status = GenerationStatus.IDLE
        self.order: list[str] = []
        self.error: ModuleGenerationError | None = None

        self._tracker = ProjectContextTracker(self.state.project_context)
        self._cancel_requested = False
        self._logger = logger.bind(component="GenerationStateMachine")

    def cancel(self) -> None:
        """Stop after the module currently generating, if any."""
        self._cancel_requested = True

    @property
    def remaining_modules(self) -> list[str]:
        done = self.state.completed_modules | self.state.failed_modules
        return [module_id for module_id in self.order if module_id not in done]

    async def run(self) -> GenerationRun:
        """Generate every module in dependency order.

        Returns:
            GenerationRun with the final status and the (possibly partial) state

        Raises:
            CycleError: The module dependency graph has a cycle
            UnknownDependencyError: A module depends on an unknown module
            InvalidStateError: The machine has already run
        """
        if self.status != GenerationStatus.IDLE:
            raise InvalidStateError(f"Generation already {self.status.value}")

        await self._logger.ainfo(
            "Starting generation run",
            module_count=len(self.state.module_definitions),
        )

        app = self.create_graph().compile()
        await app.ainvoke(
            MachineState(order=[], cursor=0, status=GenerationStatus.IDLE.value),
            config={"recursion_limit": len(self.state.module_definitions) + 10},
        )

        await self._logger.ainfo(
            "Generation run finished",
            status=self.status.value,
            completed=len(self.state.completed_modules),
            failed=sorted(self.state.failed_modules),
            remaining=len(self.remaining_modules),
        )

        return GenerationRun(
            status=self.status,
            state=self.state,
            order=list(self.order),
            error=self.error,
        )

    def create_graph(self) -> StateGraph:
        """Create the LangGraph workflow for the machine."""
        workflow = StateGraph(MachineState)

        workflow.add_node("schedule", self._schedule_node)
        workflow.add_node("generate", self._generate_node)
        workflow.add_node("finish", self._finish_node)

        workflow.set_entry_point("schedule")

        routes = {"generate": "generate", "finish": "finish"}
        workflow.add_conditional_edges("schedule", self._next_step, routes)
        workflow.add_conditional_edges("generate", self._next_step, routes)
        workflow.add_edge("finish", END)

        return workflow

    async def _schedule_node(self, state: MachineState) -> MachineState:
        self.status = GenerationStatus.SCHEDULING
        try:
            self.order = self.resolver.resolve(self.state.module_definitions)
        except SchedulingError as e:
            self.status = GenerationStatus.FAILED
            await self._logger.aerror("Scheduling failed", error=str(e))
            raise

        await self._logger.ainfo("Generation scheduled", order=self.order)
        return MachineState(
            order=self.order,
            cursor=0,
            status=GenerationStatus.SCHEDULING.value,
        )

    def _next_step(self, state: MachineState) -> str:
        if state.get("status") == GenerationStatus.FAILED.value:
            return "finish"
        if self._cancel_requested:
            return "finish"
        if state.get("cursor", 0) < len(state.get("order", [])):
            return "generate"
        return "finish"

    async def _generate_node(self, state: MachineState) -> MachineState:
        cursor = state["cursor"]
        module_id = state["order"][cursor]
        module = self.state.module_definitions[module_id]

        self.status = GenerationStatus.GENERATING
        self.state.current_module = module_id

        await self._logger.ainfo(
            "Generating module",
            module_id=module_id,
            position=cursor + 1,
            total=len(state["order"]),
        )

        try:
            produced = await self.collaborator.generate(module, self._tracker.snapshot())
            files = self._collect_files(module, produced)
        except ModuleGenerationError as e:
            return await self._fail(module_id, e, cursor)
        except Exception as e:
            return await self._fail(
                module_id,
                ModuleGenerationError(module_id, str(e) or type(e).__name__),
                cursor,
            )

        self.state.generated_files.update(files)
        self._tracker.commit(module, files)
        self.state.completed_modules.add(module_id)
        self.state.generation_history.append(GenerationHistoryEntry(
            module_id=module_id,
            context=self.state.project_context.digest(),
        ))

        await self._logger.ainfo(
            "Module generated",
            module_id=module_id,
            file_count=len(files),
        )

        return MachineState(
            order=state["order"],
            cursor=cursor + 1,
            status=GenerationStatus.GENERATING.value,
        )

    async def _finish_node(self, state: MachineState) -> MachineState:
        if self.status == GenerationStatus.FAILED:
            return MachineState(status=GenerationStatus.FAILED.value)

        if self._cancel_requested and self.remaining_modules:
            self.status = GenerationStatus.CANCELLED
            await self._logger.awarning(
                "Generation cancelled",
                remaining=self.remaining_modules,
            )
        else:
            self.status = GenerationStatus.COMPLETED

        self.state.current_module = None
        return MachineState(status=self.status.value)

    async def _fail(
        self,
        module_id: str,
        error: ModuleGenerationError,
        cursor: int,
    ) -> MachineState:
        self.state.failed_modules.add(module_id)
        self.status = GenerationStatus.FAILED
        self.error = error

        await self._logger.aerror(
            "Generation failed",
            module_id=module_id,
            error=error.message,
        )

        return MachineState(cursor=cursor, status=GenerationStatus.FAILED.value)

    def _collect_files(
        self,
        module: ModuleDefinition,
        produced: Mapping[str, str],
    ) -> dict[str, str]:
        """Overlay produced files on the module's pre-filled contents."""
        if not isinstance(produced, Mapping):
            raise ModuleGenerationError(
                module.id,
                f"Collaborator returned {type(produced).__name__}, expected a mapping",
            )

        files = {f.path: f.content for f in module.files if f.content is not None}
        for path, content in produced.items():
            if not isinstance(path, str) or not isinstance(content, str):
                raise ModuleGenerationError(
                    module.id,
                    f"Invalid file entry {path!r}: paths and contents must be strings",
                )
            files[path] = content
        return files


async def run_generation(
    modules: Mapping[str, ModuleDefinition] | Iterable[ModuleDefinition],
    collaborator: ModuleCollaborator,
) -> GenerationRun:
    """Run a generation batch with a fresh state machine."""
    return await GenerationStateMachine(modules, collaborator).run()
