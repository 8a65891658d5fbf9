"""Tests for the generation state machine."""

import pytest

from codeweave.core.errors import CycleError, InvalidStateError, UnknownDependencyError
from codeweave.engine.state_machine import (
    GenerationStateMachine,
    GenerationStatus,
    ModuleCollaborator,
    run_generation,
)
from codeweave.models import ModuleDefinition


class TestGenerationRun:
    """Tests for a successful generation run."""

    @pytest.mark.asyncio
    async def test_generates_in_dependency_order(self, sample_modules, collaborator):
        """Test modules are generated after their dependencies."""
        machine = GenerationStateMachine(sample_modules, collaborator)

        run = await machine.run()

        assert run.status == GenerationStatus.COMPLETED
        assert run.succeeded
        assert run.order == ["utils", "auth", "login"]
        assert collaborator.generated == ["utils", "auth", "login"]
        assert run.state.completed_modules == {"utils", "auth", "login"}
        assert run.state.failed_modules == set()
        assert run.state.current_module is None

    @pytest.mark.asyncio
    async def test_collects_generated_and_prefilled_files(self, sample_modules, collaborator):
        """Test pre-filled content is kept as-is next to generated files."""
        run = await GenerationStateMachine(sample_modules, collaborator).run()

        files = run.state.generated_files
        assert files["src/types/auth.d.ts"] == "export interface User { id: string }\n"
        assert files["src/hooks/useAuth.ts"] == "// auth: src/hooks/useAuth.ts\n"
        assert set(files) == {
            "src/utils/format.ts",
            "src/hooks/useAuth.ts",
            "src/types/auth.d.ts",
            "src/components/LoginForm.tsx",
            "src/components/LoginForm.test.tsx",
        }

    @pytest.mark.asyncio
    async def test_each_module_sees_earlier_context(self, sample_modules, collaborator):
        """Test the context handed to a module reflects every earlier module."""
        await GenerationStateMachine(sample_modules, collaborator).run()

        contexts = dict(collaborator.calls)
        assert contexts["utils"].exports == {}
        assert contexts["auth"].exports == {"formatDate": "utils"}
        assert contexts["login"].exports == {"formatDate": "utils", "useAuth": "auth"}
        assert "auth" in contexts["login"].shared_state

    @pytest.mark.asyncio
    async def test_collaborator_mutations_are_discarded(self, sample_modules, make_collaborator):
        """Test a collaborator writing to its context does not touch the run state."""
        def tamper(module):
            # Mutate the snapshot this call received
            if collaborator.calls:
                collaborator.calls[-1][1].exports["tampered"] = module.id

        collaborator = make_collaborator(on_generate=tamper)
        run = await GenerationStateMachine(sample_modules, collaborator).run()

        assert "tampered" not in run.state.project_context.exports

    @pytest.mark.asyncio
    async def test_history_records_context_digests(self, sample_modules, collaborator):
        """Test each completed module appends one history entry."""
        run = await GenerationStateMachine(sample_modules, collaborator).run()

        history = run.state.generation_history
        assert [entry.module_id for entry in history] == ["utils", "auth", "login"]
        assert history[-1].context == run.state.project_context.digest()
        assert len({entry.context for entry in history}) == 3

    @pytest.mark.asyncio
    async def test_accepts_module_list(self, collaborator):
        """Test modules may be given as a list of definitions."""
        modules = [
            ModuleDefinition(id="b", name="b", dependencies={"a"}),
            ModuleDefinition(id="a", name="a"),
        ]

        run = await run_generation(modules, collaborator)

        assert run.order == ["a", "b"]
        assert run.succeeded

    @pytest.mark.asyncio
    async def test_empty_batch_completes(self, collaborator):
        """Test a batch without modules completes immediately."""
        run = await run_generation({}, collaborator)

        assert run.status == GenerationStatus.COMPLETED
        assert collaborator.calls == []

    @pytest.mark.asyncio
    async def test_run_twice_rejected(self, chain_modules, collaborator):
        """Test a machine only runs once."""
        machine = GenerationStateMachine(chain_modules, collaborator)
        await machine.run()

        with pytest.raises(InvalidStateError):
            await machine.run()

    def test_recording_collaborator_satisfies_protocol(self, collaborator):
        """Test the collaborator protocol is structural."""
        assert isinstance(collaborator, ModuleCollaborator)


class TestGenerationFailure:
    """Tests for failed generation runs."""

    @pytest.mark.asyncio
    async def test_failure_halts_run(self, chain_modules, failing_collaborator):
        """Test a failing module stops the run and keeps earlier work."""
        machine = GenerationStateMachine(chain_modules, failing_collaborator)

        run = await machine.run()

        assert run.status == GenerationStatus.FAILED
        assert not run.succeeded
        assert run.state.completed_modules == {"A"}
        assert run.state.failed_modules == {"B"}
        assert run.state.current_module == "B"
        assert failing_collaborator.generated == ["A", "B"]
        assert machine.remaining_modules == ["C"]
        assert run.error.module_id == "B"
        assert "model refused" in str(run.error)

    @pytest.mark.asyncio
    async def test_failure_leaves_context_of_completed_modules(self, sample_modules, make_collaborator):
        """Test the context after a failure holds exactly the completed modules."""
        collaborator = make_collaborator(fail_on="login")

        run = await GenerationStateMachine(sample_modules, collaborator).run()

        context = run.state.project_context
        assert context.exports == {"formatDate": "utils", "useAuth": "auth"}
        assert "src/components/LoginForm.tsx" not in run.state.generated_files
        assert "login" not in context.test_coverage

    @pytest.mark.asyncio
    async def test_unexpected_exception_wrapped(self, chain_modules, make_collaborator):
        """Test any collaborator exception becomes a ModuleGenerationError."""
        collaborator = make_collaborator(fail_on="A", error=RuntimeError("boom"))

        run = await GenerationStateMachine(chain_modules, collaborator).run()

        assert run.status == GenerationStatus.FAILED
        assert run.error.module_id == "A"
        assert run.error.message == "boom"

    @pytest.mark.asyncio
    async def test_invalid_output_fails_module(self, chain_modules):
        """Test non-string file contents fail the module."""
        class BadCollaborator:
            async def generate(self, module, context):
                return {"a.py": 42}

        run = await GenerationStateMachine(chain_modules, BadCollaborator()).run()

        assert run.status == GenerationStatus.FAILED
        assert run.state.failed_modules == {"A"}
        assert run.state.generated_files == {}

    @pytest.mark.asyncio
    async def test_cycle_raised_before_generation(self, collaborator):
        """Test a dependency cycle is raised to the caller."""
        modules = {
            "A": ModuleDefinition(id="A", name="A", dependencies={"B"}),
            "B": ModuleDefinition(id="B", name="B", dependencies={"A"}),
        }
        machine = GenerationStateMachine(modules, collaborator)

        with pytest.raises(CycleError) as exc_info:
            await machine.run()

        assert exc_info.value.cycle == ["A", "B"]
        assert machine.status == GenerationStatus.FAILED
        assert collaborator.calls == []

    @pytest.mark.asyncio
    async def test_unknown_dependency_raised(self, collaborator):
        """Test an unknown dependency is raised to the caller."""
        modules = {"A": ModuleDefinition(id="A", name="A", dependencies={"ghost"})}

        with pytest.raises(UnknownDependencyError):
            await run_generation(modules, collaborator)


class TestCancellation:
    """Tests for cancelling a run."""

    @pytest.mark.asyncio
    async def test_cancel_stops_after_current_module(self, chain_modules, make_collaborator):
        """Test cancelling during a module lets it finish and skips the rest."""
        def cancel_on_first(module):
            if module.id == "A":
                machine.cancel()

        collaborator = make_collaborator(on_generate=cancel_on_first)
        machine = GenerationStateMachine(chain_modules, collaborator)

        run = await machine.run()

        assert run.status == GenerationStatus.CANCELLED
        assert run.state.completed_modules == {"A"}
        assert machine.remaining_modules == ["B", "C"]
        assert collaborator.generated == ["A"]

    @pytest.mark.asyncio
    async def test_cancel_after_last_module_completes(self, chain_modules, make_collaborator):
        """Test a cancel with nothing left to do still completes."""
        def cancel_on_last(module):
            if module.id == "C":
                machine.cancel()

        collaborator = make_collaborator(on_generate=cancel_on_last)
        machine = GenerationStateMachine(chain_modules, collaborator)

        run = await machine.run()

        assert run.status == GenerationStatus.COMPLETED

    def test_terminal_states(self):
        """Test which statuses are terminal."""
        assert GenerationStatus.COMPLETED.is_terminal
        assert GenerationStatus.FAILED.is_terminal
        assert GenerationStatus.CANCELLED.is_terminal
        assert not GenerationStatus.GENERATING.is_terminal
        assert not GenerationStatus.IDLE.is_terminal

    @pytest.mark.asyncio
    async def test_run_result_serializes(self, chain_modules, failing_collaborator):
        """Test the run result converts to a plain dict."""
        run = await GenerationStateMachine(chain_modules, failing_collaborator).run()

        data = run.to_dict()

        assert data["status"] == "failed"
        assert data["error"]["module_id"] == "B"
        assert data["state"]["completedModules"] == ["A"]
        assert data["state"]["failedModules"] == ["B"]
