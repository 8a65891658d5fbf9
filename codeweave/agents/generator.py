"""Module Generator Agent.

The default code-producing collaborator of the generation state machine.
Prompts a chat model with one module's specification and the current project
context, then splits the response into files.

Expected response format, one section per file::

    ### `src/hooks/useAuth.ts`
    ```ts
    ...code...
    ```
"""

import re
import time
from collections.abc import Mapping

import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from codeweave.agents.base import AgentConfig, BaseAgent
from codeweave.core.config import Settings
from codeweave.core.errors import ModuleGenerationError
from codeweave.models import ModuleDefinition, ProjectContext

logger = structlog.get_logger()

FILE_BLOCK = re.compile(
    r"^#{1,6}\s*`?(?P<path>[^`\n]+?)`?\s*\n+```[^\n]*\n(?P<code>.*?)\n?```",
    re.MULTILINE | re.DOTALL,
)


MODULE_GENERATOR_PROMPT = """You are the Module Generator in a dependency-ordered code generation system.

Your role is to generate production-quality code for every file of one module, given:
1. The module specification (files, their types, purposes, imports and exports)
2. The project context left by the modules generated before it
3. Shared state keys and API endpoints that other modules already own

## Code Generation Rules

1. **Respect the Project Context**
   - Import from already-generated files using the exported names listed
   - Do not redefine shared state or API endpoints owned by other modules
   - Don't create circular imports

2. **Honor the File Contract**
   - Every declared export must exist with exactly that name
   - Only import what the file declares it requires, plus standard libraries

3. **Code Quality Standards**
   - Type all public functions
   - Document classes and public functions
   - Handle errors appropriately

4. **Output Format**
   - For EACH file, write a heading with the path in backticks, then one fenced code block
   - No explanations outside the code blocks"""


class ModuleGeneratorAgent(BaseAgent):
    """LLM-backed ``ModuleCollaborator``."""

    default_system_prompt = MODULE_GENERATOR_PROMPT

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        config: AgentConfig | None = None,
        settings: Settings | None = None,
    ):
        config = config or AgentConfig.from_settings("ModuleGenerator", settings)
        super().__init__(config, llm)

    async def generate(
        self,
        module: ModuleDefinition,
        context: ProjectContext,
    ) -> Mapping[str, str]:
        """Generate the files of a module.

        Raises:
            ModuleGenerationError: The LLM failed or never produced every requested file
        """
        start_time = time.time()
        requested = [f.path for f in module.files if f.content is None]
        if not requested:
            await self._logger.ainfo("Module has no files to generate", module_id=module.id)
            return {}

        prompt = self._build_generation_prompt(module, context)

        files: dict[str, str] = {}
        missing = list(requested)
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                response = await self.invoke(
                    [HumanMessage(content=prompt)],
                    module_id=module.id,
                    attempt=attempt,
                )
            except Exception as e:
                await self._logger.aerror(
                    "LLM invocation failed",
                    module_id=module.id,
                    error=str(e),
                )
                raise ModuleGenerationError(module.id, f"LLM invocation failed: {e}") from e

            files.update(self._extract_files(response.content, missing))
            missing = [path for path in requested if path not in files]
            if not missing:
                break

            await self._logger.awarning(
                "Files missing from response",
                module_id=module.id,
                attempt=attempt,
                missing=missing,
            )
            prompt = self._build_retry_prompt(module, context, missing)

        if missing:
            raise ModuleGenerationError(module.id, f"Missing generated files: {', '.join(missing)}")

        await self._logger.ainfo(
            "Module generated successfully",
            module_id=module.id,
            file_count=len(files),
            elapsed_ms=int((time.time() - start_time) * 1000),
        )
        return files

    def _build_generation_prompt(self, module: ModuleDefinition, context: ProjectContext) -> str:
        parts = []

        parts.append("## MODULE_SPEC")
        parts.append(f"ID: {module.id}")
        parts.append(f"Name: {module.name}")
        if module.description:
            parts.append(f"Purpose: {module.description}")
        if module.dependencies:
            parts.append(f"Depends on: {', '.join(sorted(module.dependencies))}")
        parts.append("")

        parts.append("## FILES")
        for f in module.files:
            if f.content is not None:
                parts.append(f"- `{f.path}` ({f.type.value}): already written, do not regenerate")
                continue
            parts.append(f"- `{f.path}` ({f.type.value})")
            if f.description:
                parts.append(f"  Purpose: {f.description}")
            if f.requires.imports:
                parts.append(f"  Imports: {', '.join(f.requires.imports)}")
            if f.requires.exports:
                parts.append(f"  Exports: {', '.join(f.requires.exports)}")
            if f.requires.types:
                parts.append(f"  Types: {', '.join(f.requires.types)}")
        parts.append("")

        if module.context:
            hints = module.context
            parts.append("## MODULE_CONTEXT")
            if hints.state_management:
                parts.append(f"Owns state: {', '.join(hints.state_management)}")
            if hints.api_endpoints:
                parts.append(f"Owns endpoints: {', '.join(hints.api_endpoints)}")
            if hints.shared_utils:
                parts.append(f"Shares utilities: {', '.join(hints.shared_utils)}")
            if hints.test_cases:
                parts.append("Test cases:")
                parts.extend(f"- {case}" for case in hints.test_cases)
            parts.append("")

        parts.append(self._context_section(context))

        parts.append("## INSTRUCTIONS")
        parts.append("Generate the complete code for every file that is not already written.")
        parts.append("Use a heading with the path in backticks followed by one fenced code block per file.")

        return "\n".join(parts)

    def _build_retry_prompt(
        self,
        module: ModuleDefinition,
        context: ProjectContext,
        missing: list[str],
    ) -> str:
        parts = [self._build_generation_prompt(module, context)]
        parts.append("\n## PREVIOUS ATTEMPT INCOMPLETE")
        parts.append("The following files were missing or not formatted as requested:\n")
        parts.extend(f"- `{path}`" for path in missing)
        return "\n".join(parts)

    def _context_section(self, context: ProjectContext) -> str:
        parts = ["## PROJECT_CONTEXT"]
        paths = context.structure.all_paths()
        if not paths:
            parts.append("No files generated yet.")
        else:
            parts.append("Existing files:")
            parts.extend(f"- {path}" for path in paths)
        if context.exports:
            parts.append("Exports available for import:")
            parts.extend(f"- {symbol} (from {owner})" for symbol, owner in sorted(context.exports.items()))
        if context.shared_state:
            parts.append(f"Shared state: {', '.join(sorted(context.shared_state))}")
        if context.api_schema:
            parts.append(f"API endpoints: {', '.join(sorted(context.api_schema))}")
        if context.dependencies.external:
            parts.append(f"External packages: {', '.join(sorted(context.dependencies.external))}")
        parts.append("")
        return "\n".join(parts)

    def _extract_files(self, content: str, requested: list[str]) -> dict[str, str]:
        """Split an LLM response into files."""
        if not isinstance(content, str):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )

        files = {
            match.group("path").strip(): match.group("code")
            for match in FILE_BLOCK.finditer(content)
        }
        if files:
            return files

        # A single requested file may come back as bare code
        if len(requested) == 1:
            return {requested[0]: self._extract_code(content)}
        return {}

    def _extract_code(self, content: str) -> str:
        """Strip a surrounding markdown code fence."""
        content = content.strip()
        if content.startswith("```"):
            content = content.split("\n", 1)[1] if "\n" in content else ""
        if content.endswith("```"):
            content = content[:-3]
        return content.strip()
