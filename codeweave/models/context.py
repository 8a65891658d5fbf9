"""Project context and generation state records.

``ProjectContext`` and ``GenerationState`` are owned by the generation state
machine. Everything else reads them through ``snapshot()`` copies.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from .base import Record, SortedStrSet
from .modules import ModuleDefinition


class ProjectStructure(Record):
    """Produced artifact paths, classified by file type."""

    components: list[str] = Field(default_factory=list)
    hooks: list[str] = Field(default_factory=list)
    utils: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)
    tests: list[str] = Field(default_factory=list)

    def all_paths(self) -> list[str]:
        return [
            *self.components,
            *self.hooks,
            *self.utils,
            *self.types,
            *self.tests,
        ]


class ProjectDependencies(Record):
    """Dependencies observed while generating."""

    internal: dict[str, list[str]] = Field(default_factory=dict)  # module -> modules used
    external: SortedStrSet = Field(default_factory=set)  # package names


class ProjectContext(Record):
    """Shared context accumulated as modules complete."""

    structure: ProjectStructure = Field(default_factory=ProjectStructure)
    dependencies: ProjectDependencies = Field(default_factory=ProjectDependencies)
    shared_state: dict[str, Any] = Field(default_factory=dict)
    api_schema: dict[str, Any] = Field(default_factory=dict)
    test_coverage: dict[str, float] = Field(default_factory=dict)
    exports: dict[str, str] = Field(default_factory=dict)  # symbol -> module id

    def snapshot(self) -> "ProjectContext":
        """Independent deep copy for readers."""
        return self.model_copy(deep=True)

    def digest(self) -> str:
        """Short content digest of the context."""
        payload = json.dumps(self.to_record(), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()[:16]


class GenerationHistoryEntry(Record):
    """One completed module in the generation log."""

    module_id: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    context: str  # ProjectContext digest after the module completed


class GenerationState(Record):
    """State of one generation run."""

    current_module: str | None = None
    completed_modules: SortedStrSet = Field(default_factory=set)
    failed_modules: SortedStrSet = Field(default_factory=set)
    module_definitions: dict[str, ModuleDefinition] = Field(default_factory=dict)
    generated_files: dict[str, str] = Field(default_factory=dict)
    project_context: ProjectContext = Field(default_factory=ProjectContext)
    generation_history: list[GenerationHistoryEntry] = Field(default_factory=list)

    def snapshot(self) -> "GenerationState":
        return self.model_copy(deep=True)
