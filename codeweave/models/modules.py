"""Generation module definitions.

A module is a unit of generation: a set of files produced together, with
declared dependencies on other modules of the same batch.
"""

from enum import Enum

from pydantic import Field

from .base import Record, SortedStrSet


class FileType(str, Enum):
    """Classification of a generated file."""

    COMPONENT = "component"
    HOOK = "hook"
    UTIL = "util"
    TEST = "test"
    TYPE = "type"


class FileRequirements(Record):
    """What a file needs from, and offers to, its peers."""

    imports: list[str] = Field(default_factory=list)
    exports: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)


class FileDefinition(Record):
    """A file that a module is expected to produce."""

    path: str
    type: FileType
    description: str = ""
    content: str | None = None  # Pre-filled content, used as-is
    requires: FileRequirements = Field(default_factory=FileRequirements)


class ModuleContextHints(Record):
    """Project-wide facts a module contributes once generated."""

    state_management: list[str] = Field(default_factory=list)
    api_endpoints: list[str] = Field(default_factory=list)
    shared_utils: list[str] = Field(default_factory=list)
    test_cases: list[str] = Field(default_factory=list)


class ModuleDefinition(Record):
    """A module of a generation batch."""

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    dependencies: SortedStrSet = Field(default_factory=set)
    files: list[FileDefinition] = Field(default_factory=list)
    order: int = 0  # Tie-break only
    context: ModuleContextHints | None = None

    @property
    def declared_imports(self) -> list[str]:
        return [imp for f in self.files for imp in f.requires.imports]

    @property
    def declared_exports(self) -> list[str]:
        return [exp for f in self.files for exp in f.requires.exports]
