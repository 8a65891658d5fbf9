"""Source input handed to analyzer ports."""

import hashlib
from collections.abc import Mapping
from pathlib import PurePosixPath

from pydantic import ConfigDict, Field

from .base import Record

SINGLE_SOURCE_PATH = "<source>"


def fingerprint_source(text: str) -> str:
    """Content fingerprint of a single source text."""
    return hashlib.sha256(text.encode()).hexdigest()[:16]


def fingerprint_files(files: Mapping[str, str]) -> str:
    """Content fingerprint of a set of files, independent of mapping order."""
    digest = hashlib.sha256()
    for path in sorted(files):
        digest.update(path.encode())
        digest.update(b"\0")
        digest.update(files[path].encode())
        digest.update(b"\0")
    return digest.hexdigest()[:16]


class SourceBundle(Record):
    """One or more source units to analyze, keyed by path."""

    model_config = ConfigDict(frozen=True)

    files: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str, path: str = SINGLE_SOURCE_PATH) -> "SourceBundle":
        return cls(files={path: text})

    @property
    def text(self) -> str:
        """All units concatenated in path order."""
        return "\n".join(self.files[path] for path in sorted(self.files))

    def units(self) -> list[tuple[str, str]]:
        return [(path, self.files[path]) for path in sorted(self.files)]

    @staticmethod
    def suffix(path: str) -> str:
        return PurePosixPath(path).suffix.lower()
