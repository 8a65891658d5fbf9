"""Shared base for serializable records.

Attributes are snake_case in Python; ``to_record()`` emits the camelCase
field names used by external consumers and persistence.
"""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# Sets are emitted as sorted lists so records are stable across runs
SortedStrSet = Annotated[
    set[str],
    PlainSerializer(lambda values: sorted(values), return_type=list[str], when_used="json"),
]


class Record(BaseModel):
    """Base model for records crossing the library boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_record(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, data: dict[str, Any]):
        """Restore a record produced by ``to_record()``."""
        return cls.model_validate(data)
