"""Shared pydantic base classes."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Frozen model that reads and writes camelCase JSON keys.

    Construction accepts either the alias (``wellId``) or the Python field
    name (``well_id``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class MutableCamelModel(CamelModel):
    """camelCase model whose attributes may be reassigned (session state)."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)
