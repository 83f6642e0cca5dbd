from __future__ import annotations

"""Pydantic payload models for documents this package builds itself."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

DESIGN_PREFIX = "_design/"


class ViewDefinition(BaseModel):
    """Map function source and optional reduce function source for one view."""

    map: str = Field(description="JavaScript map function source")
    reduce: str | None = Field(default=None, description="Optional reduce function source")


class DesignDocument(BaseModel):
    """Design document registering one or more named views."""

    language: str = "javascript"
    views: dict[str, ViewDefinition] = Field(default_factory=dict)

    @classmethod
    def from_view_maps(cls, view_maps: Mapping[str, Mapping[str, Any]]) -> DesignDocument:
        """Build a design document from ``{view_name: {"map": ..., "reduce": ...}}``.

        Only ``map`` and ``reduce`` are read from each entry; a missing or
        empty reduce leaves the view without one, and a missing map raises
        ``pydantic.ValidationError``.
        """

        views = {
            name: ViewDefinition.model_validate(
                {"map": view.get("map"), "reduce": view.get("reduce") or None}
            )
            for name, view in view_maps.items()
        }
        return cls(views=views)

    def payload(self) -> dict[str, Any]:
        """Return the JSON body sent to the server, omitting absent reduces."""

        return self.model_dump(exclude_none=True)


def design_id(design_name: str) -> str:
    """Return the reserved document id for a design name."""

    return f"{DESIGN_PREFIX}{design_name}"
