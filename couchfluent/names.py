from __future__ import annotations

"""Logical to physical database name resolution."""


def resolve(logical_name: str, prefix: str | None = None) -> str:
    """Map a logical database name to the physical name sent to the server."""

    if prefix:
        return f"{prefix}{logical_name}"
    return logical_name
