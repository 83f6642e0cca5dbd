from __future__ import annotations

import pytest

from couchfluent.names import resolve


@pytest.mark.parametrize(
    ("name", "prefix", "expected"),
    [
        ("people", "test_", "test_people"),
        ("people", "", "people"),
        ("people", None, "people"),
        ("", "test_", "test_"),
    ],
)
def test_resolve_applies_prefix_only_when_set(name, prefix, expected):
    assert resolve(name, prefix) == expected
