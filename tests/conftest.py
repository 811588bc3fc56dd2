"""Pytest configuration and test categorization.

Tests live in a flat `tests/` layout and are categorized into `unit`,
`regression`, `e2e` and `benchmark` via markers so CI can run targeted subsets.
"""

from __future__ import annotations

import os
import pathlib
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


def pytest_configure(config: pytest.Config) -> None:
    for name, text in (
        ("unit", "fast, isolated tests"),
        ("regression", "pinned numerical behaviour"),
        ("e2e", "full parameter-to-result workflows"),
        ("benchmark", "larger meshes, slower"),
    ):
        config.addinivalue_line("markers", f"{name}: {text}")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Auto-apply test category markers based on filename conventions."""
    for item in items:
        path = pathlib.Path(str(item.fspath))
        name = path.name.lower()

        if "benchmark" in name:
            item.add_marker(pytest.mark.benchmark)
            continue

        if "e2e" in name or "end_to_end" in name:
            item.add_marker(pytest.mark.e2e)
            continue

        if "regression" in name:
            item.add_marker(pytest.mark.regression)
            continue

        item.add_marker(pytest.mark.unit)
