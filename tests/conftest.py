"""Shared pytest fixtures."""

from __future__ import annotations

import pytest


@pytest.fixture
def make_refs():
    """Return a factory producing ``count`` sequential message identifiers."""

    def _make(count: int) -> list[str]:
        return [f"m{index}" for index in range(count)]

    return _make
