"""Tests for the service container."""

from __future__ import annotations

import pytest

from inbox_digest.core.container import ServiceContainer


class Closable:
    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self.log = log

    def close(self) -> None:
        self.log.append(self.name)


def test_services_are_built_once() -> None:
    container = ServiceContainer()
    built: list[int] = []
    container.register("thing", lambda _: built.append(1) or object())

    first = container.resolve("thing")

    assert container.resolve("thing") is first
    assert built == [1]
    assert "thing" in container


def test_unknown_service_raises_key_error() -> None:
    with pytest.raises(KeyError):
        ServiceContainer().resolve("missing")


def test_close_runs_newest_first_and_forgets_services() -> None:
    log: list[str] = []
    container = ServiceContainer()
    container.register("base", lambda _: Closable("base", log))
    container.register("derived", lambda c: (c.resolve("base"), Closable("derived", log))[1])
    container.register("plain", lambda _: 42)

    container.resolve("derived")
    container.resolve("plain")
    container.close()

    assert log == ["derived", "base"]
    container.close()
    assert log == ["derived", "base"]


def test_register_after_use_is_rejected() -> None:
    container = ServiceContainer()
    container.register("thing", lambda _: 1)
    container.resolve("thing")

    with pytest.raises(RuntimeError):
        container.register("thing", lambda _: 2)
