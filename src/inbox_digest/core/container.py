"""Process-wide service registry with ordered shutdown."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

LOGGER = logging.getLogger(__name__)

Factory = Callable[["ServiceContainer"], Any]


class ServiceContainer:
    """Build shared services on first use and close them on shutdown.

    Services are created lazily by their factory and reused afterwards.
    :meth:`close` releases them newest first, so a service is closed before
    anything it was built from.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._built: dict[str, Any] = {}

    def register(self, name: str, factory: Factory) -> None:
        """Register ``factory`` under ``name``, replacing any earlier one."""
        if name in self._built:
            raise RuntimeError(f"Service '{name}' is already in use")
        self._factories[name] = factory

    def resolve(self, name: str) -> Any:
        """Return the service called ``name``, building it if needed."""
        try:
            return self._built[name]
        except KeyError:
            pass
        factory = self._factories.get(name)
        if factory is None:
            raise KeyError(f"Service '{name}' is not registered")
        service = factory(self)
        self._built[name] = service
        return service

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def close(self) -> None:
        """Close every built service that has a ``close`` method."""
        while self._built:
            name, service = self._built.popitem()
            closer = getattr(service, "close", None)
            if callable(closer):
                LOGGER.debug("Closing service '%s'", name)
                closer()


__all__ = ["ServiceContainer"]
