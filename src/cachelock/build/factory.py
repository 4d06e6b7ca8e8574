"""Creates components by their descriptors."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

from cachelock.core.cache_redis import RedisCache
from cachelock.core.errors import CreateError
from cachelock.core.locks_redis import RedisLock
from cachelock.core.references import Descriptor


class Factory:
    """Registry mapping locators to zero-argument constructors."""

    def __init__(self) -> None:
        self._registrations: List[Tuple[Descriptor, Callable[[], Any]]] = []

    def register(self, locator: Descriptor, factory: Callable[[], Any]) -> None:
        self._registrations.append((locator, factory))

    def register_as_type(self, locator: Descriptor, component_type: type) -> None:
        self.register(locator, component_type)

    def _find(self, locator: Descriptor) -> Optional[Callable[[], Any]]:
        for registered, factory in self._registrations:
            if registered.match(locator):
                return factory
        return None

    def can_create(self, locator: Descriptor) -> Optional[Descriptor]:
        """Return the registered locator able to build ``locator``, if any."""
        for registered, _ in self._registrations:
            if registered.match(locator):
                return registered
        return None

    def create(self, locator: Descriptor) -> Any:
        factory = self._find(locator)
        if factory is None:
            raise CreateError(None, "CANNOT_CREATE", f"Requested component {locator} cannot be created").with_details(
                "locator", str(locator)
            )
        return factory()


class DefaultRedisFactory(Factory):
    """Creates ``RedisCache`` and ``RedisLock`` components."""

    REDIS_CACHE_DESCRIPTOR = Descriptor("cachelock", "cache", "redis", "*", "1.0")
    REDIS_LOCK_DESCRIPTOR = Descriptor("cachelock", "lock", "redis", "*", "1.0")

    def __init__(self) -> None:
        super().__init__()
        self.register_as_type(self.REDIS_CACHE_DESCRIPTOR, RedisCache)
        self.register_as_type(self.REDIS_LOCK_DESCRIPTOR, RedisLock)
