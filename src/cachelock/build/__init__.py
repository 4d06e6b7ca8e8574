"""Component factories."""

from .factory import DefaultRedisFactory, Factory

__all__ = ["DefaultRedisFactory", "Factory"]
