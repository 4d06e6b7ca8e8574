"""Component locators and the registry used to wire components together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Descriptor:
    """Five-part locator ``group:type:kind:name:version``. ``*`` matches anything."""

    group: str = "*"
    type: str = "*"
    kind: str = "*"
    name: str = "*"
    version: str = "*"

    @classmethod
    def parse(cls, value: str) -> "Descriptor":
        parts = value.split(":")
        if len(parts) != 5:
            raise ValueError(f"Descriptor must have 5 parts, got {value!r}")
        return cls(*parts)

    def _parts(self) -> Tuple[str, str, str, str, str]:
        return (self.group, self.type, self.kind, self.name, self.version)

    def match(self, other: "Descriptor") -> bool:
        return all(
            mine == "*" or theirs == "*" or mine == theirs
            for mine, theirs in zip(self._parts(), other._parts())
        )

    def __str__(self) -> str:
        return ":".join(self._parts())


class References:
    """Ordered registry of ``(locator, component)`` pairs."""

    def __init__(self) -> None:
        self._entries: List[Tuple[Any, Any]] = []

    @classmethod
    def from_tuples(cls, *tuples: Any) -> "References":
        if len(tuples) % 2:
            raise ValueError("References.from_tuples expects locator/component pairs")
        references = cls()
        for locator, component in zip(tuples[0::2], tuples[1::2]):
            references.put(locator, component)
        return references

    def put(self, locator: Any, component: Any) -> None:
        self._entries.append((locator, component))

    def get_optional(self, locator: Any) -> List[Any]:
        found = []
        for key, component in self._entries:
            if isinstance(locator, Descriptor) and isinstance(key, Descriptor):
                if locator.match(key):
                    found.append(component)
            elif key == locator:
                found.append(component)
        return found

    def get_one_optional(self, locator: Any) -> Optional[Any]:
        found = self.get_optional(locator)
        return found[0] if found else None
