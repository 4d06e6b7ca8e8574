"""Configuration container and the typed views the components read from it."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError


class ConfigParams(Dict[str, Any]):
    """Flat mapping of dotted keys, e.g. ``connection.host`` -> ``"localhost"``.

    Nested mappings are flattened on the way in so components can address
    sections (``connection``, ``credential``, ``options``) uniformly no matter
    whether the source was a tuple list, a dict or a YAML file.
    """

    @classmethod
    def from_tuples(cls, *tuples: Any) -> "ConfigParams":
        if len(tuples) % 2:
            raise ValueError("ConfigParams.from_tuples expects key/value pairs")
        params = cls()
        for key, value in zip(tuples[0::2], tuples[1::2]):
            params._put(str(key), value)
        return params

    @classmethod
    def from_value(cls, value: Optional[Mapping[str, Any]]) -> "ConfigParams":
        params = cls()
        for key, item in (value or {}).items():
            params._put(str(key), item)
        return params

    @classmethod
    def from_file(cls, path: Path) -> "ConfigParams":
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(None, "INVALID_CONFIG", f"{path} must contain a mapping at the top level")
        return cls.from_value(data)

    def _put(self, key: str, value: Any) -> None:
        if isinstance(value, Mapping):
            for sub_key, sub_value in value.items():
                self._put(f"{key}.{sub_key}", sub_value)
        elif isinstance(value, (list, tuple)):
            for index, sub_value in enumerate(value):
                self._put(f"{key}.{index}", sub_value)
        else:
            self[key] = value

    def get_section(self, name: str) -> "ConfigParams":
        prefix = f"{name}."
        section = ConfigParams()
        for key, value in self.items():
            if key.startswith(prefix):
                section[key[len(prefix):]] = value
        return section

    def get_section_names(self) -> List[str]:
        names: List[str] = []
        for key in self.keys():
            if "." not in key:
                continue
            name = key.split(".", 1)[0]
            if name not in names:
                names.append(name)
        return names

    def get_as_nullable_string(self, key: str) -> Optional[str]:
        value = self.get(key)
        if value is None:
            return None
        return str(value)

    def get_as_nullable_integer(self, key: str) -> Optional[int]:
        value = self.get(key)
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            pass
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None

    def get_as_integer_with_default(self, key: str, default: int) -> int:
        value = self.get_as_nullable_integer(key)
        return default if value is None else value


def _many_from_config(
    config: ConfigParams, plural: str, singular: str, keys: Iterable[str]
) -> List[ConfigParams]:
    many = config.get_section(plural)
    if many:
        return [many.get_section(name) for name in many.get_section_names()]
    single = config.get_section(singular)
    if single:
        return [single]
    # Bare keys at the top level count as a single section.
    if any(key in config for key in keys):
        return [config]
    return []


class ConnectionParams(BaseModel):
    """One configured (or discovered) connection."""

    uri: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    discovery_key: Optional[str] = None

    @property
    def use_discovery(self) -> bool:
        return bool(self.discovery_key) and not (self.uri or self.host)

    @classmethod
    def from_config(cls, section: Mapping[str, Any]) -> "ConnectionParams":
        try:
            return cls.model_validate(dict(section))
        except ValidationError as exc:
            raise ConfigurationError(None, "INVALID_CONNECTION", f"Invalid connection parameters: {exc}") from exc

    @classmethod
    def many_from_config(cls, config: ConfigParams) -> List["ConnectionParams"]:
        sections = _many_from_config(config, "connections", "connection", cls.model_fields)
        return [cls.from_config(section) for section in sections]


class CredentialParams(BaseModel):
    """Secret material for one connection. Only the password is used."""

    username: Optional[str] = None
    password: Optional[str] = None
    store_key: Optional[str] = None

    @property
    def use_credential_store(self) -> bool:
        return bool(self.store_key) and self.password is None

    @classmethod
    def from_config(cls, section: Mapping[str, Any]) -> "CredentialParams":
        try:
            return cls.model_validate(dict(section))
        except ValidationError as exc:
            raise ConfigurationError(None, "INVALID_CREDENTIAL", f"Invalid credential parameters: {exc}") from exc

    @classmethod
    def many_from_config(cls, config: ConfigParams) -> List["CredentialParams"]:
        sections = _many_from_config(config, "credentials", "credential", ("username", "password", "store_key"))
        return [cls.from_config(section) for section in sections]


class ComponentOptions(BaseModel):
    """Tunables read from the ``options`` section."""

    model_config = {"frozen": True}

    timeout: int = 60000
    retries: int = 3
    max_size: int = 1000
    retry_timeout: int = 100

    def merge_config(self, config: ConfigParams) -> "ComponentOptions":
        """Return a copy overridden by well-formed ``options.*`` integers."""
        updates = {}
        for name in type(self).model_fields:
            value = config.get_as_nullable_integer(f"options.{name}")
            if value is not None:
                updates[name] = value
        return self.model_copy(update=updates)
