"""Byte encoding of cached values."""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from pydantic_core import PydanticSerializationError, to_jsonable_python

from .errors import SerializationError


class JsonSerializer:
    """UTF-8 JSON codec. Pydantic models, dataclasses and datetimes are encoded
    through pydantic's JSON rules; they come back as plain JSON values."""

    encoding = "utf-8"

    def serialize(self, value: Any, *, trace_id: Optional[str] = None) -> bytes:
        try:
            payload = json.dumps(to_jsonable_python(value), ensure_ascii=False)
        except (PydanticSerializationError, TypeError, ValueError) as exc:
            raise SerializationError(
                trace_id, "CANNOT_SERIALIZE", f"Value of type {type(value).__name__} is not serializable"
            ) from exc
        return payload.encode(self.encoding)

    def deserialize(self, raw: Union[bytes, str], *, trace_id: Optional[str] = None) -> Any:
        try:
            if isinstance(raw, bytes):
                raw = raw.decode(self.encoding)
            return json.loads(raw)
        except (UnicodeDecodeError, ValueError) as exc:
            raise SerializationError(trace_id, "CANNOT_DESERIALIZE", f"Stored value is not valid JSON: {exc}") from exc
