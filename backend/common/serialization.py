"""
Serialization Utilities

This module provides the helpers that turn domain objects (dataclasses holding
enums, datetimes and nested records) into plain JSON documents and back. The
same documents are returned by the API and stored in the JSON columns of the
SQL persistence layer.
"""

import json
import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

# Type variable for generic typing
T = TypeVar('T')


def serialize(obj: Any, exclude_none: bool = False) -> Any:
    """
    Serialize an object to JSON-compatible Python data.

    Args:
        obj: The object to serialize
        exclude_none: Whether to drop None values from mappings

    Returns:
        Plain dicts, lists, strings and numbers
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, datetime.datetime):
        return obj.isoformat()

    if isinstance(obj, datetime.date):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (list, tuple)):
        return [serialize(item, exclude_none) for item in obj]

    # Sets have no order on the wire; sort for stable documents
    if isinstance(obj, (set, frozenset)):
        return sorted(serialize(item, exclude_none) for item in obj)

    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if exclude_none and value is None:
                continue
            result[key] = serialize(value, exclude_none)
        return result

    if hasattr(obj, 'to_dict') and callable(getattr(obj, 'to_dict')):
        return serialize(obj.to_dict(), exclude_none)

    return str(obj)


def to_camel(name: str) -> str:
    """snake_case -> camelCase"""
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def camelize(data: Any) -> Any:
    """
    Recursively rename dict keys to camelCase for API responses.

    Every dict key is treated as a field name, so data-valued keys (topic or
    subject names) must be carried as list entries instead.
    """
    if isinstance(data, dict):
        return {
            (to_camel(k) if isinstance(k, str) else k): camelize(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [camelize(item) for item in data]
    return data


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """Parse an ISO string (or pass through a datetime); None stays None."""
    if value is None or isinstance(value, datetime.datetime):
        return value
    return datetime.datetime.fromisoformat(value)


def to_json(obj: Any, pretty: bool = False, exclude_none: bool = False) -> str:
    """
    Serialize an object to a JSON string.

    Args:
        obj: The object to serialize
        pretty: Whether to format the JSON with indentation
        exclude_none: Whether to exclude None values

    Returns:
        JSON string representation
    """
    indent = 2 if pretty else None
    return json.dumps(serialize(obj, exclude_none), indent=indent, ensure_ascii=False, default=str)


class SerializableMixin:
    """
    Mixin that provides serialization capabilities to a domain dataclass.

    Classes using this mixin define:
    1. __serializable_fields__ - field names to include in serialization
    2. __optional_fields__ - field names that may be absent during deserialization

    Subclasses with nested records or enums override ``from_dict`` and call
    ``_collect_kwargs`` for the flat part.
    """

    __serializable_fields__: List[str] = []
    __optional_fields__: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the object to a dictionary."""
        result = {}
        for field_name in self.__serializable_fields__:
            if hasattr(self, field_name):
                result[field_name] = serialize(getattr(self, field_name))
        return result

    def to_json(self, pretty: bool = False) -> str:
        """Convert the object to a JSON string."""
        return to_json(self.to_dict(), pretty)

    @classmethod
    def _collect_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        init_kwargs = {}
        for field_name in cls.__serializable_fields__:
            if field_name in data:
                init_kwargs[field_name] = data[field_name]
            elif field_name not in cls.__optional_fields__:
                raise ValueError(f"Missing required field: {field_name}")
        return init_kwargs

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """Create an instance from a dictionary."""
        return cls(**cls._collect_kwargs(data))
