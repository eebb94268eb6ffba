"""Binding of row mappings onto dataclass models, and the wide column model contract."""

import threading
import types
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar, Union, get_args, get_origin

ID_COLUMN = "id"
CREATED_AT_COLUMN = "created_at"
UPDATED_AT_COLUMN = "updated_at"

ID = TypeVar("ID")


@dataclass
class BaseModel(Generic[ID]):
    """Common identity and timestamp columns."""

    id: Optional[ID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Model(ABC):
    """A record stored in a wide column table."""

    @abstractmethod
    def table_name(self) -> str:
        """Return the table the record lives in."""

    @abstractmethod
    def column_names(self) -> list[str]:
        """Return the column names, in the order of column_values."""

    @abstractmethod
    def column_values(self) -> list[Any]:
        """Return the column values, in the order of column_names."""


@dataclass(frozen=True)
class _FieldPath:
    containers: tuple[tuple[str, type], ...]
    name: str
    hint: Any


def _unwrap_optional(hint: Any) -> Any:
    origin = get_origin(hint)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


def _hints(cls: type) -> dict[str, Any]:
    # Annotations left as strings are treated as untyped.
    return {
        item.name: (Any if isinstance(item.type, str) else item.type)
        for item in fields(cls)
    }


def _coerce(value: Any, hint: Any) -> tuple[bool, Any]:
    if hint in (int, float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return True, hint(value)
        return False, None
    if hint is bool:
        return isinstance(value, bool), value
    if hint is str:
        if isinstance(value, (bytes, bytearray)):
            return True, bytes(value).decode("utf-8", errors="replace")
        return isinstance(value, str), value
    origin = get_origin(hint)
    if origin is not None:
        return (isinstance(value, origin) if isinstance(origin, type) else True), value
    if isinstance(hint, type) and hint is not object:
        return isinstance(value, hint), value
    return True, value


class Mapper:
    """Binds rows onto dataclass instances by column name.

    A field maps to its lower-cased name, or to ``metadata["column"]`` when set.
    A field with ``metadata["embed"]`` true holding a dataclass is flattened into
    its parent; when it is None it is created on demand. Lookups ignore case.
    """

    def __init__(self) -> None:
        self._cache: dict[type, dict[str, _FieldPath]] = {}
        self._lock = threading.Lock()

    def _struct_map(self, cls: type) -> dict[str, _FieldPath]:
        cached = self._cache.get(cls)
        if cached is not None:
            return cached
        mapping: dict[str, _FieldPath] = {}
        self._analyze(cls, mapping, ())
        with self._lock:
            return self._cache.setdefault(cls, mapping)

    def _analyze(self, cls: type, mapping: dict[str, _FieldPath], base: tuple[tuple[str, type], ...]) -> None:
        hints = _hints(cls)
        for item in fields(cls):
            hint = _unwrap_optional(hints.get(item.name, Any))
            target = get_origin(hint) or hint
            if item.metadata.get("embed") and isinstance(target, type) and is_dataclass(target):
                self._analyze(target, mapping, base + ((item.name, target),))
                continue
            if item.name.startswith("_"):
                continue
            column = item.metadata.get("column") or item.name.lower()
            mapping.setdefault(column, _FieldPath(base, item.name, hint))

    def bind(self, row: Mapping[str, Any], target: Any) -> None:
        """Copy matching columns of a row onto a dataclass instance; others are ignored."""
        if target is None or isinstance(target, type) or not is_dataclass(target):
            raise TypeError("target must be a dataclass instance")
        mapping = self._struct_map(type(target))
        for column, value in row.items():
            path = mapping.get(str(column).lower())
            if path is not None:
                _set_field(target, path, value)


def _set_field(root: Any, path: _FieldPath, value: Any) -> None:
    current = root
    for name, cls in path.containers:
        inner = getattr(current, name)
        if inner is None:
            inner = cls()
            setattr(current, name, inner)
        current = inner
    if value is None:
        return
    ok, converted = _coerce(value, path.hint)
    if ok:
        setattr(current, path.name, converted)