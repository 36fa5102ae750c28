"""
Dataclass records as bencode dictionaries.

Each mapped field has a dictionary key: the field name unless the field carries
a tag, either via bfield() or via metadata={"bencode": "<tag>"} where the tag
is "name", "name,omitempty", ",omitempty" or "-" (not mapped). The key table
for a record type is derived once and cached.
"""
import dataclasses
import functools
import types
import typing
from collections.abc import Mapping
from typing import Any, NamedTuple, Optional

from utils import logger

METADATA_KEY = "bencode"


class FieldTag(NamedTuple):
    key: Optional[str] = None
    omitempty: bool = False
    ignore: bool = False


class RecordField(NamedTuple):
    name: str
    key: str
    omitempty: bool
    hint: Any


class RecordLayout(NamedTuple):
    cls: type
    fields: tuple
    lookup: dict
    hints: dict

    def find(self, key: str):
        """Case-insensitive field lookup. Returns None for unknown keys."""
        return self.lookup.get(key.lower())


def parse_tag(tag) -> FieldTag:
    if isinstance(tag, FieldTag):
        return tag
    if tag == "-":
        return FieldTag(ignore=True)

    name, _, options = tag.partition(",")
    return FieldTag(key=name or None, omitempty="omitempty" in options.split(","))


def bfield(key=None, *, omitempty=False, ignore=False, **kwargs):
    """
    dataclasses.field() carrying bencode options.

        announce_list: list = bfield("announce-list", default_factory=list)
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = FieldTag(key, omitempty, ignore)
    return dataclasses.field(metadata=metadata, **kwargs)


def is_record(value):
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def is_record_type(hint):
    return isinstance(hint, type) and dataclasses.is_dataclass(hint)


@functools.lru_cache(maxsize=None)
def record_layout(cls) -> RecordLayout:
    if not is_record_type(cls):
        raise TypeError(f"{cls!r} is not a dataclass")

    hints = typing.get_type_hints(cls)
    mapped = []
    for f in dataclasses.fields(cls):
        tag = parse_tag(f.metadata.get(METADATA_KEY, FieldTag()))
        if tag.ignore:
            continue
        mapped.append(RecordField(f.name, tag.key or f.name, tag.omitempty, hints.get(f.name, Any)))

    keys = set()
    for field in mapped:
        if field.key in keys:
            raise TypeError(f"Duplicate bencode key {field.key!r} in {cls.__name__}")
        keys.add(field.key)

    # Explicit keys are registered last so they win over a field of the same name
    lookup = {}
    for field in mapped:
        lookup.setdefault(field.name.lower(), field)
    for field in mapped:
        lookup[field.key.lower()] = field

    logger.debug(f"Built bencode layout for {cls.__name__}: {[f.key for f in mapped]}")
    return RecordLayout(cls, tuple(mapped), lookup, hints)


def is_optional(hint):
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        return type(None) in typing.get_args(hint)
    return False


def unwrap_optional(hint):
    """Optional[T] -> T. Unions of several types fall back to Any."""
    if not is_optional(hint):
        return hint
    args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
    return args[0] if len(args) == 1 else Any


def new_record(cls):
    """Creates a record, giving required fields the zero value of their type."""
    hints = record_layout(cls).hints
    kwargs = {}
    for f in dataclasses.fields(cls):
        if f.init and f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            kwargs[f.name] = zero_value(hints.get(f.name, Any))
    return cls(**kwargs)


def zero_value(hint):
    if is_optional(hint):
        return None

    origin = typing.get_origin(hint) or hint
    if origin is int:
        return 0
    if origin is float:
        return 0.0
    if origin is str:
        return ""
    if origin is bytes:
        return b""
    if origin is list:
        return []
    if origin is dict:
        return {}
    if origin is tuple:
        args = typing.get_args(hint)
        if args and Ellipsis not in args and args != ((),):
            return tuple(zero_value(arg) for arg in args)
        return ()
    if is_record_type(hint):
        return new_record(hint)
    return None


def is_empty(value):
    """The values an omitempty field leaves out of the encoding."""
    if value is None:
        return True
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, (str, bytes, bytearray, memoryview, list, tuple, Mapping)):
        return len(value) == 0
    return False
