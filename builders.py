"""
Builders: the write side of the target-directed decoder.

The decoder walks the bencode grammar and tells a builder what it found
(set_integer, begin_list, child_for(key), ...). Each builder variant knows one
kind of target. Calls a variant has no use for are no-ops, and children asked
of it are NULL_BUILDER, so data the target has no room for is skipped.

A builder hands its finished value to its parent through a store callback,
once, on commit(), and only if it received something of the right shape.
"""
import collections.abc
import math
import typing
from functools import partial
from typing import Any

from records import (
    is_record_type,
    new_record,
    record_layout,
    unwrap_optional,
    zero_value,
)
from tokens import INT64_MAX, INT64_MIN
from utils import to_text

INITIAL_CAPACITY = 8


def to_int64(value):
    """Wraps an integer into the signed 64-bit range, two's complement."""
    value &= (1 << 64) - 1
    return value - (1 << 64) if value > INT64_MAX else value


def float_to_int64(value):
    """
    Truncates a float toward zero into a signed 64-bit integer.

    NaN, infinities and values outside the range all give INT64_MIN, which is
    what the x86-64 conversion instruction produces. Other platforms differ, so
    this is a property of this implementation only.
    """
    if math.isnan(value) or math.isinf(value):
        return INT64_MIN
    truncated = math.trunc(value)
    if not INT64_MIN <= truncated <= INT64_MAX:
        return INT64_MIN
    return truncated


def discard(value):
    pass


class Builder:
    def set_integer(self, value):
        pass

    def set_unsigned(self, value):
        pass

    def set_float(self, value):
        pass

    def set_string(self, value: bytes):
        pass

    def begin_list(self):
        pass

    def begin_map(self):
        pass

    def child_at(self, index):
        return NULL_BUILDER

    def child_for(self, key: bytes):
        return NULL_BUILDER

    def commit(self):
        pass


class NullBuilder(Builder):
    """Silently absorbs every write."""


NULL_BUILDER = NullBuilder()


class TreeBuilder(Builder):
    """
    Builds a generic tree: int, bytes, list, and dict keyed by bytes.
    Numerals are stored as signed 64-bit integers, as an int target would hold them.
    """

    def __init__(self, store=discard):
        self._store = store
        self.value = None
        self._filled = False

    def _put(self, value):
        self.value = value
        self._filled = True

    def set_integer(self, value):
        self._put(value)

    def set_unsigned(self, value):
        self._put(to_int64(value))

    def set_float(self, value):
        self._put(float_to_int64(value))

    def set_string(self, value):
        self._put(value)

    def begin_list(self):
        self._put([])

    def begin_map(self):
        self._put({})

    def child_at(self, index):
        if not isinstance(self.value, list) or index < 0:
            return NULL_BUILDER
        items = self.value
        while len(items) <= index:
            items.append(None)
        return TreeBuilder(partial(items.__setitem__, index))

    def child_for(self, key):
        if not isinstance(self.value, dict):
            return NULL_BUILDER
        return TreeBuilder(partial(self.value.__setitem__, key))

    def commit(self):
        if self._filled:
            self._store(self.value)


class ScalarBuilder(Builder):
    """int, float, str or bytes target. Values of another shape are ignored."""

    def __init__(self, kind, store=discard):
        self.kind = kind
        self._store = store
        self.value = None
        self._filled = False

    def _put(self, value):
        self.value = value
        self._filled = True

    def set_integer(self, value):
        if self.kind is int:
            self._put(value)
        elif self.kind is float:
            self._put(float(value))

    def set_unsigned(self, value):
        if self.kind is int:
            self._put(to_int64(value))
        elif self.kind is float:
            self._put(float(value))

    def set_float(self, value):
        if self.kind is int:
            self._put(float_to_int64(value))
        elif self.kind is float:
            self._put(value)

    def set_string(self, value):
        if self.kind is str:
            self._put(to_text(value))
        elif self.kind is bytes:
            self._put(value)

    def commit(self):
        if self._filled:
            self._store(self.value)


class RecordBuilder(Builder):
    """
    Dataclass target. Dictionary keys are matched against the record layout
    case-insensitively; unknown keys and excluded fields get NULL_BUILDER.
    """

    def __init__(self, cls, current=None, store=discard):
        self.layout = record_layout(cls)
        self.record = current if isinstance(current, cls) else None
        self._store = store
        self._started = False

    def begin_map(self):
        if self.record is None:
            self.record = new_record(self.layout.cls)
        self._started = True

    def child_for(self, key):
        if not self._started:
            return NULL_BUILDER

        field = self.layout.find(to_text(key))
        if field is None:
            return NULL_BUILDER

        return builder_for(
            field.hint,
            getattr(self.record, field.name),
            partial(setattr, self.record, field.name),
        )

    def commit(self):
        if self._started:
            self._store(self.record)


class MapBuilder(Builder):
    """
    dict[str, T] or dict[bytes, T] target.

    A missing key is inserted with the zero value of T as soon as it is seen;
    the decoded value replaces it when the child builder commits.
    """

    def __init__(self, key_type, value_type, current=None, store=discard):
        self.key_type = key_type
        self.value_type = value_type
        self.mapping = current if isinstance(current, dict) else None
        self._store = store
        self._started = False

    def begin_map(self):
        if self.mapping is None:
            self.mapping = {}
        self._started = True

    def child_for(self, key):
        if not self._started:
            return NULL_BUILDER

        if self.key_type is bytes:
            map_key = key
        elif self.key_type is str:
            map_key = to_text(key)
        else:
            return NULL_BUILDER

        if map_key not in self.mapping:
            self.mapping[map_key] = zero_value(self.value_type)

        return builder_for(
            self.value_type,
            self.mapping[map_key],
            partial(self.mapping.__setitem__, map_key),
        )

    def commit(self):
        if self._started:
            self._store(self.mapping)


class SequenceBuilder(Builder):
    """
    list[T] or tuple[T, ...] target, addressed by index.

    Storage grows geometrically: when an index is past the capacity, the
    capacity doubles (from at least INITIAL_CAPACITY) until the index fits, and
    existing items are kept. Slots up to the logical length hold zero values
    until they are written. The decoded items replace whatever the target held.
    """

    def __init__(self, item_type, current=None, store=discard, as_tuple=False):
        self.item_type = item_type
        self._store = store
        self._as_tuple = as_tuple
        self._items = []
        self.length = 0
        self._started = False

    @property
    def capacity(self):
        return len(self._items)

    @property
    def items(self):
        return self._items[:self.length]

    def begin_list(self):
        self._started = True

    def _grow(self, index):
        capacity = max(self.capacity, INITIAL_CAPACITY)
        while capacity <= index:
            capacity *= 2
        self._items.extend([None] * (capacity - self.capacity))

    def child_at(self, index):
        if not self._started or index < 0:
            return NULL_BUILDER

        if index >= self.capacity:
            self._grow(index)
        if index >= self.length:
            for slot in range(self.length, index + 1):
                self._items[slot] = zero_value(self.item_type)
            self.length = index + 1

        return builder_for(
            self.item_type,
            self._items[index],
            partial(self._items.__setitem__, index),
        )

    def commit(self):
        if self._started:
            items = self.items
            self._store(tuple(items) if self._as_tuple else items)


class FixedArrayBuilder(Builder):
    """tuple[A, B, ...] target. Elements past the declared length are dropped."""

    def __init__(self, item_types, current=None, store=discard):
        self.item_types = tuple(item_types)
        self._existing = current
        self._store = store
        self._items = None

    def begin_list(self):
        if self._items is not None:
            return
        if isinstance(self._existing, tuple) and len(self._existing) == len(self.item_types):
            self._items = list(self._existing)
        else:
            self._items = [zero_value(hint) for hint in self.item_types]

    def child_at(self, index):
        if self._items is None or not 0 <= index < len(self._items):
            return NULL_BUILDER
        return builder_for(
            self.item_types[index],
            self._items[index],
            partial(self._items.__setitem__, index),
        )

    def commit(self):
        if self._items is not None:
            self._store(tuple(self._items))


SEQUENCE_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)
MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def builder_for(hint, current=None, store=discard):
    """Picks the builder variant for a declared type."""
    hint = unwrap_optional(hint)
    if hint is Any or hint is object:
        return TreeBuilder(store)
    if is_record_type(hint):
        return RecordBuilder(hint, current, store)

    origin = typing.get_origin(hint) or hint
    args = typing.get_args(hint)

    if origin in (int, float, str, bytes):
        return ScalarBuilder(origin, store)

    if origin in SEQUENCE_ORIGINS:
        return SequenceBuilder(args[0] if args else Any, current, store)

    if origin is tuple:
        if not args:
            return SequenceBuilder(Any, current, store, as_tuple=True)
        if len(args) == 2 and args[1] is Ellipsis:
            return SequenceBuilder(args[0], current, store, as_tuple=True)
        return FixedArrayBuilder(args, current, store)

    if origin in MAPPING_ORIGINS:
        key_type = args[0] if args else str
        if key_type is Any:
            key_type = str
        value_type = args[1] if len(args) > 1 else Any
        return MapBuilder(key_type, value_type, current, store)

    return NULL_BUILDER
