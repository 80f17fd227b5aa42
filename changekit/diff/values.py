"""
Value classification policy for the differ.

Every value the differ meets is sorted into one of four kinds:

- SCALAR:   None, MISSING, bool, numbers, str, bytes
- OPAQUE:   dates/times, UUIDs, enum members, sets, paths, IP addresses,
            compiled patterns, anything the caller's
            ``is_atomic_value`` predicate accepts, and objects with no
            inspectable fields
- SEQUENCE: ordered, indexable collections (list, tuple, ...)
- RECORD:   mappings and objects exposing instance fields

SCALAR and OPAQUE values are atomic: they are compared whole and never
recursed into. SEQUENCE and RECORD values are walked by the differ.

This module also owns deep equality and deep copying, the two primitives
the tracker uses to decide "did anything change" and to take baselines.
"""

import copy
import datetime
import functools
import ipaddress
import logging
import math
import numbers
import os
import re
import types
import uuid
from collections.abc import Mapping, Sequence
from enum import Enum, auto
from typing import Any, Callable, FrozenSet, List, Optional, Set, Tuple

from ..errors import SnapshotCopyFailure

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for a property that does not exist on one side of a comparison."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<MISSING>"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Missing, ())


MISSING = _Missing()


class ValueKind(Enum):
    """Shape of a value as seen by the differ."""
    SCALAR = auto()
    OPAQUE = auto()
    SEQUENCE = auto()
    RECORD = auto()


ATOMIC_KINDS = frozenset({ValueKind.SCALAR, ValueKind.OPAQUE})

# Text-like values are sequences to collections.abc but scalars to us
_TEXT_TYPES = (str, bytes, bytearray)

# Standard library value types that are replaced wholesale, never field-diffed
_OPAQUE_TYPES = (
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    Enum,
    set,
    frozenset,
    os.PathLike,
    ipaddress.IPv4Address,
    ipaddress.IPv6Address,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
    re.Pattern,
)

# Objects that carry a __dict__ but are not data
_CODE_TYPES = (
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.ModuleType,
)


def _is_scalar(value: Any) -> bool:
    return (
        value is None
        or value is MISSING
        or isinstance(value, (bool, numbers.Number))
        or isinstance(value, _TEXT_TYPES)
    )


@functools.lru_cache(maxsize=None)
def _slot_names(cls: type) -> Tuple[str, ...]:
    names: List[str] = []
    for klass in reversed(cls.__mro__):
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__"):
                continue
            if name.startswith("__") and not name.endswith("__"):
                # private slots are stored under their mangled name
                name = f"_{klass.__name__.lstrip('_')}{name}"
            if name not in names:
                names.append(name)
    return tuple(names)


@functools.lru_cache(maxsize=None)
def _cached_property_names(cls: type) -> FrozenSet[str]:
    # cached_property stores its result in the instance __dict__ on first read
    return frozenset(
        name
        for klass in cls.__mro__
        for name, attr in vars(klass).items()
        if isinstance(attr, functools.cached_property)
    )


def _has_fields(value: Any) -> bool:
    if isinstance(value, _CODE_TYPES):
        return False
    return hasattr(value, "__dict__") or bool(_slot_names(type(value)))


def _structure(value: Any) -> ValueKind:
    """Classify a value by shape alone, ignoring any caller predicate."""
    if _is_scalar(value):
        return ValueKind.SCALAR
    if isinstance(value, _OPAQUE_TYPES):
        return ValueKind.OPAQUE
    if isinstance(value, Sequence):
        return ValueKind.SEQUENCE
    if isinstance(value, Mapping) or _has_fields(value):
        return ValueKind.RECORD
    return ValueKind.OPAQUE


def classify(
    value: Any,
    is_atomic_value: Optional[Callable[[Any], bool]] = None
) -> ValueKind:
    """
    Classify a value for the differ.

    The caller's predicate is consulted before the sequence/record tests, so
    a domain value type (an identifier, a money amount, ...) can be marked
    opaque even when it is itself a mapping or exposes fields.

    Args:
        value: Value to classify
        is_atomic_value: Optional predicate marking domain value types opaque

    Returns:
        The ValueKind of ``value``
    """
    if _is_scalar(value):
        return ValueKind.SCALAR
    if is_atomic_value is not None:
        try:
            if is_atomic_value(value):
                return ValueKind.OPAQUE
        except Exception:
            logger.debug(
                "is_atomic_value raised for %s; treating it as structured",
                type(value).__name__,
                exc_info=True
            )
    return _structure(value)


def is_atomic(
    value: Any,
    is_atomic_value: Optional[Callable[[Any], bool]] = None
) -> bool:
    """Returns True if the value is compared whole and never recursed into."""
    return classify(value, is_atomic_value) in ATOMIC_KINDS


def field_items(value: Any) -> List[Tuple[Any, Any]]:
    """
    Return the named fields of a RECORD value as (key, value) pairs.

    Mappings yield their items. Other objects yield their instance
    ``__dict__`` followed by any assigned ``__slots__`` fields; unassigned
    slots are skipped the same way a deleted attribute would be. Values
    cached by a ``functools.cached_property`` are derived state and are
    left out.
    """
    if isinstance(value, Mapping):
        return list(value.items())

    items: List[Tuple[Any, Any]] = []
    instance_dict = getattr(value, "__dict__", None)
    if isinstance(instance_dict, dict):
        cached = _cached_property_names(type(value))
        items.extend((key, item) for key, item in instance_dict.items() if key not in cached)

    seen = {key for key, _ in items}
    for name in _slot_names(type(value)):
        if name in seen:
            continue
        try:
            items.append((name, getattr(value, name)))
        except AttributeError:
            continue
    return items


# =============================================================================
# DEEP EQUALITY
# =============================================================================

def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


_MAX_EQ_REDUCTIONS = 4


def _loose_equal(a: Any, b: Any) -> bool:
    try:
        result = a == b
    except (TypeError, ValueError):
        return False
    # Array-likes answer == element-wise; collapse them with .all()
    for _ in range(_MAX_EQ_REDUCTIONS):
        try:
            return bool(result)
        except (TypeError, ValueError):
            reduce_all = getattr(result, "all", None)
            if not callable(reduce_all):
                return False
            try:
                result = reduce_all()
            except (TypeError, ValueError):
                return False
    return False


def deep_equal(a: Any, b: Any) -> bool:
    """
    Structural equality for arbitrarily nested values.

    Rules:
    - identical objects are equal, and NaN equals NaN
    - bool never equals a non-bool (True != 1 here)
    - scalars and opaque values compare with ==
    - sequences, mappings and field-bearing objects must have the same
      concrete type and deep-equal contents; an object's own __eq__ is
      ignored so that a deep copy compares equal to its source

    Self-referencing structures are supported.
    """
    return _deep_equal(a, b, set())


def _deep_equal(a: Any, b: Any, active: Set[Tuple[int, int]]) -> bool:
    if a is b:
        return True
    if _is_nan(a) and _is_nan(b):
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b

    kind = _structure(a)
    if kind is not _structure(b):
        return False
    if kind in ATOMIC_KINDS:
        return _loose_equal(a, b)
    if type(a) is not type(b):
        return False

    pair = (id(a), id(b))
    if pair in active:
        return True
    active.add(pair)
    try:
        if kind is ValueKind.SEQUENCE:
            if len(a) != len(b):
                return False
            return all(_deep_equal(x, y, active) for x, y in zip(a, b))

        fields_a = dict(field_items(a))
        fields_b = dict(field_items(b))
        if fields_a.keys() != fields_b.keys():
            return False
        return all(_deep_equal(fields_a[key], fields_b[key], active) for key in fields_a)
    finally:
        active.discard(pair)


# =============================================================================
# DEEP COPY
# =============================================================================

def snapshot(value: Any) -> Any:
    """
    Take a fully independent deep copy of a value.

    Raises:
        SnapshotCopyFailure: If the value (or anything it contains) cannot be
            copied, e.g. locks, open files or generators
    """
    try:
        return copy.deepcopy(value)
    except Exception as e:
        raise SnapshotCopyFailure(
            f"Cannot deep-copy {type(value).__name__} value",
            cause=e
        ) from e
