"""
Unit tests for the value classification policy, deep equality and snapshots.
"""

import copy
import ipaddress
import re
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from functools import cached_property
from pathlib import Path, PurePosixPath

import pytest

from changekit.diff.values import (
    MISSING,
    ValueKind,
    classify,
    deep_equal,
    field_items,
    is_atomic,
    snapshot,
)
from changekit.errors import SnapshotCopyFailure


# =============================================================================
# FIXTURES
# =============================================================================

class Color(Enum):
    RED = 1
    BLUE = 2


class Point:
    __slots__ = ("x", "y")

    def __init__(self, x, y):
        self.x = x
        self.y = y


class Point3D(Point):
    __slots__ = ("z",)

    def __init__(self, x, y, z):
        super().__init__(x, y)
        self.z = z


class Plain:
    def __init__(self, **fields):
        self.__dict__.update(fields)


class OtherPlain:
    def __init__(self, **fields):
        self.__dict__.update(fields)


@dataclass
class Money:
    amount: Decimal
    currency: str


class Invoice:
    def __init__(self, amounts):
        self.amounts = amounts

    @cached_property
    def total(self):
        return sum(self.amounts)


class Cells:
    """Element-wise comparison result, like an array of booleans."""

    def __init__(self, flags):
        self.flags = flags

    def __bool__(self):
        raise ValueError("The truth value of an array with more than one element is ambiguous")

    def all(self):
        return all(self.flags)


class Grid(frozenset):
    """Opaque value whose == is element-wise."""

    def __eq__(self, other):
        return Cells([item in other for item in self] + [item in self for item in other])

    __hash__ = frozenset.__hash__


# =============================================================================
# CLASSIFICATION
# =============================================================================

class TestClassify:

    @pytest.mark.parametrize("value", [
        None, MISSING, True, 0, 1.5, Decimal("2.50"), 3j, "text", b"bytes", bytearray(b"x"),
    ])
    def test_scalars(self, value):
        assert classify(value) is ValueKind.SCALAR
        assert is_atomic(value)

    @pytest.mark.parametrize("value", [
        date(2024, 1, 1),
        datetime(2024, 1, 1, 12, 30),
        timedelta(days=1),
        uuid.uuid4(),
        Color.RED,
        {1, 2},
        frozenset({"a"}),
        len,
        object(),
        threading.Lock(),
        Path("a/b"),
        PurePosixPath("a/b"),
        ipaddress.ip_address("10.0.0.1"),
        ipaddress.ip_address("::1"),
        ipaddress.ip_network("10.0.0.0/8"),
        ipaddress.ip_interface("10.0.0.1/24"),
        re.compile(r"\d+"),
    ])
    def test_opaque(self, value):
        assert classify(value) is ValueKind.OPAQUE
        assert is_atomic(value)

    @pytest.mark.parametrize("value", [[], [1, 2], (1, 2), range(3)])
    def test_sequences(self, value):
        assert classify(value) is ValueKind.SEQUENCE
        assert not is_atomic(value)

    @pytest.mark.parametrize("value", [
        {}, {"a": 1}, OrderedDict(a=1), Plain(a=1), Point(1, 2), Money(Decimal("1"), "EUR"),
    ])
    def test_records(self, value):
        assert classify(value) is ValueKind.RECORD
        assert not is_atomic(value)

    def test_predicate_marks_value_opaque(self):
        price = Money(Decimal("9.99"), "USD")

        assert classify(price, lambda v: isinstance(v, Money)) is ValueKind.OPAQUE

    def test_predicate_can_mark_mapping_opaque(self):
        assert classify({"$oid": "abc"}, lambda v: isinstance(v, dict) and "$oid" in v) is ValueKind.OPAQUE

    def test_predicate_does_not_override_scalars(self):
        assert classify(5, lambda v: True) is ValueKind.SCALAR

    def test_raising_predicate_is_ignored(self):
        def predicate(value):
            raise RuntimeError("nope")

        assert classify([1], predicate) is ValueKind.SEQUENCE


class TestFieldItems:

    def test_mapping_items(self):
        assert field_items({"a": 1, "b": 2}) == [("a", 1), ("b", 2)]

    def test_instance_dict(self):
        assert field_items(Plain(name="x", value=1)) == [("name", "x"), ("value", 1)]

    def test_slots_in_definition_order(self):
        assert field_items(Point3D(1, 2, 3)) == [("x", 1), ("y", 2), ("z", 3)]

    def test_unassigned_slot_is_skipped(self):
        point = Point(1, 2)
        del point.y

        assert field_items(point) == [("x", 1)]

    def test_cached_property_values_are_left_out(self):
        invoice = Invoice([1, 2])
        assert invoice.total == 3

        assert field_items(invoice) == [("amounts", [1, 2])]


# =============================================================================
# MISSING
# =============================================================================

class TestMissing:

    def test_is_falsy_singleton(self):
        assert not MISSING
        assert repr(MISSING) == "<MISSING>"

    def test_survives_copy(self):
        assert copy.copy(MISSING) is MISSING
        assert copy.deepcopy({"k": MISSING})["k"] is MISSING

    def test_only_equal_to_itself(self):
        assert deep_equal(MISSING, MISSING)
        assert not deep_equal(MISSING, None)


# =============================================================================
# DEEP EQUALITY
# =============================================================================

class TestDeepEqual:

    def test_nested_builtins(self):
        a = {"a": [1, {"b": (2, 3)}], "c": datetime(2024, 1, 1)}
        b = {"a": [1, {"b": (2, 3)}], "c": datetime(2024, 1, 1)}

        assert deep_equal(a, b)

    def test_copy_of_plain_object_is_equal(self):
        """Plain objects are compared by fields, not identity."""
        original = Plain(name="x", child=Plain(value=[1, 2]))

        assert deep_equal(original, copy.deepcopy(original))
        assert original != copy.deepcopy(original)

    def test_different_classes_are_not_equal(self):
        assert not deep_equal(Plain(a=1), OtherPlain(a=1))

    def test_mapping_vs_object_not_equal(self):
        assert not deep_equal({"a": 1}, Plain(a=1))

    def test_list_vs_tuple_not_equal(self):
        assert not deep_equal([1, 2], (1, 2))

    def test_bool_is_not_int(self):
        assert not deep_equal(True, 1)
        assert not deep_equal(0, False)
        assert deep_equal(1, 1.0)

    def test_nan_equals_nan(self):
        assert deep_equal(float("nan"), float("nan"))
        assert deep_equal([float("nan")], [float("nan")])

    def test_slots_objects(self):
        assert deep_equal(Point(1, 2), Point(1, 2))
        assert not deep_equal(Point(1, 2), Point(1, 3))

    def test_key_order_does_not_matter(self):
        assert deep_equal({"a": 1, "b": 2}, {"b": 2, "a": 1})

    def test_self_referencing_structures(self):
        a = [1]
        a.append(a)
        b = [1]
        b.append(b)

        assert deep_equal(a, b)

    def test_opaque_values_use_eq(self):
        assert deep_equal({1, 2}, {2, 1})
        assert not deep_equal(date(2024, 1, 1), date(2024, 1, 2))

    def test_element_wise_eq_is_reduced(self):
        assert deep_equal(Grid({1, 2}), copy.deepcopy(Grid({1, 2})))
        assert not deep_equal(Grid({1, 2}), Grid({1, 3}))

    def test_cached_property_does_not_break_equality(self):
        invoice = Invoice([1, 2])
        baseline = copy.deepcopy(invoice)
        assert invoice.total == 3

        assert deep_equal(baseline, invoice)


# =============================================================================
# SNAPSHOTS
# =============================================================================

class TestSnapshot:

    def test_snapshot_is_independent(self):
        value = {"tags": ["a"]}
        baseline = snapshot(value)
        value["tags"].append("b")

        assert baseline == {"tags": ["a"]}

    def test_uncopyable_value_raises(self):
        with pytest.raises(SnapshotCopyFailure) as exc_info:
            snapshot({"lock": threading.Lock()})

        assert isinstance(exc_info.value.cause, TypeError)
        assert "dict" in str(exc_info.value)
