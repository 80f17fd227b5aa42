"""
Recursive differ for nested values.

Compares a baseline value against a live value and produces a flat list of
Change records addressed by dot/bracket paths (``address.details.notes``,
``roles[0].name``).

AGGREGATION POLICY:
1. Below ``max_depth`` nothing is inspected: a difference anywhere in the
   subtree is reported once, at the path where the ceiling was hit.
2. Structural differences (a sequence changed length, a record gained or
   lost a key) are reported once at the containing path with the whole
   old and new containers, never as per-element adds/removes.
3. Atomic values (see ``values.classify``) are replaced wholesale.

The differ only reports. It never patches or merges.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .values import (
    ATOMIC_KINDS,
    MISSING,
    ValueKind,
    classify,
    deep_equal,
    field_items,
    snapshot,
)


@dataclass
class Change:
    """
    A single difference between a baseline and a live value.

    ``old_value``/``new_value`` are MISSING when the property did not exist
    on that side. Non-atomic values are deep copies, so a Change stays valid
    after the live value keeps mutating.
    """
    path: str
    old_value: Any = MISSING
    new_value: Any = MISSING

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary, omitting absent sides."""
        result: Dict[str, Any] = {"path": self.path}
        if self.old_value is not MISSING:
            result["old_value"] = self.old_value
        if self.new_value is not MISSING:
            result["new_value"] = self.new_value
        return result


def index_path(path: str, index: int) -> str:
    """Path of a sequence element."""
    return f"{path}[{index}]"


def key_path(path: str, key: Any) -> str:
    """Path of a record field; non-string mapping keys use bracket form."""
    if isinstance(key, str):
        return f"{path}.{key}"
    return f"{path}[{key!r}]"


def _replaced(old_value: Any, new_value: Any, path: str, copy_values: bool) -> List[Change]:
    if deep_equal(old_value, new_value):
        return []
    if copy_values:
        return [Change(path=path, old_value=snapshot(old_value), new_value=snapshot(new_value))]
    return [Change(path=path, old_value=old_value, new_value=new_value)]


def diff_values(
    old_value: Any,
    new_value: Any,
    path: str,
    max_depth: int,
    depth: int = 0,
    is_atomic_value: Optional[Callable[[Any], bool]] = None
) -> List[Change]:
    """
    Recursively compare two values and return the changes between them.

    Args:
        old_value: Baseline value
        new_value: Live value (copied before it is placed in a Change)
        path: Path of the values being compared
        max_depth: Depth at which recursion stops and changes are aggregated
        depth: Current recursion depth
        is_atomic_value: Optional predicate marking domain value types opaque

    Returns:
        List of changes, empty if the values are deep-equal

    Raises:
        SnapshotCopyFailure: If a non-atomic value cannot be deep-copied into
            a Change record
    """
    # Depth ceiling
    if depth >= max_depth:
        return _replaced(old_value, new_value, path, copy_values=True)

    old_kind = classify(old_value, is_atomic_value)
    new_kind = classify(new_value, is_atomic_value)

    if old_kind in ATOMIC_KINDS or new_kind in ATOMIC_KINDS:
        return _replaced(old_value, new_value, path, copy_values=False)

    if old_kind is not new_kind or type(old_value) is not type(new_value):
        # list vs tuple, mapping vs object, instances of different classes
        return _replaced(old_value, new_value, path, copy_values=True)

    changes: List[Change] = []

    if old_kind is ValueKind.SEQUENCE:
        if len(old_value) != len(new_value):
            return [Change(path=path, old_value=snapshot(old_value), new_value=snapshot(new_value))]
        for index, (old_item, new_item) in enumerate(zip(old_value, new_value)):
            changes.extend(diff_values(
                old_item,
                new_item,
                index_path(path, index),
                max_depth,
                depth + 1,
                is_atomic_value
            ))
        return changes

    old_fields = dict(field_items(old_value))
    new_fields = dict(field_items(new_value))
    if old_fields.keys() != new_fields.keys():
        return [Change(path=path, old_value=snapshot(old_value), new_value=snapshot(new_value))]

    if deep_equal(old_value, new_value):
        return []

    # Same keys but not equal: the difference is nested
    for key, old_field in old_fields.items():
        changes.extend(diff_values(
            old_field,
            new_fields[key],
            key_path(path, key),
            max_depth,
            depth + 1,
            is_atomic_value
        ))
    return changes
