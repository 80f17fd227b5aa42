"""Value diff module: classification policy and recursive differ."""

from .values import (
    MISSING,
    ValueKind,
    classify,
    is_atomic,
    field_items,
    deep_equal,
    snapshot,
)

from .value_diff import (
    Change,
    diff_values,
    index_path,
    key_path,
)

__all__ = [
    # Classification policy
    "MISSING",
    "ValueKind",
    "classify",
    "is_atomic",
    "field_items",
    "deep_equal",
    "snapshot",
    # Recursive differ
    "Change",
    "diff_values",
    "index_path",
    "key_path",
]
