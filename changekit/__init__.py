from .tracker import ChangesTracker, TrackedEntry
from .config import TrackerConfig, DEFAULT_MAX_DEPTH
from .diff import Change, MISSING, ValueKind, classify, deep_equal, diff_values
from .errors import TrackingError, PropertyReadFailure, SnapshotCopyFailure, UnresolvedOwner

__all__ = [
    "ChangesTracker",
    "TrackedEntry",
    "TrackerConfig",
    "DEFAULT_MAX_DEPTH",
    "Change",
    "MISSING",
    "ValueKind",
    "classify",
    "deep_equal",
    "diff_values",
    "TrackingError",
    "PropertyReadFailure",
    "SnapshotCopyFailure",
    "UnresolvedOwner",
]
