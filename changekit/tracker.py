"""
Snapshot-based change tracker.

Tracks properties of live objects by keeping a deep-copied baseline per
(owner type, property name) and diffing the live value against it on demand.

LIFECYCLE:
- start_track():      take a baseline (replaces any entry under the same key)
- peek_changes():     diff live values against baselines (read-only)
- update_snapshots(): commit live values as the new baselines
- stop_track() / stop_all_tracks(): forget entries

The tracker never wraps or proxies the tracked value and never intercepts
writes. Mutations between two observations are coalesced: only the two
point-in-time states are compared.

FAILURE POLICY:
No public operation raises. Read failures, copy failures and collected
owners degrade to "skip" or "drop entry", are logged, and are passed to
the optional ``on_failure`` hook.

REGISTRY KEY:
Entries are keyed by ``type(owner).__name__`` and the property name, not by
owner identity. Two instances of the same class tracking the same property
share one slot: the later registration replaces the earlier one, and
stop_track() for an instance that no longer owns the slot does nothing.
"""

import dataclasses
import inspect
import logging
import types
import weakref
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .config import TrackerConfig
from .diff.value_diff import Change, diff_values
from .diff.values import MISSING, deep_equal, snapshot
from .errors import (
    PropertyReadFailure,
    SnapshotCopyFailure,
    TrackingError,
    UnresolvedOwner,
)

logger = logging.getLogger(__name__)


class _StrongRef:
    """Reference stand-in for owners that do not support weak references."""

    __slots__ = ("_obj",)

    def __init__(self, obj: Any):
        self._obj = obj

    def __call__(self) -> Any:
        return self._obj


def _make_owner_ref(owner: Any) -> Callable[[], Any]:
    try:
        return weakref.ref(owner)
    except TypeError:
        logger.warning(
            "%s instances cannot be weakly referenced; the tracker keeps a strong "
            "reference until stop_track() is called",
            type(owner).__name__
        )
        return _StrongRef(owner)


def composite_key(owner: Any, property_name: Any) -> str:
    """Registry key for an (owner, property) pair: ``TypeName.property``."""
    return f"{type(owner).__name__}.{property_name}"


def read_property(owner: Any, property_name: Any) -> Any:
    """
    Read a property from its owner.

    Mappings are read by key, everything else by attribute. A property that
    does not exist reads as MISSING. An AttributeError raised by a property
    that does exist (a failing getter) propagates like any other exception.
    """
    if isinstance(owner, Mapping):
        try:
            return owner[property_name]
        except KeyError:
            return MISSING
    try:
        return getattr(owner, property_name)
    except AttributeError:
        if _is_defined(owner, property_name):
            raise
        return MISSING


def _is_defined(owner: Any, property_name: str) -> bool:
    try:
        attr = inspect.getattr_static(owner, property_name)
    except AttributeError:
        return False
    # an unassigned __slots__ field is absent, not broken
    return not isinstance(attr, types.MemberDescriptorType)


@dataclass
class TrackedEntry:
    """One registered observation point."""
    owner_ref: Callable[[], Any]
    property_name: Any
    baseline: Any
    max_depth: int

    def owner(self) -> Any:
        """Resolve the owner; None once it has been garbage collected."""
        return self.owner_ref()


class ChangesTracker:
    """
    Tracks property changes on objects using deep-copied baselines.

    Example:
        tracker = ChangesTracker()
        tracker.start_track(user, "address")
        user.address["city"] = "New City"
        tracker.peek_changes()
        # [Change(path='address.city', old_value='Anytown', new_value='New City')]
        tracker.update_snapshots()
    """

    def __init__(
        self,
        is_atomic_value: Optional[Callable[[Any], bool]] = None,
        default_max_depth: Optional[int] = None,
        on_failure: Optional[Callable[[TrackingError], None]] = None,
        config: Optional[TrackerConfig] = None
    ):
        """Initialize the tracker.

        Args:
            is_atomic_value: Predicate marking values to compare whole, never
                recursed into (default: none)
            default_max_depth: Depth used when start_track() gets none
                (default: CHANGEKIT_DEFAULT_MAX_DEPTH or 3)
            on_failure: Hook called with each suppressed TrackingError
            config: Base configuration; explicit arguments override it

        Raises:
            ValueError: If an option is invalid
        """
        overrides: Dict[str, Any] = {}
        if is_atomic_value is not None:
            overrides["is_atomic_value"] = is_atomic_value
        if default_max_depth is not None:
            overrides["default_max_depth"] = default_max_depth
        if on_failure is not None:
            overrides["on_failure"] = on_failure

        if config is None:
            config = TrackerConfig.from_env(**overrides)
        elif overrides:
            config = dataclasses.replace(config, **overrides)

        self.config = config
        self._tracked: Dict[str, TrackedEntry] = {}

    def __len__(self) -> int:
        return len(self._tracked)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def start_track(self, owner: Any, property_name: Any, max_depth: Optional[int] = None) -> Any:
        """
        Start tracking a property and take its baseline.

        If the key (owner type + property name) is already registered, for
        this owner or another instance of the same type, the old entry is
        discarded so the new max_depth and a fresh baseline take effect.

        Args:
            owner: Object (or mapping) holding the property
            property_name: Attribute name, or key when owner is a mapping
            max_depth: Depth below which changes are aggregated
                (default: config.default_max_depth)

        Returns:
            The live property value itself (not a copy or proxy), or None if
            the property could not be read
        """
        if owner is None:
            logger.debug("start_track called without an owner for %r; ignoring", property_name)
            return None

        depth = self._resolve_depth(max_depth)
        key = composite_key(owner, property_name)

        existing = self._tracked.pop(key, None)
        if existing is not None:
            if existing.owner() is owner:
                logger.debug("Restarting tracking for %s", key)
            else:
                logger.debug("Replacing tracked %s with a different %s instance", key, type(owner).__name__)

        try:
            current_value = read_property(owner, property_name)
        except Exception as e:
            self._report(PropertyReadFailure(
                "Cannot read property; tracking not started",
                key=key, property_name=property_name, cause=e
            ))
            return None

        try:
            baseline = snapshot(current_value)
        except SnapshotCopyFailure as e:
            self._report(SnapshotCopyFailure(
                "Cannot snapshot property; tracking not started",
                key=key, property_name=property_name, cause=e.cause
            ))
            return current_value

        self._tracked[key] = TrackedEntry(
            owner_ref=_make_owner_ref(owner),
            property_name=property_name,
            baseline=baseline,
            max_depth=depth
        )
        logger.debug("Tracking %s (max_depth=%d)", key, depth)
        return current_value

    def _resolve_depth(self, max_depth: Optional[int]) -> int:
        if max_depth is None:
            return self.config.default_max_depth
        if isinstance(max_depth, bool) or not isinstance(max_depth, int):
            logger.warning(
                "Invalid max_depth %r; using default %d",
                max_depth, self.config.default_max_depth
            )
            return self.config.default_max_depth
        if max_depth < 0:
            logger.warning("Negative max_depth %d clamped to 0", max_depth)
            return 0
        return max_depth

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def peek_changes(self) -> List[Change]:
        """
        Compare every tracked property against its baseline.

        Baselines are not modified: calling this repeatedly without
        update_snapshots() keeps comparing against the same baseline.
        Entries whose owner has been collected are dropped; entries whose
        property cannot be read are skipped for this call only.

        Returns:
            Changes for all tracked properties, in registration order
        """
        all_changes: List[Change] = []

        for key, entry in list(self._tracked.items()):
            owner = entry.owner()
            if owner is None:
                self._drop_unresolved(key, entry)
                continue

            try:
                current_value = read_property(owner, entry.property_name)
            except Exception as e:
                self._report(PropertyReadFailure(
                    "Cannot read property; skipped for this peek",
                    key=key, property_name=entry.property_name, cause=e
                ))
                continue

            if deep_equal(entry.baseline, current_value):
                continue

            try:
                property_changes = diff_values(
                    entry.baseline,
                    current_value,
                    str(entry.property_name),
                    entry.max_depth,
                    0,
                    self.config.is_atomic_value
                )
            except SnapshotCopyFailure as e:
                self._report(SnapshotCopyFailure(
                    "Cannot copy changed value; skipped for this peek",
                    key=key, property_name=entry.property_name, cause=e.cause
                ))
                continue

            all_changes.extend(property_changes)

        return all_changes

    # =========================================================================
    # COMMITMENT
    # =========================================================================

    def update_snapshots(self) -> None:
        """
        Replace every baseline with a copy of the current live value.

        A property that cannot be read keeps its existing baseline. A value
        that cannot be copied ends tracking for that entry.
        """
        for key, entry in list(self._tracked.items()):
            owner = entry.owner()
            if owner is None:
                self._drop_unresolved(key, entry)
                continue

            try:
                current_value = read_property(owner, entry.property_name)
            except Exception as e:
                self._report(PropertyReadFailure(
                    "Cannot read property; baseline left unchanged",
                    key=key, property_name=entry.property_name, cause=e
                ))
                continue

            try:
                entry.baseline = snapshot(current_value)
            except SnapshotCopyFailure as e:
                del self._tracked[key]
                self._report(SnapshotCopyFailure(
                    "Cannot snapshot property; tracking stopped",
                    key=key, property_name=entry.property_name, cause=e.cause
                ))

    # =========================================================================
    # DE-REGISTRATION
    # =========================================================================

    def stop_track(self, owner: Any, property_name: Any) -> None:
        """
        Stop tracking a property.

        Only removes the entry if it currently belongs to ``owner``; calling
        this with another instance of the same type is a no-op.
        """
        if owner is None:
            return
        key = composite_key(owner, property_name)
        entry = self._tracked.get(key)
        if entry is not None and entry.owner() is owner:
            del self._tracked[key]
            logger.debug("Stopped tracking %s", key)

    def stop_all_tracks(self) -> None:
        """Stop tracking everything."""
        self._tracked.clear()
        logger.debug("Stopped all tracking")

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def is_tracking(self, owner: Any, property_name: Any) -> bool:
        """Returns True if ``owner`` currently holds the slot for ``property_name``."""
        if owner is None:
            return False
        entry = self._tracked.get(composite_key(owner, property_name))
        return entry is not None and entry.owner() is owner

    def tracked_keys(self) -> List[str]:
        """Registry keys in registration order."""
        return list(self._tracked)

    def get_entry(self, key: str) -> Optional[TrackedEntry]:
        """Look up a registry entry by its ``TypeName.property`` key."""
        return self._tracked.get(key)

    # =========================================================================
    # FAILURE REPORTING
    # =========================================================================

    def _drop_unresolved(self, key: str, entry: TrackedEntry) -> None:
        del self._tracked[key]
        self._report(UnresolvedOwner(
            "Owner was garbage collected; tracking stopped",
            key=key, property_name=entry.property_name
        ))

    def _report(self, error: TrackingError) -> None:
        if isinstance(error, UnresolvedOwner):
            logger.debug("%s (%s)", error, error.key)
        else:
            logger.warning("%s (%s)", error, error.key)

        hook = self.config.on_failure
        if hook is None:
            return
        try:
            hook(error)
        except Exception:
            logger.error(
                "on_failure hook raised while handling %s",
                type(error).__name__,
                exc_info=True
            )
