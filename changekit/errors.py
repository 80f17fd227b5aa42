"""
Failure taxonomy for the change tracker.

The tracker never lets these escape a public operation. They exist so that a
suppressed failure can be logged and handed to the optional ``on_failure``
hook with enough structure for the caller to act on it:

- PropertyReadFailure: reading the tracked property raised
- SnapshotCopyFailure: deep-copying a value raised
- UnresolvedOwner: the weak owner reference resolved to "gone"
"""

from typing import Any, Dict, Optional


class TrackingError(Exception):
    """
    Base class for suppressed tracking failures.

    Carries the registry key and property name of the entry involved (when
    known) and the underlying exception as ``cause``.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        property_name: Any = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.key = key
        self.property_name = property_name
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {type(self.cause).__name__}: {self.cause}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for log/diagnostic output."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "key": self.key,
            "property_name": self.property_name,
            "cause": repr(self.cause) if self.cause is not None else None,
        }


class PropertyReadFailure(TrackingError):
    """Accessing the tracked property on its owner raised."""


class SnapshotCopyFailure(TrackingError):
    """A value could not be deep-copied into a baseline or change record."""


class UnresolvedOwner(TrackingError):
    """The owner of a tracked property has been garbage collected."""
