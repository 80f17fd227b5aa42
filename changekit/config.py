"""
Tracker configuration.

Options resolve in order: explicit constructor argument, then the
environment, then the built-in default.

Environment:
- CHANGEKIT_DEFAULT_MAX_DEPTH: default ``max_depth`` for ``start_track``
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .errors import TrackingError

DEFAULT_MAX_DEPTH = 3
MAX_DEPTH_ENV_VAR = "CHANGEKIT_DEFAULT_MAX_DEPTH"


def never_atomic(value: Any) -> bool:
    """Default predicate: only scalars and standard value types are atomic."""
    return False


def validate_max_depth(max_depth: Any) -> int:
    """
    Check that a depth is a non-negative integer.

    Raises:
        ValueError: If ``max_depth`` is not a non-negative int
    """
    if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 0:
        raise ValueError(f"max_depth must be a non-negative integer, got {max_depth!r}")
    return max_depth


@dataclass
class TrackerConfig:
    """
    Options for ChangesTracker.

    Attributes:
        default_max_depth: Depth used when ``start_track`` gets no max_depth
        is_atomic_value: Predicate marking domain value types (identifiers,
            money, custom value objects) to be replaced wholesale rather than
            field-diffed
        on_failure: Optional hook called with each suppressed TrackingError
    """
    default_max_depth: int = DEFAULT_MAX_DEPTH
    is_atomic_value: Callable[[Any], bool] = never_atomic
    on_failure: Optional[Callable[[TrackingError], None]] = None

    def __post_init__(self):
        validate_max_depth(self.default_max_depth)
        if not callable(self.is_atomic_value):
            raise ValueError("is_atomic_value must be callable")
        if self.on_failure is not None and not callable(self.on_failure):
            raise ValueError("on_failure must be callable")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "TrackerConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (for tests)
            **overrides: Explicit values that win over the environment

        Raises:
            ValueError: If CHANGEKIT_DEFAULT_MAX_DEPTH is not a non-negative integer
        """
        env = os.environ if environ is None else environ

        if "default_max_depth" not in overrides:
            raw = env.get(MAX_DEPTH_ENV_VAR)
            if raw is not None and raw.strip():
                try:
                    overrides["default_max_depth"] = int(raw.strip())
                except ValueError:
                    raise ValueError(
                        f"{MAX_DEPTH_ENV_VAR} must be a non-negative integer, got {raw!r}"
                    ) from None

        return cls(**overrides)
