"""Options accepted by :meth:`sqlgraph.Graph.open`."""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from typing_extensions import Literal, TypedDict

IdPolicy = Literal["trust", "check"]

DEFAULT_PATH = "sqlgraph.db"
DEFAULT_BOUNCE_THRESHOLD = 128
DEFAULT_ID_POLICY: IdPolicy = "trust"
DEFAULT_TIMEOUT = 5.0

_ID_POLICIES = ("trust", "check")


class GraphOptions(TypedDict, total=False):
    """Keyword options for a graph session.

    bounce_threshold: pending SQL longer than this many characters is resolved
        to a flat id list; ``None`` never bounces.
    id_policy: ``"trust"`` leaves explicit ids to the caller, ``"check"``
        rejects taken ids and keeps auto-assigned ids clear of existing rows.
    timeout: seconds SQLite waits on a locked store.
    """

    bounce_threshold: Optional[int]
    id_policy: IdPolicy
    timeout: float


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_choice(name: str, default: str, choices: tuple) -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    return value if value in choices else default


def default_options() -> GraphOptions:
    """Defaults, with environment overrides applied."""
    return {
        "bounce_threshold": _env_int("SQLGRAPH_BOUNCE_THRESHOLD", DEFAULT_BOUNCE_THRESHOLD),
        "id_policy": _env_choice("SQLGRAPH_ID_POLICY", DEFAULT_ID_POLICY, _ID_POLICIES),  # type: ignore[typeddict-item]
        "timeout": DEFAULT_TIMEOUT,
    }


def normalize_options(options: Optional[Mapping[str, Any]] = None) -> GraphOptions:
    """Validate ``options`` and fill in every missing key.

    Raises:
        ValueError: On unknown keys or out-of-range values
        TypeError: On values of the wrong type
    """
    resolved = default_options()
    if options is None:
        return resolved
    if not isinstance(options, Mapping):
        raise TypeError("options must be a mapping of option name -> value")
    for name, value in options.items():
        if name == "bounce_threshold":
            if value is not None:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise TypeError("bounce_threshold must be an integer or None")
                if value <= 0:
                    raise ValueError("bounce_threshold must be a positive integer")
            resolved["bounce_threshold"] = value
        elif name == "id_policy":
            if value not in _ID_POLICIES:
                raise ValueError(f"id_policy must be one of {', '.join(_ID_POLICIES)}")
            resolved["id_policy"] = value
        elif name == "timeout":
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValueError("timeout must be a non-negative number of seconds")
            resolved["timeout"] = float(value)
        else:
            raise ValueError(f"unknown graph option '{name}'")
    return resolved


__all__ = [
    "DEFAULT_PATH",
    "DEFAULT_BOUNCE_THRESHOLD",
    "DEFAULT_ID_POLICY",
    "GraphOptions",
    "IdPolicy",
    "default_options",
    "normalize_options",
]
