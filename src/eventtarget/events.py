"""
eventtarget.events
------------------

Dispatch inputs and the event object handed to listeners.

`dispatch_event` accepts either a type name or an event-like value:

- a `str`, the event type (optionally addressed as ``"<uid>::<type>"``),
- an `EventLike`,
- a mapping with a ``"type"`` key (and optional ``"total"``, ``"loaded"``, ``"async"``),
- any other object exposing a ``type`` attribute.

`resolve_input` folds all of them into an `EventLike`.
"""

from __future__ import annotations

import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Tuple, Union

from .errors import UnspecifiedEventTypeError

ADDRESS_DELIMITER = "::"


@dataclass(frozen=True)
class EventLike:
    type: str
    total: Optional[float] = None
    loaded: Optional[float] = None
    is_async: bool = False


class _SupportsEventType(Protocol):
    """
    Protocol for event-like objects read by attribute.
    """

    type: str


DispatchInput = Union[str, EventLike, Mapping[str, Any], _SupportsEventType]


@dataclass
class Event:
    """
    Per-dispatch event object, passed as the first argument to every listener.
    """

    type: str
    target: Any = None
    total: Optional[float] = None
    loaded: Optional[float] = None


def _number(value: Any) -> Optional[float]:
    # bool is an int subclass but never a progress counter
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return value
    return None


def resolve_input(value: DispatchInput) -> EventLike:
    """
    Normalize a dispatch input.

    Args:
        value (DispatchInput): type name, `EventLike`, mapping or object with `type`.

    Returns:
        EventLike: the normalized input. Progress counters are kept only when
                   both are real numbers.

    Raises:
        UnspecifiedEventTypeError: if no string type can be read from `value`.
    """
    if isinstance(value, str):
        return EventLike(type=value)

    if isinstance(value, Mapping):
        get = value.get
    else:
        # EventLike and other objects; the "async" key maps to `is_async`
        def get(key: str, default: Any = None) -> Any:
            return getattr(value, "is_async" if key == "async" else key, default)

    event_type = get("type")
    if not isinstance(event_type, str):
        raise UnspecifiedEventTypeError(value)

    total, loaded = _number(get("total")), _number(get("loaded"))
    if total is None or loaded is None:
        total = loaded = None
    return EventLike(
        type=event_type,
        total=total,
        loaded=loaded,
        is_async=bool(get("async", False)),
    )


def split_address(event_type: str, uid: Optional[str]) -> Tuple[Optional[str], str]:
    """
    Split ``"<uid>::<type>"`` into ``(uid, type)``. Types without the delimiter
    are returned with the given `uid`. Only the first two parts are used, so
    ``"a::b::c"`` addresses type ``"b"`` on ``"a"``.
    """
    if ADDRESS_DELIMITER in event_type:
        parts = event_type.split(ADDRESS_DELIMITER)
        return parts[0], parts[1]
    return uid, event_type
