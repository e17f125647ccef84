"""
Eventtarget
-----------

Prioritized event listeners for any object.

Features:

- `EventTarget` mixin: `add_event_listener()`, `remove_event_listener()`,
  `remove_all_event_listeners()`, `has_event_listener()`, `dispatch_event()`
  and the `bind`/`unbind`/`unbind_all`/`trigger` aliases.
- Handler options: `priority` (higher runs first) and `scope`.
- A handler returning `False` stops the dispatch.
- Async events (`{"type": ..., "async": True}`) deliver one listener per loop tick.
- Dispatch to another target with ``"<uid>::<type>"``.
- `ListenerRegistry` holds all listeners; targets share the default one unless given their own.
- Thread-safe registration; preserves registration order when priorities tie.
"""

from .config import Settings
from .core import get_registry, reset_registry
from .errors import EventError, UnspecifiedEventTypeError
from .events import Event, EventLike
from .registry import ListenerRegistry
from .target import EventTarget

__all__ = [
    "EventTarget",
    "ListenerRegistry",
    "Event",
    "EventLike",
    "EventError",
    "UnspecifiedEventTypeError",
    "Settings",
    "get_registry",
    "reset_registry",
]
