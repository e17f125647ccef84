"""
eventtarget.target
------------------

The `EventTarget` mixin: event capability for any object.
"""

from typing import Any, Iterable, Optional, Union

from .core import get_registry
from .events import DispatchInput
from .registry import HandlerFunc, ListenerRegistry


class EventTarget:
    """
    Mixin giving an object `add_event_listener`, `dispatch_event` and friends.

    The object only holds its `uid` and, optionally, the registry it uses;
    listeners live in the registry. Targets without `event_registry` use the
    default registry from `eventtarget.core`.

    Example:
    class Uploader(EventTarget):
        def __init__(self):
            self.init()

    up = Uploader()
    up.add_event_listener("progress", lambda e: print(e.loaded, e.total))
    up.dispatch_event({"type": "progress", "loaded": 5, "total": 10})
    """

    uid: Optional[str] = None
    event_registry: Optional[ListenerRegistry] = None

    @property
    def registry(self) -> ListenerRegistry:
        """The registry holding this target's listeners."""
        return self.event_registry or get_registry()

    def init(self) -> None:
        """Assign a uid unless the target already has one."""
        if not self.uid:
            self.uid = self.registry.new_uid()

    def add_event_listener(
        self,
        event_type: str,
        handler: HandlerFunc,
        priority: Any = 0,
        scope: Any = None,
    ) -> None:
        """
        Register a handler for an event dispatched by this target.

        Args:
            event_type (str): Event type, case-insensitive. Whitespace-separated
                              types register the handler once per type.
            handler (HandlerFunc): Called with the `Event` followed by the
                                   dispatch arguments. Returning `False` stops
                                   the dispatch.
            priority (Any, optional): The priority of the handler. Defaults to 0.
                                      Higher priority handlers run first.
                                      For equal priority, registration order is preserved.
            scope (Any, optional): Object bound as the handler's first argument.
                                   Defaults to this target (no binding).
        """
        self.init()
        self.registry.add_listener(
            self.uid, event_type, handler, priority, scope=scope, owner=self
        )

    def has_event_listener(self, event_type: Optional[str] = None) -> bool:
        """Whether a handler is registered for `event_type` (or for any type)."""
        self.init()
        return self.registry.has_listener(self.uid, event_type)

    def remove_event_listener(
        self, event_type: str, handler: Optional[HandlerFunc] = None
    ) -> int:
        """
        Unregister `handler` from `event_type`, or every handler of
        `event_type` if `handler` is omitted. Returns the number removed.
        """
        self.init()
        return self.registry.remove_listener(self.uid, event_type, handler)

    def remove_all_event_listeners(self) -> int:
        """Unregister every handler of this target."""
        self.init()
        return self.registry.remove_all_listeners(self.uid)

    def dispatch_event(self, event: DispatchInput, *args: Any, **kwargs: Any) -> bool:
        """
        Dispatch an event from this target.

        Args:
            event (DispatchInput): Event type, optionally addressed to another
                                   target as ``"<uid>::<type>"``, or an
                                   event-like value (`EventLike`, mapping or
                                   object with a `type`).
            *args: Positional arguments passed after the `Event`.
            **kwargs: Keyword arguments passed to the handlers.

        Returns:
            bool: `False` if a handler returned `False`, else `True`.
                  Always `True` for async events.

        Raises:
            UnspecifiedEventTypeError: if `event` carries no string type.
        """
        self.init()
        return self.registry.dispatch(self.uid, self, event, *args, **kwargs)

    def bind(self, *args: Any, **kwargs: Any) -> None:
        """Alias for add_event_listener."""
        self.add_event_listener(*args, **kwargs)

    def unbind(self, *args: Any, **kwargs: Any) -> int:
        """Alias for remove_event_listener."""
        return self.remove_event_listener(*args, **kwargs)

    def unbind_all(self) -> int:
        """Alias for remove_all_event_listeners."""
        return self.remove_all_event_listeners()

    def trigger(self, *args: Any, **kwargs: Any) -> bool:
        """Alias for dispatch_event."""
        return self.dispatch_event(*args, **kwargs)

    def convert_event_props_to_handlers(self, event_types: Union[str, Iterable[str]]) -> None:
        """
        Register ``on<type>`` attributes as handlers for ``<type>``.
        Missing attributes are defined as `None`, so every ``on<type>`` exists.
        """
        if isinstance(event_types, str):
            event_types = [event_types]

        for event_type in event_types:
            attr = "on" + event_type
            value = getattr(self, attr, None)
            if callable(value):
                self.add_event_listener(event_type, value)
            elif value is None:
                setattr(self, attr, None)
