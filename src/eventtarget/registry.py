"""
Listener registry implementation.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
import math
import re
import threading
import types
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

from .config import Settings
from .events import DispatchInput, Event, resolve_input, split_address

logger = logging.getLogger(__name__)

HandlerFunc = Callable[..., Any]
AsyncDispatch = Union[asyncio.Task, concurrent.futures.Future]

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _bucket_key(event_type: str) -> str:
    return event_type.strip().lower()


def coerce_priority(value: Any) -> int:
    """
    Coerce a priority to an int. Strings are read up to the first non-digit
    ("5px" -> 5); anything that is not a number or such a string becomes 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    return 0


@dataclass(order=True)
class Listener:
    # Sorting fields (priority descending, then registration order ascending)
    sort_index: Tuple[int, int] = field(init=False, repr=False)
    priority: int
    order: int
    handler: HandlerFunc = field(compare=False)
    scope: Any = field(default=None, compare=False)
    bind_scope: bool = field(default=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        self.sort_index = (-self.priority, self.order)

    def call(self, *args: Any, **kwargs: Any) -> Any:
        """
        Call the handler. An explicit scope is bound as the first argument of
        plain functions; bound methods and other callables are called as is.
        """
        func = self.handler
        if self.bind_scope and inspect.isfunction(func):
            func = types.MethodType(func, self.scope)
        return func(*args, **kwargs)


class ListenerRegistry:
    """
    Listeners of any number of event targets, keyed by target uid and then by
    lowercase event type. Thread-safe registration; listeners are called
    outside the lock on a sorted snapshot of their bucket.

    Empty buckets and empty uid entries are removed as soon as they empty out.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings.from_env()
        self._lock = threading.RLock()
        self._pool: Dict[str, Dict[str, List[Listener]]] = {}
        self._counter = 0  # registration order
        self._tasks: Set[asyncio.Task] = set()
        # background loop for async dispatches started outside a running loop
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._futures: Set[concurrent.futures.Future] = set()

    def new_uid(self) -> str:
        """Return a fresh uid."""
        return f"{self.settings.uid_prefix}{uuid.uuid4().hex}"

    # -------------------- registration API --------------------
    def add_listener(
        self,
        uid: str,
        event_type: str,
        handler: HandlerFunc,
        priority: Any = 0,
        scope: Any = None,
        owner: Any = None,
    ) -> None:
        """
        Register `handler` for `event_type` under `uid`.

        Args:
            uid (str): Identity the listener belongs to.
            event_type (str): Event type, case-insensitive. Several types may be
                              given at once separated by whitespace; the handler
                              is then registered once per type.
            handler (HandlerFunc): Called with the `Event` followed by the
                                   dispatch arguments.
            priority (Any, optional): Coerced with `coerce_priority`. Higher runs first.
            scope (Any, optional): Object bound as the handler's first argument.
                                   Defaults to `owner`, without binding.
            owner (Any, optional): The target registering the listener.

        Raises:
            TypeError: if `handler` is not callable.
        """
        if not callable(handler):
            raise TypeError("handler must be callable")

        names = event_type.split()
        if len(names) > 1:
            for name in names:
                self.add_listener(uid, name, handler, priority, scope, owner)
            return
        if not names:
            logger.debug("Ignoring listener %r with empty event type", handler)
            return

        name = names[0].lower()
        with self._lock:
            self._counter += 1
            listener = Listener(
                priority=coerce_priority(priority),
                order=self._counter,
                handler=handler,
                scope=owner if scope is None else scope,
                bind_scope=scope is not None,
            )
            self._pool.setdefault(uid, {}).setdefault(name, []).append(listener)
        logger.debug(
            "Added listener %r to '%s' on %s (priority %d)",
            handler,
            name,
            uid,
            listener.priority,
        )

    def has_listener(self, uid: str, event_type: Optional[str] = None) -> bool:
        """
        Whether `uid` has listeners for `event_type`, or for anything at all
        when `event_type` is omitted.
        """
        with self._lock:
            types_ = self._pool.get(uid)
            if not types_:
                return False
            if event_type is None:
                return True
            return bool(types_.get(_bucket_key(event_type)))

    def remove_listener(
        self, uid: str, event_type: str, handler: Optional[HandlerFunc] = None
    ) -> int:
        """
        Unregister a listener. With `handler`, the most recently registered
        matching record is removed (one per call). Without it, every listener
        for `event_type` is removed.

        Returns:
            int: The number of removed listeners.
        """
        name = _bucket_key(event_type)
        with self._lock:
            types_ = self._pool.get(uid)
            bucket = types_.get(name) if types_ else None
            if not bucket:
                return 0

            if handler is None:
                removed = len(bucket)
                del bucket[:]
            else:
                removed = 0
                for i in range(len(bucket) - 1, -1, -1):
                    if bucket[i].handler == handler:
                        del bucket[i]
                        removed = 1
                        break

            if not bucket:
                del types_[name]
                if not types_:
                    del self._pool[uid]
        logger.debug("Removed %d listener(s) from '%s' on %s", removed, name, uid)
        return removed

    def remove_all_listeners(self, uid: str) -> int:
        """
        Drop every listener registered under `uid`.

        Returns:
            int: The number of removed listeners.
        """
        with self._lock:
            types_ = self._pool.pop(uid, None)
        if not types_:
            return 0
        removed = sum(len(bucket) for bucket in types_.values())
        logger.debug("Removed all %d listener(s) on %s", removed, uid)
        return removed

    def list_listeners(self, uid: str, event_type: str) -> List[HandlerFunc]:
        """Return the handlers registered for `event_type`, in bucket order."""
        with self._lock:
            bucket = self._pool.get(uid, {}).get(_bucket_key(event_type), [])
            return [listener.handler for listener in bucket]

    def uids(self) -> List[str]:
        """Return the uids that currently have listeners."""
        with self._lock:
            return list(self._pool)

    # -------------------- dispatch --------------------
    def dispatch(
        self, uid: Optional[str], target: Any, event: DispatchInput, *args: Any, **kwargs: Any
    ) -> bool:
        """
        Dispatch `event` to the listeners of `uid`.

        A type of the form ``"<other uid>::<type>"`` is dispatched to the
        listeners of the other uid instead. Listeners are called in descending
        priority, registration order breaking ties, with an `Event` followed by
        `args` and `kwargs`.

        Synchronously, a listener returning `False` stops the dispatch, and
        exceptions raised by listeners propagate. An event-like input flagged
        async is delivered by `dispatch_async` instead: this call returns `True`
        before any listener runs, listeners then run one per loop tick, and
        their exceptions are logged rather than raised here.

        Args:
            uid (Optional[str]): Identity of the dispatching target.
            target (Any): The dispatching target, set as `Event.target`.
            event (DispatchInput): Event type or event-like value.
            *args: Positional arguments passed after the `Event`.
            **kwargs: Keyword arguments passed to listeners.

        Returns:
            bool: `False` if a synchronous listener returned `False`, else `True`.

        Raises:
            UnspecifiedEventTypeError: if no event type can be read from `event`.
        """
        request = resolve_input(event)
        uid, name = split_address(request.type, uid)
        name = _bucket_key(name)

        listeners = self._sorted_snapshot(uid, name)
        if not listeners:
            logger.debug("Dispatching '%s' on %s with no listeners", name, uid)
            return True

        evt = Event(type=name, target=target, total=request.total, loaded=request.loaded)
        if request.is_async:
            self.dispatch_async(listeners, evt, args, kwargs)
            return True

        logger.debug("Dispatching '%s' on %s to %d listener(s)", name, uid, len(listeners))
        for listener in listeners:
            if listener.call(evt, *args, **kwargs) is False:
                logger.debug("Dispatch of '%s' on %s stopped by %r", name, uid, listener.handler)
                return False
        return True

    def _sorted_snapshot(self, uid: Optional[str], name: str) -> List[Listener]:
        with self._lock:
            bucket = self._pool.get(uid, {}).get(name) if uid is not None else None
            if not bucket:
                return []
            bucket.sort()
            return list(bucket)

    def dispatch_async(
        self,
        listeners: Sequence[Listener],
        evt: Event,
        args: Sequence[Any] = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> AsyncDispatch:
        """
        Run `listeners` one after another, each on a later loop tick.
        Returns before any listener has run.

        - If a loop is running, schedules and returns an asyncio.Task on it.
        - If no loop is running, submits to the registry's background loop thread
          and returns a concurrent.futures.Future.

        Listener exceptions end the dispatch and are logged; they stay on the
        returned task or future and never reach the caller of `dispatch`.

        Returns:
            asyncio.Task or concurrent.futures.Future
        """
        coro = self._run_in_series(list(listeners), evt, tuple(args), dict(kwargs or {}))
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            future = asyncio.run_coroutine_threadsafe(
                self._log_failure(coro), self._background_loop()
            )
            with self._lock:
                self._futures.add(future)
            future.add_done_callback(self._on_future_done)
            return future
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _background_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever, name="eventtarget-async", daemon=True
                )
                thread.start()
                self._loop, self._thread = loop, thread
                logger.debug("Started background loop for async dispatch")
            return self._loop

    async def _run_in_series(
        self,
        listeners: List[Listener],
        evt: Event,
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
    ) -> bool:
        for listener in listeners:
            await asyncio.sleep(self.settings.async_delay)
            result = listener.call(evt, *args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            if result is False:
                logger.debug("Async dispatch of '%s' stopped by %r", evt.type, listener.handler)
                return False
        return True

    async def _log_failure(self, coro: Awaitable[bool]) -> bool:
        # logged on the loop thread, before the future completes
        try:
            return await coro
        except Exception:
            logger.exception("Async listener failed")
            raise

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async listener failed", exc_info=exc)

    def _on_future_done(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def pending(self) -> List[AsyncDispatch]:
        """Return the async dispatches still in flight."""
        with self._lock:
            futures = list(self._futures)
        return [item for item in [*self._tasks, *futures] if not item.done()]

    async def drain(self) -> None:
        """Wait until every in-flight async dispatch has finished."""
        while True:
            items = self.pending()
            if not items:
                return
            await asyncio.gather(
                *(
                    item if isinstance(item, asyncio.Future) else asyncio.wrap_future(item)
                    for item in items
                ),
                return_exceptions=True,
            )

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Block until async dispatches started outside a running loop have finished.

        Args:
            timeout (float, optional): Seconds to wait. Defaults to None (no limit).

        Returns:
            bool: True if nothing is left in flight.
        """
        with self._lock:
            futures = list(self._futures)
        _, not_done = concurrent.futures.wait(futures, timeout=timeout)
        return not not_done

    def dispose(self) -> None:
        """Cancel in-flight async dispatches, stop the background loop and drop every listener."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
            futures = list(self._futures)
            self._futures.clear()
            self._pool.clear()

        for future in futures:
            future.cancel()
        if loop is not None:
            if thread is threading.current_thread():
                # called from a listener; the loop stops once that step returns
                loop.create_task(_cancel_all()).add_done_callback(lambda _: loop.stop())
            else:
                asyncio.run_coroutine_threadsafe(_cancel_all(), loop).result()
                loop.call_soon_threadsafe(loop.stop)
                thread.join()
                loop.close()
        logger.debug("Disposed listener registry")


async def _cancel_all() -> None:
    tasks = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
