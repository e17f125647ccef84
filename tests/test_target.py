"""Tests for the EventTarget mixin."""

import asyncio

import pytest

from eventtarget import (
    EventTarget,
    ListenerRegistry,
    Settings,
    UnspecifiedEventTypeError,
    get_registry,
    reset_registry,
)


class Uploader(EventTarget):
    def __init__(self, registry=None):
        self.event_registry = registry
        self.init()


class Widget(EventTarget):
    onload = None
    onerror = "not a handler"

    def __init__(self):
        self.calls = []

    def onclick(self, event):
        self.calls.append(event.type)


@pytest.fixture(autouse=True)
def fresh_default_registry():
    reset_registry(Settings())
    yield
    reset_registry(Settings())


def test_init_assigns_uid_once():
    """Test that init() assigns a uid and keeps it."""
    target = Uploader()
    uid = target.uid
    assert uid.startswith("uid_")
    target.init()
    assert target.uid == uid
    assert Uploader().uid != uid


def test_uid_is_assigned_lazily():
    """Test that any method assigns a uid on first use."""
    widget = Widget()
    assert widget.uid is None
    assert widget.has_event_listener() is False
    assert widget.uid is not None


def test_targets_sharing_default_registry_are_isolated():
    """Test that targets only see their own listeners."""
    a, b = Uploader(), Uploader()
    out = []

    a.add_event_listener("evt", lambda e: out.append("a"))
    b.add_event_listener("evt", lambda e: out.append("b"))

    a.dispatch_event("evt")
    assert out == ["a"]
    assert set(get_registry().uids()) == {a.uid, b.uid}


def test_target_with_own_registry():
    """Test that an explicit registry keeps listeners out of the default one."""
    registry = ListenerRegistry(Settings(uid_prefix="own_"))
    target = Uploader(registry)
    out = []

    target.add_event_listener("evt", out.append)
    target.dispatch_event("evt")

    assert target.uid.startswith("own_")
    assert registry.uids() == [target.uid]
    assert get_registry().uids() == []
    assert out[0].target is target


def test_event_target_and_args():
    """Test that handlers get an Event whose target is the dispatcher."""
    target = Uploader()
    result = {}

    def handler(event, x, y=None):
        result["event"] = event
        result["x"] = x
        result["y"] = y

    target.add_event_listener("evt", handler)
    assert target.dispatch_event("evt", 1, y=2) is True

    assert result["event"].type == "evt"
    assert result["event"].target is target
    assert (result["x"], result["y"]) == (1, 2)


def test_priority_short_circuit():
    """Test the higher-priority handler returning False stops the lower one."""
    target = Uploader()
    out = []

    def a(event):  # pylint: disable=unused-argument
        out.append("a")

    def b(event):  # pylint: disable=unused-argument
        out.append("b")
        return False

    target.add_event_listener("load", a, 5)
    target.add_event_listener("load", b, 10)

    assert target.dispatch_event("load") is False
    assert out == ["b"]


def test_default_scope_is_target():
    """Test that the default listener scope is the registering target."""
    target = Uploader()
    target.add_event_listener("evt", lambda e: None)

    bucket = target.registry._pool[target.uid]["evt"]  # pylint: disable=protected-access
    assert bucket[0].scope is target


def test_explicit_scope():
    """Test that an explicit scope is bound as the handler's first argument."""
    target = Uploader()
    scope = Widget()

    def handler(self, event):
        self.calls.append(("scoped", event.type))

    target.add_event_listener("evt", handler, scope=scope)
    target.dispatch_event("evt")

    assert scope.calls == [("scoped", "evt")]


def test_remove_event_listener_and_has():
    """Test removal and has_event_listener() bookkeeping."""
    target = Uploader()

    def h(e): ...  # pylint: disable=unused-argument

    target.add_event_listener("a b", h)
    assert target.has_event_listener()
    assert target.has_event_listener("a") and target.has_event_listener("b")

    assert target.remove_event_listener("a", h) == 1
    assert not target.has_event_listener("a")
    assert target.remove_event_listener("b") == 1
    assert not target.has_event_listener()
    assert target.uid not in get_registry().uids()


def test_remove_all_event_listeners():
    """Test remove_all_event_listeners() removes every type."""
    target = Uploader()
    out = []

    target.add_event_listener("a", lambda e: out.append(1))
    target.add_event_listener("b", lambda e: out.append(2))
    assert target.remove_all_event_listeners() == 2

    target.dispatch_event("a")
    target.dispatch_event("b")
    assert not out
    assert not target.has_event_listener()


def test_bound_method_can_be_removed():
    """Test that a bound method is removed by an equal bound method."""
    target = Uploader()
    widget = Widget()

    target.add_event_listener("click", widget.onclick)
    assert target.remove_event_listener("click", widget.onclick) == 1


def test_dispatch_to_other_target():
    """Test dispatching "<uid>::<type>" on behalf of another target."""
    a, b = Uploader(), Uploader()
    out = []

    a.add_event_listener("click", lambda e: out.append("a"))
    b.add_event_listener("click", lambda e: out.append(("b", e.target)))

    assert a.dispatch_event(f"{b.uid}::click") is True
    assert out == [("b", a)]


def test_dispatch_event_unspecified_type():
    """Test that an event-like value without a type is rejected."""
    target = Uploader()
    target.add_event_listener("evt", lambda e: None)

    with pytest.raises(UnspecifiedEventTypeError):
        target.dispatch_event({})
    with pytest.raises(TypeError):
        target.dispatch_event({"type": None})


def test_aliases():
    """Test bind/unbind/unbind_all/trigger behave like the methods they stand for."""
    target = Uploader()
    out = []

    def h(e):
        out.append(e.type)

    target.bind("evt", h)
    assert target.trigger("evt") is True
    target.unbind("evt", h)
    target.trigger("evt")
    target.bind("x", h)
    target.unbind_all()

    assert out == ["evt"]
    assert not target.has_event_listener()


def test_aliases_follow_overrides():
    """Test that aliases call a subclass's overridden methods."""
    calls = []

    class Tracked(Uploader):
        def add_event_listener(self, event_type, handler, priority=0, scope=None):
            calls.append(("add", event_type))
            super().add_event_listener(event_type, handler, priority, scope)

        def remove_event_listener(self, event_type, handler=None):
            calls.append(("remove", event_type))
            return super().remove_event_listener(event_type, handler)

        def remove_all_event_listeners(self):
            calls.append(("remove_all",))
            return super().remove_all_event_listeners()

        def dispatch_event(self, event, *args, **kwargs):
            calls.append(("dispatch", event))
            return super().dispatch_event(event, *args, **kwargs)

    target = Tracked()
    target.bind("evt", lambda e: None, 1)
    assert target.trigger("evt") is True
    assert target.unbind("evt") == 1
    assert target.unbind_all() == 0

    assert calls == [("add", "evt"), ("dispatch", "evt"), ("remove", "evt"), ("remove_all",)]


def test_convert_event_props_to_handlers():
    """Test on<type> attributes become handlers and missing ones are defined."""
    widget = Widget()
    widget.convert_event_props_to_handlers(["click", "load", "error", "progress"])

    assert widget.has_event_listener("click")
    assert not widget.has_event_listener("load")
    assert not widget.has_event_listener("error")
    assert widget.onprogress is None
    assert widget.onerror == "not a handler"

    widget.dispatch_event("click")
    assert widget.calls == ["click"]


def test_convert_event_props_single_name():
    """Test a single type name is accepted."""
    widget = Widget()
    widget.convert_event_props_to_handlers("click")
    assert widget.has_event_listener("click")


def test_reset_registry_disposes_old_one():
    """Test reset_registry() replaces and empties the default registry."""
    target = Uploader()
    target.add_event_listener("evt", lambda e: None)
    old = get_registry()

    new = reset_registry()

    assert new is get_registry()
    assert new is not old
    assert old.uids() == []
    assert not target.has_event_listener()


@pytest.mark.asyncio
async def test_async_progress_listeners():
    """Test three async listeners run in priority order after dispatch returns."""
    target = Uploader()
    out = []

    async def middle(event):
        await asyncio.sleep(0)
        out.append(("middle", event.loaded))

    target.add_event_listener("progress", lambda e: out.append(("last", e.loaded)), 1)
    target.add_event_listener("progress", middle, 2)
    target.add_event_listener("progress", lambda e: out.append(("first", e.loaded)), 3)

    result = target.dispatch_event(
        {"type": "progress", "async": True, "total": 10, "loaded": 4}
    )

    assert result is True
    assert not out
    await target.registry.drain()
    assert out == [("first", 4), ("middle", 4), ("last", 4)]


@pytest.mark.asyncio
async def test_async_dispatch_interleaves_with_other_work():
    """Test that other tasks can run between async listeners."""
    target = Uploader()
    out = []

    target.add_event_listener("evt", lambda e: out.append("listener 1"), 1)
    target.add_event_listener("evt", lambda e: out.append("listener 2"))

    target.dispatch_event({"type": "evt", "async": True})
    out.append("dispatched")
    await target.registry.drain()

    assert out == ["dispatched", "listener 1", "listener 2"]


def test_async_dispatch_from_sync_code():
    """Test that an async event dispatched outside a loop returns before its listeners run."""
    registry = ListenerRegistry(Settings(async_delay=0.05))
    target = Uploader(registry)
    out = []

    target.add_event_listener("progress", lambda e: out.append(e.loaded), 1)
    target.add_event_listener("progress", lambda e: out.append(e.total))

    try:
        event = {"type": "progress", "async": True, "total": 9, "loaded": 3}
        assert target.dispatch_event(event) is True
        assert out == []
        assert registry.join(timeout=5) is True
        assert out == [3, 9]
    finally:
        registry.dispose()
