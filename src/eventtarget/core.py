"""
eventtarget.core
----------------

Process-wide default registry, used by event targets that were not given one.
"""

import threading
from typing import Optional

from .config import Settings
from .registry import ListenerRegistry

# -------------------- module-level default registry --------------------

_default_registry: Optional[ListenerRegistry] = None
_lock = threading.Lock()


def get_registry() -> ListenerRegistry:
    """
    Return the default registry, creating it on first use.

    Returns:
        ListenerRegistry: The registry shared by targets without their own.
    """
    global _default_registry
    with _lock:
        if _default_registry is None:
            _default_registry = ListenerRegistry()
        return _default_registry


def reset_registry(settings: Optional[Settings] = None) -> ListenerRegistry:
    """
    Dispose the default registry and replace it with a fresh one.

    Args:
        settings (Settings, optional): Settings of the new registry.
                                       Defaults to `Settings.from_env()`.

    Returns:
        ListenerRegistry: The new default registry.
    """
    global _default_registry
    with _lock:
        if _default_registry is not None:
            _default_registry.dispose()
        _default_registry = ListenerRegistry(settings)
        return _default_registry
