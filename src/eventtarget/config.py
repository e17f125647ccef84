"""
Runtime settings.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Settings shared by a registry and the targets bound to it."""

    # Prefix of generated uids
    uid_prefix: str = "uid_"

    # Seconds to wait before each listener of an async dispatch
    async_delay: float = 0.001

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from `EVENTTARGET_*` environment variables,
        falling back to the defaults for unset ones.
        """
        defaults = cls()
        delay = os.environ.get("EVENTTARGET_ASYNC_DELAY")
        return cls(
            uid_prefix=os.environ.get("EVENTTARGET_UID_PREFIX", defaults.uid_prefix),
            async_delay=float(delay) if delay else defaults.async_delay,
        )
