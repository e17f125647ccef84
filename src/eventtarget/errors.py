"""
eventtarget.errors
------------------

Exceptions raised by the listener registry.
"""


class EventError(Exception):
    """
    Base class for event errors. `code` identifies the kind of error.
    """

    UNSPECIFIED_EVENT_TYPE_ERR = 0

    code: int = -1


class UnspecifiedEventTypeError(EventError, TypeError):
    """
    Raised by dispatch when no string event type can be read from its input.
    """

    code = EventError.UNSPECIFIED_EVENT_TYPE_ERR

    def __init__(self, value: object = None) -> None:
        super().__init__(f"unspecified event type: {value!r}")
        self.value = value
