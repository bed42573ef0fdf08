"""Error taxonomy for Headcount.

Every error here is recoverable at the caller boundary: the API maps them to
HTTP status codes and the CLI prints them.
"""


class HeadcountError(Exception):
    """Base class for all Headcount errors."""

    pass


class EventNotFound(HeadcountError):
    """Raised when an event id does not exist."""

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class DuplicateName(HeadcountError):
    """Raised when a name is already signed up for an event."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Name already signed up: {name}")


class NameNotFound(HeadcountError):
    """Raised when removing a name that is not on the signup list."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Name not found in signup list: {name}")


class InvalidName(HeadcountError):
    """Raised when a signup name is blank after trimming."""

    def __init__(self, name: str):
        self.name = name
        super().__init__("Signup name must not be blank")


class IdGenerationExhausted(HeadcountError):
    """Raised when every generated event id collided with an existing one."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not generate a unique event id after {attempts} attempts")


class StorageUnavailable(HeadcountError):
    """Raised when the underlying store fails."""

    pass
