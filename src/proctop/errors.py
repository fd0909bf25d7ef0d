"""Exceptions raised while reading kernel counters."""


class CounterError(Exception):
    """Base class for counter read failures."""


class ProcessNotFound(CounterError):
    """The process exited between enumeration and read."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process {pid} no longer exists")
        self.pid = pid


class CounterParseError(CounterError):
    """A counter record is malformed."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Malformed counter record {source}: {reason}")
        self.source = source
        self.reason = reason


class CounterPermissionDenied(CounterError):
    """A counter record exists but cannot be read."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Permission denied reading counters for process {pid}")
        self.pid = pid


class AggregateReadFailure(CounterError):
    """The system-wide counters could not be read."""
