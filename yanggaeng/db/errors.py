"""Errors raised by the storage layer."""


class ConflictError(ValueError):
    """A record already exists for the key being created."""


class StoreUnavailableError(RuntimeError):
    """The backing store could not complete the request (transient I/O failure)."""
