"""
Error taxonomy shared by the note pipeline services.
"""


class SereneError(Exception):
    """Base class for pipeline errors."""


class PersistenceError(SereneError):
    """The backing data store rejected or failed a CRUD call."""


class NotFoundError(SereneError):
    """A referenced id does not exist (for the requesting user)."""


class ProcessingError(SereneError):
    """The external completion service failed or returned garbage."""


class InvalidOperationError(SereneError):
    """Attempt to mutate a built-in, immutable resource."""
