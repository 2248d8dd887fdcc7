"""Errors raised by the decision engine, the analytics log and its stores."""


class ChaisPasError(Exception):
    """Base class. Every error here is recoverable by the caller."""


class InvalidInput(ChaisPasError):
    """The engine was handed something it cannot draw from."""


class ValidationError(ChaisPasError):
    """A user-level policy was not met, e.g. fewer than two choices."""


class ParseError(ChaisPasError):
    """An imported or persisted decision log is malformed."""


class StorageUnavailable(ChaisPasError):
    """The persistence collaborator could not be reached."""


class IntegrityError(ChaisPasError):
    """A decision whose selected choice is not one of its own choices."""
