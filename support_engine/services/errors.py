"""
Support Engine Errors

All engine errors are raised synchronously to the caller and never retried.
"""


class SupportError(Exception):
    """Base class for support engine errors."""
    pass


class NotFoundError(SupportError):
    """Raised when a category, ticket or other record does not exist."""
    pass


class InvalidInputError(SupportError):
    """Raised when a value is outside its closed set or fails validation."""
    pass


class IllegalTransitionError(SupportError):
    """Raised when a status change is not an edge of the transition table."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move ticket from {getattr(current, 'value', current)} "
            f"to {getattr(target, 'value', target)}."
        )


class UnauthorizedError(SupportError):
    """Raised when an inbound webhook fails secret verification."""
    pass
