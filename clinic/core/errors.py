"""Typed outcomes raised by the scheduling core.

Routes translate these into HTTP responses; the core itself never knows
about status codes.
"""


class SchedulingError(Exception):
    """Base class for every failure the scheduling core reports."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SchedulingError):
    """A doctor or appointment does not exist."""


class ForbiddenError(SchedulingError):
    """The caller may not act on this resource."""


class ConflictError(SchedulingError):
    """The requested interval is already reserved."""


class InvalidInputError(SchedulingError):
    """The request is missing data or asks for an impossible transition."""


class InternalError(SchedulingError):
    """Storage or identity resolution failed."""


class AuthenticationError(SchedulingError):
    """The credential could not be resolved to a principal."""
