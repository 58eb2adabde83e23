"""Errors raised by the capsule lifecycle, the store and the notifier."""


class CapsuleError(Exception):
    """Base class; ``status_code`` is what the HTTP layer answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CapsuleError):
    status_code = 404


class Forbidden(CapsuleError):
    status_code = 403


class InvalidSchedule(CapsuleError):
    """The resolved unlock time is not strictly in the future."""

    status_code = 400


class InvalidState(CapsuleError):
    """Mutation attempted on a capsule that is already unlocked."""

    status_code = 409


class InvalidContent(CapsuleError):
    status_code = 400


class DependencyFailure(CapsuleError):
    """The store or the notifier failed; the operation may succeed if tried again later."""

    status_code = 503
