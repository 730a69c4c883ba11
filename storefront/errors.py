"""Signup workflow failures. Every one of these is a client error (HTTP 400)."""


class SignupError(Exception):
    """Base class; ``str(exc)`` is the message shown to the client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SignupError):
    """Missing or malformed input, or a city outside the allow-list."""


class ConflictError(SignupError):
    """Email already bound to an account."""


class NotFoundError(SignupError):
    """No pending record or code for the email (never started, completed, or purged)."""


class ExpiredError(SignupError):
    """Code window elapsed. The record has been deleted."""


class InvalidCodeError(SignupError):
    """Submitted code does not match. The record is kept."""


class NotVerifiedError(SignupError):
    """Final step attempted before the code was confirmed."""
