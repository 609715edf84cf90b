"""Typed failures surfaced by the boarding core."""


class BoardingError(Exception):
    """Base class for every failure the core reports to callers."""

    code = "boarding_error"


class InvalidCode(BoardingError):
    """The flight code was empty after normalization."""

    code = "invalid_code"


class ValidationError(BoardingError):
    """A required field was missing or malformed."""

    code = "validation_error"


class NoActiveSession(BoardingError):
    """No session matched the join or lookup."""

    code = "no_active_session"


class AuthRequired(BoardingError):
    """The operation needs a signed-in user."""

    code = "auth_required"


class AuthRejected(BoardingError):
    """The identity provider refused the credentials or registration."""

    code = "auth_rejected"


class StoreUnavailable(BoardingError):
    """A collaborator call failed or timed out."""

    code = "store_unavailable"
