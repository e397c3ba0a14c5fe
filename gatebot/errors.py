"""Exceptions raised inside the verification gateway."""

__all__ = ["GatewayError", "SessionStateError", "TokenError"]


class GatewayError(Exception):
    """Base class for gateway errors."""


class SessionStateError(GatewayError):
    """A session transition was requested from the wrong phase."""

    def __init__(self, user_id: str, message: str) -> None:
        super().__init__(message)
        self.user_id = user_id


class TokenError(GatewayError):
    """A verification link did not carry a usable correlation token."""
