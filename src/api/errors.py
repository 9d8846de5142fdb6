"""Error types raised by the storefront client."""

from typing import Optional

SIGN_IN_AGAIN = "Please sign in again."


class ShopError(Exception):
    """Base error with a user-safe message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ApiError(ShopError):
    """Non-2xx response. message is what the server said, or the raw status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"


class AuthenticationError(ApiError):
    """No usable credentials; the caller has to send the user to login."""

    def __init__(self, status: int = 401, detail: Optional[str] = None) -> None:
        super().__init__(status, SIGN_IN_AGAIN)
        self.detail = detail

    def __str__(self) -> str:
        return self.message


class TransportError(ShopError):
    """Network failure or timeout before any response arrived."""


class ValidationError(ShopError, ValueError):
    """Client-side input check failed; nothing was sent."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class CheckoutError(ShopError):
    """A checkout step was attempted while its preconditions do not hold."""
