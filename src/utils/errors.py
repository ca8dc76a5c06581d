from typing import Optional


class StorefrontError(Exception):
    """
    Base of every error raised by the session and cart layers.
    """

    default_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(StorefrontError):
    """
    Input rejected before any state change or network call.
    """

    default_message = "Invalid input."


class AuthenticationFailed(StorefrontError):
    """
    Credential exchange rejected. Raised to whoever started the login.
    """

    default_message = "Authentication failed."


class AuthRequiredError(StorefrontError):
    """
    A cart mutation was attempted without an authenticated session.
    Reported through the sink, never raised.
    """

    default_message = "Please login to modify your cart."


class RemoteOperationFailed(StorefrontError):
    """
    A backend call failed: transport error, non-2xx status or success=false.
    """

    default_message = "Request to the server failed."

    def __init__(
        self, message: Optional[str] = None, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionInvalid(RemoteOperationFailed):
    """
    The server rejected the session token (HTTP 401).
    """

    default_message = "Your session is no longer valid."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, status_code=401)
