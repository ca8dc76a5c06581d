from typing import Literal, Protocol

from utils.errors import StorefrontError

Severity = Literal["information", "warning", "error"]

LOGIN_ROUTE = "login"


class NotificationSink(Protocol):
    """
    Where the session and cart layers send user-facing outcomes.
    Implemented by the UI (see StorefrontApp).
    """

    def notify(self, message: str, *, severity: Severity = "information") -> None: ...

    def report(self, error: StorefrontError) -> None:
        """Surface an error to the user."""
        ...

    def redirect(self, route: str) -> None:
        """Ask the UI to navigate, e.g. to LOGIN_ROUTE."""
        ...
