from typing import Awaitable, Callable, Optional

import httpx
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

import db.database
from api.auth import AuthClient
from api.cart import CartClient
from api.catalog import CatalogClient
from api.client import ApiClient
from config import Settings, load_settings
from db.models import CartState, Session
from db.store import SessionStore
from state.cart import CartStore
from state.session import SessionManager
from state.sink import LOGIN_ROUTE, Severity
from utils.errors import AuthRequiredError, StorefrontError, ValidationError
from utils.logger import get_logger, set_debug
from utils.messages import (
    CartChangedMessage,
    QuitRequestedMessage,
    SessionChangedMessage,
    UserLogoutMessage,
)
from views.scr_cart import CartScreen
from views.scr_login import LoginScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    """
    Terminal front end. Wires the session and cart layers together and acts
    as their notification/redirect sink.
    """

    TITLE = "Student Storefront"

    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "cart": CartScreen,
    }

    session: SessionManager
    cart: CartStore
    catalog: CatalogClient

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.settings = settings or load_settings()
        set_debug(self.settings.debug)
        db.database.DB_PATH = self.settings.db_path

        self.api = ApiClient(
            self.settings.api_url, self.settings.http_timeout, transport=transport
        )
        self.session = SessionManager(
            AuthClient(self.api), SessionStore(self.settings.storage_namespace)
        )
        self.cart = CartStore(
            self.session, CartClient(self.api, lambda: self.session.token), self
        )
        self.catalog = CatalogClient(self.api)

        self.session.subscribe(self._broadcast_session)
        self.cart.subscribe(self._broadcast_cart)

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    async def on_unmount(self) -> None:
        await self.api.aclose()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    # ---------------------------
    # Sink
    # ---------------------------

    def report(self, error: StorefrontError) -> None:
        severity: Severity = "warning" if isinstance(error, AuthRequiredError) else "error"
        self.notify(error.message, severity=severity)

    def redirect(self, route: str) -> None:
        if route != LOGIN_ROUTE:
            _logger.warning(f"Unknown route {route!r}")
            return
        if not isinstance(self.screen, LoginScreen):
            self.push_screen(LoginScreen())

    def dispatch_cart(
        self, operation: Callable[[], Awaitable[bool]], success_message: str = ""
    ) -> None:
        """Apply a cart operation now and let its server call finish on the app.

        The local change lands before this returns, so the next click reads
        it. Not exclusive: a newer cart call must never cancel an in-flight one.
        """
        try:
            pending = operation()
        except ValidationError as e:
            self.notify(e.message, severity="error")
            return
        self.run_worker(self._await_cart_call(pending, success_message), group="cart")

    async def _await_cart_call(self, pending: Awaitable[bool], success_message: str) -> None:
        if await pending and success_message:
            self.notify(success_message)

    # ---------------------------
    # Broadcast to screens
    # ---------------------------

    def _broadcast_session(self, session: Session) -> None:
        for screen in self.screen_stack:
            screen.post_message(SessionChangedMessage(session))

    def _broadcast_cart(self, cart: CartState) -> None:
        for screen in self.screen_stack:
            screen.post_message(CartChangedMessage(cart))

    # ---------------------------
    # Flow
    # ---------------------------

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        await self.session.sign_out()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        # the session stays persisted so the next start restores it
        self.exit()

    @work(exclusive=True, group="flow")
    async def main_flow(self):
        if self.current_mode != "cart":
            await self.session.restore_session()
        if not self.session.is_authenticated:
            if isinstance(self.screen, LoginScreen):
                # a redirect (expired while restoring) already showed one
                await self.pop_screen()
            await self.push_screen_wait(LoginScreen())
        if self.current_mode != "cart":
            await self.switch_mode("cart")


def run() -> None:
    app = StorefrontApp()
    app.run()


if __name__ == "__main__":
    run()
