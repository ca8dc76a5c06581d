from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, Static

from utils.errors import AuthenticationFailed, ValidationError
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal


class LoginScreen(BaseScreen):
    """
    Google sign-in. The user pastes the ID-token credential issued by
    Google Identity Services; the screen dismisses once the session is
    authenticated.
    """

    CSS = """
    #div-login { width: 72; height: auto; margin: 2 4; }
    #div-login-btns { height: auto; margin-top: 1; }
    #input-credential.-invalid { border: tall $error; }
    """

    def __init__(self):
        super().__init__(sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-login"):
            yield Static(
                "Sign in with your Google account to use the cart.", id="label-hint"
            )
            yield Label("Google credential")
            yield Input(
                placeholder="eyJhbGciOi...", password=True, id="input-credential"
            )
            with Horizontal(id="div-login-btns"):
                yield Button("Quit", id="btn-quit")
                yield Button("Login", id="btn-login", variant="primary")

    def on_mount(self):
        self.query_one("#input-credential").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-credential"):
            self.handle_login_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        input_credential = self.query_one("#input-credential", Input)
        credential = input_credential.value.strip()

        if not credential:
            self.notify("Credential cannot be empty!", severity="error")
            return

        try:
            user = await self.app.session.authenticate(credential)
        except (AuthenticationFailed, ValidationError) as e:
            self.notify(e.message, severity="error")
            input_credential.value = ""
            input_credential.focus()
            input_credential.add_class("-invalid")
            return

        self.notify(f"Hello {user.name or user.email}!")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
