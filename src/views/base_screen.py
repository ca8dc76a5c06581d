from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, Markdown

from utils.messages import SessionChangedMessage, UserLogoutMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


class Sidebar(Container):
    DEFAULT_CSS = """
    Sidebar { dock: left; width: 34; padding: 0 1; border-right: vkey $primary; }
    Sidebar Label { margin-top: 1; text-style: bold; }
    Sidebar Button { width: 100%; }
    """

    def compose(self) -> ComposeResult:
        yield Label("Signed in as", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")

    async def on_mount(self):
        await self.show_user()

    async def show_user(self) -> None:
        user = self.app.session.user
        if user is None:
            await self.query_one(Markdown).update("_Not signed in_")
            return

        table_rows = [
            ["Name", user.name or "-"],
            ["Email", user.email],
            ["Role", "Admin" if user.role == "admin" else "Student"],
        ]
        if user.university_domain:
            table_rows.append(["University", user.university_domain])
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal("Are you sure you want to log out?", tone="warning")
        ):
            return

        self.post_message(UserLogoutMessage())


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self, sub_title: str = "", show_sidebar: bool = True):
        super().__init__()
        self.sub_title = sub_title
        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(SessionChangedMessage)
    async def handle_session_changed(self) -> None:
        for sidebar in self.query(Sidebar):
            await sidebar.show_user()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
