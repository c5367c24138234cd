"""Azure Boards dashboard: Textual host for the Dashboard coordinator.

Launch with: azb dashboard  (or python -m azboards.dashboard)

The host owns no dashboard state. It turns terminal events into messages,
runs the commands the coordinator returns, and paints render() output into
a single Static.
"""

from __future__ import annotations

from rich.text import Text
from textual import events, work
from textual.app import App, ComposeResult
from textual.screen import Screen
from textual.widgets import Static

from .commands import Command
from .coordinator import Dashboard
from .messages import KeyPress, Message, WindowSize


class BoardScreen(Screen, inherit_bindings=False):
    """Full-window screen with no bindings; every key reaches the coordinator."""

    BINDINGS = []

    def compose(self) -> ComposeResult:
        yield Static("", id="board")


class BoardsDashboard(App, inherit_bindings=False):
    """Azure Boards TUI built with Textual.

    Five tabs: Queries, Work Items, Templates, Pipelines, Agents.
    Keys are configurable through keybinds.yaml; press ? for help.
    """

    CSS = """
    Screen {
        background: $surface;
    }

    #board {
        width: 100%;
        height: 100%;
    }
    """

    TITLE = "Azure Boards"
    ENABLE_COMMAND_PALETTE = False
    BINDINGS = []

    def __init__(self, dashboard: Dashboard, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.dashboard = dashboard

    def get_default_screen(self) -> Screen:
        return BoardScreen()

    def on_mount(self) -> None:
        self._run_all(self.dashboard.init())
        self._paint()

    def on_resize(self, event: events.Resize) -> None:
        self._dispatch(WindowSize(event.size.width, event.size.height))

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self._dispatch(KeyPress(event.key, event.character))

    # ------------------------------------------------------------------
    # Message loop
    # ------------------------------------------------------------------

    def _dispatch(self, msg: Message) -> None:
        """Feed one message to the coordinator (UI thread only)."""
        try:
            self.dashboard, cmds = self.dashboard.handle(msg)
        except Exception:
            self.dashboard.logger.exception("Failed to handle %s", type(msg).__name__)
            raise
        if self.dashboard.quitting:
            self.exit()
            return
        self._run_all(cmds)
        self._paint()

    def _paint(self) -> None:
        try:
            board = self.screen.query_one("#board", Static)
        except Exception:
            return
        board.update(Text.from_markup(self.dashboard.render()))

    def _run_all(self, cmds: list[Command]) -> None:
        for cmd in cmds:
            self._run(cmd)

    def _run(self, cmd: Command) -> None:
        self.dashboard.logger.debug("run %r", cmd)
        if cmd.suspend:
            self.call_later(self._run_suspended, cmd)
        elif cmd.delay:
            self.set_timer(cmd.delay, lambda: self._dispatch(cmd()))
        elif cmd.inline:
            self.call_later(lambda: self._dispatch(cmd()))
        else:
            self._run_in_thread(cmd)

    @work(thread=True)
    def _run_in_thread(self, cmd: Command) -> None:
        """Run a blocking command in a worker thread."""
        try:
            msg = cmd()
        except Exception:
            self.dashboard.logger.exception("Command %s failed", cmd.name)
            return
        self.call_from_thread(self._dispatch, msg)

    def _run_suspended(self, cmd: Command) -> None:
        """Hand the terminal to a child process (the editor) until it exits."""
        with self.suspend():
            msg = cmd()
        self._dispatch(msg)
        self.refresh(layout=True)
