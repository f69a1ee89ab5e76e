"""TUI dashboard for herd."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Input, Label, RichLog, Static
from textual.worker import Worker

from .cluster import ClusterController, ClusterManager
from .config import Config
from .endpoints import Resolver
from .errors import ResolutionError
from .presentation import LineBuffer, Presentation
from .session import Session, SessionStatus
from .transport import Transport


STATUS_ICONS = {
    SessionStatus.CONNECTING: ("…", "yellow"),
    SessionStatus.RUNNING: ("●", "green"),
    SessionStatus.EXITED: ("○", "dim"),
    SessionStatus.FAILED: ("✗", "red"),
}


class SessionPanel(Static):
    """A panel displaying the terminal output of a single session."""

    status: reactive[SessionStatus] = reactive(SessionStatus.CONNECTING)

    def __init__(self, session: Session, **kwargs) -> None:
        super().__init__(**kwargs)
        self.session_id = session.id
        self.endpoint = session.endpoint
        self._buffer = LineBuffer()

    def compose(self) -> ComposeResult:
        yield Label(self._get_header(), id=f"header-{self.session_id}")
        yield RichLog(
            id=f"log-{self.session_id}",
            highlight=False,
            markup=False,
            wrap=True,
            auto_scroll=True,
        )

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS.get(self.status, ("?", "white"))
        return f"[{color}]{icon}[/] [{color}][bold]{self.endpoint}[/bold][/] [dim]#{self.session_id}[/]"

    def watch_status(self, status: SessionStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        header = self.query_one(f"#header-{self.session_id}", Label)
        header.update(self._get_header())

    def append_output(self, text: str) -> None:
        """Append remote output to this panel."""
        log = self.query_one(f"#log-{self.session_id}", RichLog)
        for line in self._buffer.feed(text):
            log.write(Text.from_ansi(line))

    def flush(self) -> None:
        log = self.query_one(f"#log-{self.session_id}", RichLog)
        for line in self._buffer.flush():
            log.write(Text.from_ansi(line))


class StatusBar(Static):
    """Bottom status bar showing live sessions."""

    live: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    destination: reactive[str] = reactive("")

    def render(self) -> str:
        return (
            f"{self.destination} | {self.live}/{self.total} sessions live | "
            "Commands: ,tile ,bufs ,quit"
        )


@dataclass
class SessionDisplayed(Message):
    """A session needs a panel."""
    session: Session


@dataclass
class SessionOutput(Message):
    """Message for session output."""
    session_id: int
    text: str


@dataclass
class SessionStatusChange(Message):
    """Message for session status change."""
    session_id: int
    status: SessionStatus


@dataclass
class RelayoutRequested(Message):
    """Tile the listed sessions, in order."""
    session_ids: list[int]


@dataclass
class ControlText(Message):
    text: str


class ControlPrompt(Message):
    pass


class SurfacesClosed(Message):
    pass


class DashboardPresentation(Presentation):
    """Forwards cluster events to the dashboard as messages."""

    def __init__(self, app: "Dashboard") -> None:
        self.app = app

    def display(self, session: Session) -> None:
        self.app.post_message(SessionDisplayed(session))

    def session_output(self, session: Session, text: str) -> None:
        self.app.post_message(SessionOutput(session.id, text))

    def session_status(self, session: Session) -> None:
        self.app.post_message(SessionStatusChange(session.id, session.status))

    def relayout(self, sessions: list[Session]) -> None:
        self.app.post_message(RelayoutRequested([s.id for s in sessions]))

    def close_all_surfaces(self) -> None:
        self.app.post_message(SurfacesClosed())

    def control_write(self, text: str) -> None:
        self.app.post_message(ControlText(text))

    def control_prompt(self) -> None:
        self.app.post_message(ControlPrompt())


def grid_columns(count: int) -> int:
    """Columns for a roughly square grid of ``count`` panels."""
    return max(1, math.ceil(math.sqrt(count)))


class Dashboard(App):
    """Main TUI Dashboard application."""

    CSS = """
    #sessions {
        layout: grid;
        grid-size: 1;
        grid-gutter: 1;
        height: 1fr;
    }

    SessionPanel {
        border: solid $primary;
        height: 100%;
        min-height: 6;
    }

    SessionPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    SessionPanel RichLog {
        height: 1fr;
        padding: 0 1;
    }

    #control-log {
        height: 6;
        border-top: solid $primary;
        padding: 0 1;
    }

    #control-input {
        dock: bottom;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("ctrl+t", "tile", "Tile"),
        ("ctrl+b", "bufs", "Sessions"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        destinations: Sequence[str],
        config: Config | None = None,
        single: bool = False,
        transport: Transport | None = None,
        resolver: Resolver | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.destinations = list(destinations)
        self.single = single
        self.manager = ClusterManager(
            config,
            presentation=DashboardPresentation(self),
            transport=transport,
            resolver=resolver,
        )
        self.controller: ClusterController | None = None
        self.pending_lines: list[str] = []
        self.panels: dict[int, SessionPanel] = {}
        self._worker: Worker | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Container(id="sessions")
        yield RichLog(id="control-log", markup=False, wrap=True, auto_scroll=True)
        yield StatusBar(id="status-bar")
        yield Input(placeholder="Type to all sessions, or ,tile ,bufs ,quit", id="control-input")
        yield Footer()

    def on_mount(self) -> None:
        """Open the cluster when the app mounts."""
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.destination = " ".join(self.destinations)
        self.query_one("#control-input", Input).focus()

        # Runs on the app's own event loop so sessions share it
        self._worker = self.run_worker(self._open_cluster(), exclusive=True)

    async def _open_cluster(self) -> None:
        try:
            self.controller = await self.manager.open(self.destinations, single=self.single)
        except (ResolutionError, ValueError) as e:
            self.exit(return_code=1, message=f"Error: {e}")
            return

        # Lines typed while the cluster was opening
        pending, self.pending_lines = self.pending_lines, []
        for line in pending:
            self.controller.handle_line(line)

    def _update_counts(self) -> None:
        status_bar = self.query_one("#status-bar", StatusBar)
        registry = self.controller.registry if self.controller else None
        status_bar.live = len(registry.live()) if registry is not None else 0
        status_bar.total = len(self.panels)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Hand the typed line to the cluster."""
        event.input.value = ""
        if self.controller is None:
            self.pending_lines.append(event.value)
        else:
            self.controller.handle_line(event.value)

    async def on_session_displayed(self, message: SessionDisplayed) -> None:
        panel = SessionPanel(message.session, id=f"panel-{message.session.id}")
        self.panels[message.session.id] = panel
        await self.query_one("#sessions", Container).mount(panel)
        self._update_counts()

    def on_session_output(self, message: SessionOutput) -> None:
        """Handle SessionOutput message in main thread."""
        if message.session_id in self.panels:
            self.panels[message.session_id].append_output(message.text)

    def on_session_status_change(self, message: SessionStatusChange) -> None:
        """Handle SessionStatusChange message in main thread."""
        panel = self.panels.get(message.session_id)
        if panel is not None:
            panel.status = message.status
            if message.status in (SessionStatus.EXITED, SessionStatus.FAILED):
                panel.flush()
        self._update_counts()

    async def on_relayout_requested(self, message: RelayoutRequested) -> None:
        keep = set(message.session_ids)
        for session_id in [sid for sid in self.panels if sid not in keep]:
            await self.panels.pop(session_id).remove()
        container = self.query_one("#sessions", Container)
        container.styles.grid_size_columns = grid_columns(len(message.session_ids))
        self._update_counts()

    def on_control_text(self, message: ControlText) -> None:
        self.query_one("#control-log", RichLog).write(message.text)

    def on_control_prompt(self, message: ControlPrompt) -> None:
        control_input = self.query_one("#control-input", Input)
        control_input.value = ""
        control_input.focus()

    def on_surfaces_closed(self, message: SurfacesClosed) -> None:
        self.exit()

    def action_tile(self) -> None:
        if self.controller is not None:
            self.controller.handle_line(",tile")

    def action_bufs(self) -> None:
        if self.controller is not None:
            self.controller.handle_line(",bufs")

    async def action_quit(self) -> None:
        """Quit the application."""
        if self.controller is not None and not self.controller.closed:
            self.controller.handle_line(",quit")
        else:
            if self._worker and self._worker.is_running:
                self._worker.cancel()
            self.exit()
