"""TUI Dashboard for shellfan."""

from __future__ import annotations

from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static
from textual.worker import Worker

from .config import Settings, TargetConfig
from .executor import DeploymentTask, Executor, TaskStatus, format_status_line


STATUS_ICONS = {
    TaskStatus.CREATED: ("○", "dim"),
    TaskStatus.PREPROCESSING: ("◌", "yellow"),
    TaskStatus.RESOLVING: ("◌", "yellow"),
    TaskStatus.STARTING: ("◐", "yellow"),
    TaskStatus.ABORTED: ("✗", "red"),
    TaskStatus.ERRORED: ("✗", "red"),
    TaskStatus.COMPLETED: ("✓", "green"),
}


class TaskPanel(Static):
    """A panel displaying status and output for a single task."""

    status: reactive[TaskStatus] = reactive(TaskStatus.CREATED)

    def __init__(self, index: int, label: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.index = index
        self.label = label

    def compose(self) -> ComposeResult:
        yield Label(self._get_header(), id=f"header-{self.index}")
        yield RichLog(
            id=f"log-{self.index}",
            highlight=True,
            markup=True,
            wrap=True,
            auto_scroll=True,
        )

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS.get(self.status, ("?", "white"))
        return f"[{color}]{icon}[/] [{color}][bold]#{self.index}[/bold] {self.label}[/]"

    def watch_status(self, status: TaskStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        header = self.query_one(f"#header-{self.index}", Label)
        header.update(self._get_header())

    def append_output(self, line: str) -> None:
        """Append a line of output to this panel."""
        log = self.query_one(f"#log-{self.index}", RichLog)
        if line.startswith("STDERR:"):
            log.write(f"[red]{line}[/red]")
        elif line.startswith(("Aborted", "Errored")):
            log.write(f"[bold red]{line}[/bold red]")
        elif line.startswith("Completed"):
            log.write(f"[green]{line}[/green]")
        else:
            log.write(line)


class StatusBar(Static):
    """Bottom status bar showing overall progress."""

    completed: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    running: reactive[bool] = reactive(True)

    def render(self) -> str:
        status = "Running..." if self.running else "Complete"
        return f"Progress: {self.completed}/{self.total} tasks finished | {status} | Press 'q' to quit"


class TaskOutput(Message):
    """Message for remote output of a task."""

    def __init__(self, index: int, line: str) -> None:
        self.index = index
        self.line = line
        super().__init__()


class TaskStatusChange(Message):
    """Message for a task status change."""

    def __init__(self, index: int, status: TaskStatus, label: str, line: str) -> None:
        self.index = index
        self.status = status
        self.label = label
        self.line = line
        super().__init__()


class Dashboard(App):
    """Main TUI Dashboard application."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
    }

    TaskPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }

    TaskPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    TaskPanel RichLog {
        height: 1fr;
        padding: 0 1;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
    ]

    def __init__(
        self, targets: list[TargetConfig], script: bytes, settings: Settings, **kwargs
    ) -> None:
        super().__init__(**kwargs)
        self.targets = targets
        self.script = script
        self.settings = settings
        self.panels: dict[int, TaskPanel] = {}
        self.executor: Executor | None = None
        self._worker: Worker | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        for index, target in enumerate(self.targets):
            panel = TaskPanel(index, target.label, id=f"panel-{index}")
            self.panels[index] = panel
            yield panel

        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Start execution when the app mounts."""
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.total = len(self.targets)

        self.executor = Executor(
            self.targets,
            self.script,
            self.settings,
            on_output=self._on_output,
            on_status=self._on_status,
        )

        # Same loop as the app, so cancelling the worker cancels every task
        self._worker = self.run_worker(self._run_execution(), exclusive=True)

    async def _run_execution(self) -> None:
        if self.executor:
            await self.executor.run_all()

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Handle worker completion."""
        if event.worker == self._worker and event.state == event.worker.state.SUCCESS:
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.running = False

    def _on_output(self, index: int, line: str) -> None:
        """Posts output to the app."""
        self.post_message(TaskOutput(index, line))

    def _on_status(self, task: DeploymentTask) -> None:
        """Posts a snapshot of the task to the app."""
        self.post_message(
            TaskStatusChange(task.index, task.status, task.target.label, format_status_line(task))
        )

    def on_task_output(self, message: TaskOutput) -> None:
        if message.index in self.panels:
            self.panels[message.index].append_output(message.line)

    def on_task_status_change(self, message: TaskStatusChange) -> None:
        panel = self.panels.get(message.index)
        if panel is not None:
            panel.label = message.label
            panel.status = message.status
            if message.status not in (TaskStatus.PREPROCESSING, TaskStatus.RESOLVING):
                panel.append_output(message.line)

        if message.status.is_terminal:
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.completed += 1

    async def action_quit(self) -> None:
        """Quit the application."""
        if self._worker and self._worker.is_running:
            self._worker.cancel()
        self.exit()
