"""Fan a script out to every target in parallel."""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from .auth import Credential, resolve_credential
from .config import Settings, TargetConfig
from .errors import DeadlineExceeded, TaskError
from .preprocess import preprocess_target
from .remote import run_script

logger = logging.getLogger(__name__)


class TaskStatus(Enum):
    """Lifecycle state of a deployment task."""

    CREATED = "created"
    PREPROCESSING = "preprocessing"
    RESOLVING = "resolving"
    STARTING = "starting"
    ABORTED = "aborted"
    ERRORED = "errored"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.ABORTED, TaskStatus.ERRORED, TaskStatus.COMPLETED)


# Statuses that produce a status line
_REPORTED = {
    TaskStatus.STARTING: "Starting",
    TaskStatus.ABORTED: "Aborted",
    TaskStatus.ERRORED: "Errored",
    TaskStatus.COMPLETED: "Completed",
}


@dataclass
class DeploymentTask:
    """Runtime state for one target. Owns a private copy of the target."""

    index: int
    target: TargetConfig
    status: TaskStatus = TaskStatus.CREATED
    reason: str = ""


def format_status_line(task: DeploymentTask) -> str:
    """Render ``<Status> task #<index> (<user>@<host>)``."""
    status = _REPORTED.get(task.status, task.status.value.capitalize())
    if task.reason:
        status = f"{status}: {task.reason}"
    return f"{status} task #{task.index} ({task.target.label})"


# Type alias for callbacks
OutputCallback = Callable[[int, str], None]  # (task_index, line) -> None
StatusCallback = Callable[[DeploymentTask], None]
ScriptRunner = Callable[..., Awaitable[None]]


class Executor:
    """Runs one independent deployment task per target."""

    def __init__(
        self,
        targets: list[TargetConfig],
        script: bytes,
        settings: Settings | None = None,
        on_output: OutputCallback | None = None,
        on_status: StatusCallback | None = None,
        runner: ScriptRunner = run_script,
    ):
        self.targets = targets
        self.script = script
        self.settings = settings or Settings()
        self.on_output = on_output
        self.on_status = on_status
        self.runner = runner
        self.tasks: list[DeploymentTask] = []

    def _emit_status(self, task: DeploymentTask, status: TaskStatus, reason: str = "") -> None:
        """Record a transition and report it."""
        task.status = status
        task.reason = reason
        if status in _REPORTED:
            logger.info("%s", format_status_line(task))
        else:
            logger.debug("%s", format_status_line(task))
        if self.on_status:
            self.on_status(task)

    def _emit_output(self, task: DeploymentTask, line: str) -> None:
        if self.on_output:
            self.on_output(task.index, line)

    async def run_all(self) -> list[DeploymentTask]:
        """Deploy to all targets and wait until every task has finished.

        Task failures are reported through status lines, never raised.
        """
        # Each task mutates its own copy during preprocessing
        self.tasks = [
            DeploymentTask(index=i, target=copy.deepcopy(target))
            for i, target in enumerate(self.targets)
        ]

        limit = None
        if self.settings.max_parallel:
            limit = asyncio.Semaphore(self.settings.max_parallel)

        await asyncio.gather(*(self._deploy(task, limit) for task in self.tasks))
        return self.tasks

    async def _deploy(self, task: DeploymentTask, limit: asyncio.Semaphore | None) -> None:
        if limit is None:
            await self._run_task(task)
            return
        async with limit:
            await self._run_task(task)

    async def _run_task(self, task: DeploymentTask) -> None:
        """Walk one task through its lifecycle."""
        target = task.target

        try:
            self._emit_status(task, TaskStatus.PREPROCESSING)
            preprocess_target(target)

            self._emit_status(task, TaskStatus.RESOLVING)
            credential = resolve_credential(target)
        except TaskError as e:
            self._emit_status(task, TaskStatus.ABORTED, e.describe())
            return
        except Exception as e:
            logger.debug("Unexpected failure in task #%d", task.index, exc_info=True)
            self._emit_status(task, TaskStatus.ABORTED, f"{type(e).__name__}: {e}")
            return

        self._emit_status(task, TaskStatus.STARTING)

        try:
            await self._execute(task, credential)
        except asyncio.CancelledError:
            self._emit_status(task, TaskStatus.ABORTED, "cancelled")
            raise
        except TaskError as e:
            self._emit_status(task, TaskStatus.ERRORED, e.describe())
        except Exception as e:
            logger.debug("Unexpected failure in task #%d", task.index, exc_info=True)
            self._emit_status(task, TaskStatus.ERRORED, f"{type(e).__name__}: {e}")
        else:
            self._emit_status(task, TaskStatus.COMPLETED)

    async def _execute(self, task: DeploymentTask, credential: Credential) -> None:
        settings = self.settings
        run = self.runner(
            task.target.host,
            credential,
            self.script,
            stream_output=settings.stream_output,
            on_output=lambda line: self._emit_output(task, line),
            connect_timeout=settings.connect_timeout,
            known_hosts=settings.known_hosts,
        )
        if settings.task_timeout is None:
            await run
            return

        try:
            await asyncio.wait_for(run, timeout=settings.task_timeout)
        except asyncio.TimeoutError as e:
            raise DeadlineExceeded(
                f"no completion within {settings.task_timeout:g}s"
            ) from e
