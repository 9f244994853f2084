"""Error types for shellfan.

Load-time problems (:class:`ConfigError`) stop the whole run before any
deployment starts. Everything derived from :class:`TaskError` belongs to a
single target and is reported on that target's status line only.
"""

from __future__ import annotations


class ShellfanError(Exception):
    """Base class for all shellfan errors."""


class ConfigError(ShellfanError, ValueError):
    """Settings, target list or script could not be loaded."""


class TaskError(ShellfanError):
    """A failure confined to one deployment task."""

    @property
    def kind(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        """Render as ``<kind>: <message>`` for status lines."""
        return f"{self.kind}: {self}"


# Preprocessing
class IdentityResolutionFailed(TaskError):
    pass


class HomeResolutionFailed(TaskError):
    pass


# Credential resolution
class MissingUsername(TaskError):
    pass


class UnsupportedAuthMethod(TaskError):
    def __init__(self, method: str):
        super().__init__(f"unknown authentication method {method!r}")
        self.method = method


class KeyReadError(TaskError):
    pass


class KeyParseError(TaskError):
    pass


# Remote execution
class DialFailed(TaskError):
    pass


class SessionFailed(TaskError):
    pass


class StdinSetupFailed(TaskError):
    pass


class ShellStartFailed(TaskError):
    pass


class ScriptWriteFailed(TaskError):
    pass


class StdinCloseFailed(TaskError):
    pass


class SessionWaitFailed(TaskError):
    pass


class DeadlineExceeded(TaskError):
    pass
