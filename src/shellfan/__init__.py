"""shellfan: Run one shell script on many SSH targets in parallel."""

from .auth import PasswordCredential, PublicKeyCredential, resolve_credential
from .config import (
    AuthConfig,
    Settings,
    TargetConfig,
    dump_targets,
    load_script,
    load_settings,
    load_targets,
)
from .executor import DeploymentTask, Executor, TaskStatus, format_status_line
from .preprocess import preprocess_target
from .remote import run_script

__all__ = [
    "AuthConfig",
    "Settings",
    "TargetConfig",
    "dump_targets",
    "load_script",
    "load_settings",
    "load_targets",
    "PasswordCredential",
    "PublicKeyCredential",
    "resolve_credential",
    "preprocess_target",
    "run_script",
    "DeploymentTask",
    "Executor",
    "TaskStatus",
    "format_status_line",
]
