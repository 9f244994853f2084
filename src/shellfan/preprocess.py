"""Environment-dependent fix-ups applied to a target before authentication."""

from __future__ import annotations

import getpass
import logging
from pathlib import Path

from .config import TargetConfig
from .errors import HomeResolutionFailed, IdentityResolutionFailed

logger = logging.getLogger(__name__)


def current_username() -> str:
    """Return the invoking user's name without any ``DOMAIN\\`` prefix."""
    try:
        username = getpass.getuser()
    except (OSError, KeyError, ImportError) as e:
        raise IdentityResolutionFailed(f"failed getting active user: {e}") from e

    if not username:
        raise IdentityResolutionFailed("failed getting active user: empty name")

    # Probably on a windows machine: DOMAIN\USER
    if "\\" in username:
        username = username.partition("\\")[2]
    return username


def home_directory() -> str:
    """Return the invoking user's home directory."""
    try:
        return str(Path.home())
    except (RuntimeError, KeyError, OSError) as e:
        raise HomeResolutionFailed(f"failed expanding ~ to home dir: {e}") from e


def preprocess_target(target: TargetConfig) -> None:
    """Fix the target in place before resolving its credential.

    - no username: use the invoking user's name
    - ``~`` in a pki artifact: expand the first occurrence to the home dir

    Calling it again on an already-processed target changes nothing.
    """
    if not target.user:
        target.user = current_username()
        logger.debug("Using local username %r for %s", target.user, target.host)

    if target.auth.method == "pki" and "~" in target.auth.artifact:
        target.auth.artifact = target.auth.artifact.replace("~", home_directory(), 1)
