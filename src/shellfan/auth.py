"""Turn a target's auth section into asyncssh connection options."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import asyncssh

from .config import TargetConfig
from .errors import KeyParseError, KeyReadError, MissingUsername, UnsupportedAuthMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasswordCredential:
    """Password authentication. An empty password is still attempted."""

    username: str
    password: str

    def connect_options(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "password": self.password,
            "client_keys": None,
            "agent_path": None,
        }


@dataclass(frozen=True)
class PublicKeyCredential:
    """Public key authentication with an already parsed private key."""

    username: str
    key: asyncssh.SSHKey

    def connect_options(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "password": None,
            "client_keys": [self.key],
            "agent_path": None,
        }


Credential = Union[PasswordCredential, PublicKeyCredential]


def _password(target: TargetConfig) -> PasswordCredential:
    return PasswordCredential(username=target.user, password=target.auth.artifact)


def _public_key(target: TargetConfig) -> PublicKeyCredential:
    key_path = Path(target.auth.artifact)
    try:
        data = key_path.read_bytes()
    except OSError as e:
        raise KeyReadError(f"failed reading key: {e}") from e

    try:
        key = asyncssh.import_private_key(data)
    except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError, ValueError) as e:
        raise KeyParseError(f"failed parsing key {key_path}: {e}") from e

    return PublicKeyCredential(username=target.user, key=key)


_RESOLVERS = {
    "password": _password,
    "pki": _public_key,
}


def resolve_credential(target: TargetConfig) -> Credential:
    """Build the credential for a preprocessed target, or raise a TaskError."""
    if not target.user:
        raise MissingUsername("target config requires a username")

    resolver = _RESOLVERS.get(target.auth.method)
    if resolver is None:
        raise UnsupportedAuthMethod(target.auth.method)

    credential = resolver(target)
    logger.debug("Resolved %s credential for %s", target.auth.method, target.label)
    return credential
