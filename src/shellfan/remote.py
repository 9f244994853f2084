"""Pipe a script into an interactive remote shell over SSH."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

import asyncssh
from asyncssh.constants import OPEN_REQUEST_SESSION_FAILED

from .auth import Credential
from .errors import (
    DialFailed,
    ScriptWriteFailed,
    SessionFailed,
    SessionWaitFailed,
    ShellStartFailed,
    StdinCloseFailed,
    StdinSetupFailed,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 22

# Type alias for output callback
LineCallback = Callable[[str], None]


def split_host(host: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6addr]:port``) into its parts."""
    if host.startswith("["):
        address, sep, rest = host[1:].partition("]")
        if not sep:
            raise ValueError(f"unterminated IPv6 address in {host!r}")
        port = rest[1:] if rest.startswith(":") else ""
    elif host.count(":") == 1:
        address, _, port = host.partition(":")
    else:
        # Bare hostname or unbracketed IPv6 address
        address, port = host, ""

    if not address:
        raise ValueError(f"missing hostname in {host!r}")
    if not port:
        return address, DEFAULT_PORT
    if not port.isdigit():
        raise ValueError(f"invalid port in {host!r}")
    return address, int(port)


async def run_script(
    host: str,
    credential: Credential,
    script: bytes,
    *,
    stream_output: bool = False,
    on_output: LineCallback | None = None,
    connect_timeout: float | None = None,
    known_hosts: Path | None = None,
) -> None:
    """Dial ``host``, start a shell, feed it ``script`` and wait for it to exit.

    The first failing step raises its own :class:`~shellfan.errors.TaskError`
    subclass. Connection and session are closed on every path.
    """
    try:
        hostname, port = split_host(host)
        conn = await asyncssh.connect(
            hostname,
            port=port,
            known_hosts=str(known_hosts) if known_hosts else None,
            connect_timeout=connect_timeout,
            **credential.connect_options(),
        )
    except (asyncssh.Error, OSError, ValueError, asyncio.TimeoutError) as e:
        raise DialFailed(f"failed to dial target: {e}") from e

    async with conn:
        logger.debug("Connected to %s", host)
        sink = asyncssh.PIPE if stream_output else asyncssh.DEVNULL

        # No command: request an interactive shell on the new session
        try:
            process = await conn.create_process(encoding=None, stdout=sink, stderr=sink)
        except asyncssh.ChannelOpenError as e:
            if e.code == OPEN_REQUEST_SESSION_FAILED:
                raise ShellStartFailed(f"error starting remote shell: {e}") from e
            raise SessionFailed(f"failed to start session: {e}") from e
        except (asyncssh.Error, OSError) as e:
            raise SessionFailed(f"failed to start session: {e}") from e

        async with process:
            readers = []
            if stream_output:
                emit = on_output or (lambda line: None)
                readers = [
                    asyncio.ensure_future(_read_stream(process.stdout, emit)),
                    asyncio.ensure_future(_read_stream(process.stderr, emit, "STDERR: ")),
                ]

            try:
                await _feed_and_wait(process, script)
                if readers:
                    await asyncio.gather(*readers)
            finally:
                for reader in readers:
                    reader.cancel()

    logger.debug("Shell session on %s finished", host)


async def _feed_and_wait(process: asyncssh.SSHClientProcess, script: bytes) -> None:
    stdin = process.stdin
    if stdin is None:
        raise StdinSetupFailed("failed setting up stdin: session has no input stream")

    try:
        stdin.write(script)
        await stdin.drain()
    except (asyncssh.Error, OSError) as e:
        raise ScriptWriteFailed(f"error writing script: {e}") from e

    try:
        stdin.write_eof()
    except (asyncssh.Error, OSError) as e:
        raise StdinCloseFailed(f"error closing session stdin: {e}") from e

    try:
        await process.wait(check=True)
    except asyncssh.ProcessError as e:
        status = e.exit_signal[0] if e.exit_signal else e.exit_status
        raise SessionWaitFailed(f"remote shell exited abnormally: {status}") from e
    except (asyncssh.Error, OSError) as e:
        raise SessionWaitFailed(f"error during shell session: {e}") from e


async def _read_stream(
    stream: asyncssh.SSHReader, emit: LineCallback, prefix: str = ""
) -> None:
    """Forward decoded lines from a remote stream."""
    while True:
        line = await stream.readline()
        if not line:
            break
        text = line.decode("utf-8", errors="replace").rstrip("\n\r")
        emit(f"{prefix}{text}")
