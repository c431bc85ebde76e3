"""
Remote shell sessions.

The executor talks to a RemoteSession; SSHSession is the paramiko-backed
implementation. Tests substitute a fake through the executor's
session_factory.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

import paramiko

from smartdeploy.config import ServerConnectionConfig
from smartdeploy.errors import TransportError

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.1
READ_CHUNK = 32768


@dataclass
class CommandOutcome:
    """Raw result of one remote command."""
    exit_code: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False


class RemoteSession(Protocol):
    host: str

    def run(self, command: str, timeout: Optional[float] = None) -> CommandOutcome:
        ...

    def close(self) -> None:
        ...


class SSHSession:
    """One authenticated SSH connection, reused for every command of a run."""

    def __init__(self, client: paramiko.SSHClient, host: str):
        self.client = client
        self.host = host

    @classmethod
    def connect(cls, config: ServerConnectionConfig,
                environ: Optional[Mapping[str, str]] = None) -> "SSHSession":
        """
        Open a session to the configured host.

        Raises:
            TransportError: on authentication, protocol or network failure
        """
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if config.strict_host_keys:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        key_path = config.expanded_key_path()
        logger.info(f"Connecting to {config.target}")
        try:
            client.connect(
                hostname=config.host,
                port=config.port,
                username=config.user,
                key_filename=key_path,
                password=config.resolve_password(environ),
                timeout=config.connect_timeout,
                look_for_keys=key_path is None,
                allow_agent=True,
            )
        except paramiko.AuthenticationException:
            client.close()
            raise TransportError(config.host, f"authentication failed for user '{config.user}'")
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise TransportError(config.host, str(e) or type(e).__name__)

        return cls(client, config.host)

    def run(self, command: str, timeout: Optional[float] = None) -> CommandOutcome:
        """
        Run one command and buffer its output in full.

        A command still running after `timeout` seconds has its channel
        closed and is reported with timed_out=True.
        """
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise TransportError(self.host, "session is not connected")

        try:
            channel = transport.open_session()
            channel.exec_command(command)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise TransportError(self.host, str(e) or type(e).__name__)

        stdout, stderr = bytearray(), bytearray()
        deadline = None if timeout is None else time.monotonic() + timeout
        try:
            while True:
                drained = False
                if channel.recv_ready():
                    stdout += channel.recv(READ_CHUNK)
                    drained = True
                if channel.recv_stderr_ready():
                    stderr += channel.recv_stderr(READ_CHUNK)
                    drained = True
                if channel.exit_status_ready() and not channel.recv_ready() and not channel.recv_stderr_ready():
                    break
                if channel.closed and not drained:
                    raise TransportError(self.host, "channel closed before the command finished")
                if deadline is not None and time.monotonic() >= deadline:
                    return CommandOutcome(None, _decode(stdout), _decode(stderr), timed_out=True)
                if not drained:
                    time.sleep(POLL_INTERVAL_S)
            exit_code = channel.recv_exit_status()
        except (paramiko.SSHException, socket.error, EOFError) as e:
            raise TransportError(self.host, str(e) or type(e).__name__)
        finally:
            channel.close()

        return CommandOutcome(exit_code, _decode(stdout), _decode(stderr))

    def close(self) -> None:
        self.client.close()
        logger.debug(f"Closed session to {self.host}")


def _decode(data: bytes) -> str:
    return bytes(data).decode("utf-8", errors="replace")
