"""Remote command executor: one SSH session, one command, immediate teardown.

paramiko is blocking, so each session runs on a worker thread via
``run_in_executor`` and the asyncio event loop is never blocked. The
timeout is enforced inside the worker; task cancellation closes the
client from the loop side so the worker unblocks at once.
"""

from __future__ import annotations

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import paramiko

from remoteops.config import Settings, settings
from remoteops.errors import HostConnectionError
from remoteops.models.commands import CommandSpec, ExecutionResult
from remoteops.services.credentials import (
    CredentialResolver,
    SettingsCredentialResolver,
    SSHCredentials,
)
from remoteops.services.host_limiter import HostLimiter
from remoteops.utils.logging import get_logger

log = get_logger(__name__)

ClientFactory = Callable[[], paramiko.SSHClient]

_READ_CHUNK = 32768


class _StreamBuffer:
    """Bytes from one channel stream, capped at *limit* (head kept)."""

    __slots__ = ("_chunks", "_size", "_limit", "trimmed")

    def __init__(self, limit: int) -> None:
        self._chunks: list[bytes] = []
        self._size = 0
        self._limit = limit
        self.trimmed = False

    def feed(self, data: bytes) -> None:
        room = self._limit - self._size
        if room <= 0:
            if data:
                self.trimmed = True
            return
        if len(data) > room:
            data = data[:room]
            self.trimmed = True
        self._chunks.append(data)
        self._size += len(data)

    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")


class RemoteSession:
    """A single paramiko client bound to one host.

    Not thread-safe except for :meth:`abort`, which may be called from the
    event loop while a worker thread is inside :meth:`run`.
    """

    def __init__(
        self,
        host: str,
        port: int,
        credentials: SSHCredentials,
        cfg: Settings,
        client_factory: ClientFactory = paramiko.SSHClient,
    ) -> None:
        self.host = host
        self.port = port
        self._credentials = credentials
        self._cfg = cfg
        self._client = client_factory()
        self._cancel = threading.Event()

    # ── connection lifecycle ──────────────────────────────────────────

    def connect(self, budget: Optional[float] = None) -> paramiko.SSHClient:
        """Open the connection.

        Each handshake phase (TCP, banner, auth) waits at most
        ``ssh_connect_timeout``, further capped by *budget* when given.
        """
        client = self._client
        if self._cfg.ssh_strict_host_keys:
            client.load_system_host_keys()
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        timeout = self._cfg.ssh_connect_timeout
        if budget is not None:
            timeout = max(min(timeout, budget), 0.1)
        log.debug("ssh.connecting", host=self.host, port=self.port)
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                **self._credentials.connect_kwargs(),
            )
        except paramiko.AuthenticationException as exc:
            raise HostConnectionError(self.host, f"Authentication failed: {exc}") from exc
        except (paramiko.SSHException, OSError) as exc:
            raise HostConnectionError(self.host, f"Connection failed: {exc}") from exc
        return client

    def close(self) -> None:
        try:
            self._client.close()
        except Exception:
            pass

    def abort(self) -> None:
        """Stop the in-flight operation and tear the session down."""
        self._cancel.set()
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ── command execution ─────────────────────────────────────────────

    def run(
        self,
        command: str,
        timeout: float,
        stdin: Optional[bytes] = None,
    ) -> ExecutionResult:
        """Connect, run *command* to completion or deadline, disconnect."""
        started = time.monotonic()
        deadline = started + timeout
        out = _StreamBuffer(self._cfg.max_output_bytes)
        err = _StreamBuffer(self._cfg.max_output_bytes)
        poll = self._cfg.channel_poll_interval
        timed_out = False

        try:
            client = self.connect(timeout)
            transport = client.get_transport()
            if transport is None:
                raise HostConnectionError(self.host, "Connection failed: no transport")
            try:
                chan = transport.open_session()
                chan.exec_command(command)
            except paramiko.SSHException as exc:
                raise HostConnectionError(self.host, f"Session refused: {exc}") from exc
            if stdin:
                chan.sendall(stdin)
            chan.shutdown_write()

            while True:
                if self._cancel.is_set():
                    break
                if time.monotonic() >= deadline:
                    timed_out = True
                    break
                got_data = False
                if chan.recv_ready():
                    out.feed(chan.recv(_READ_CHUNK))
                    got_data = True
                if chan.recv_stderr_ready():
                    err.feed(chan.recv_stderr(_READ_CHUNK))
                    got_data = True
                if got_data:
                    continue
                if chan.exit_status_ready() or chan.closed:
                    break
                time.sleep(poll)

            if timed_out or self._cancel.is_set():
                exit_code = -1
                chan.close()
            else:
                while chan.recv_ready():
                    out.feed(chan.recv(_READ_CHUNK))
                while chan.recv_stderr_ready():
                    err.feed(chan.recv_stderr(_READ_CHUNK))
                exit_code = chan.recv_exit_status()
        finally:
            self.close()

        return ExecutionResult(
            command=command,
            exit_code=exit_code,
            stdout=out.text(),
            stderr=err.text(),
            duration_ms=int((time.monotonic() - started) * 1000),
            timed_out=timed_out,
            output_trimmed=out.trimmed or err.trimmed,
        )


class RemoteExecutor:
    """Runs commands on remote hosts, one session per call."""

    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        credentials: CredentialResolver | None = None,
        limiter: HostLimiter | None = None,
        client_factory: ClientFactory = paramiko.SSHClient,
        pool: ThreadPoolExecutor | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._credentials = credentials or SettingsCredentialResolver(self._cfg)
        self.limiter = limiter or HostLimiter(self._cfg.max_sessions_per_host)
        self._client_factory = client_factory
        self._owns_pool = pool is None
        self._pool = pool or ThreadPoolExecutor(
            max_workers=self._cfg.executor_workers, thread_name_prefix="ssh",
        )

    # ── helpers ───────────────────────────────────────────────────────

    async def run_blocking(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, fn, *args)

    def open_session(self, spec: CommandSpec) -> RemoteSession:
        """Resolve credentials for *spec* and build an unconnected session."""
        creds = self._credentials.resolve(spec.auth_ref)
        if spec.username and spec.username != creds.username:
            creds = SSHCredentials(
                username=spec.username,
                key_path=creds.key_path,
                private_key=creds.private_key,
                passphrase=creds.passphrase,
            )
        return RemoteSession(
            spec.host, spec.port, creds, self._cfg, self._client_factory,
        )

    async def run_session(self, session: RemoteSession, fn, *args):
        """Run a blocking session call; abort the session if we are cancelled."""
        async with self.limiter.session(session.host):
            try:
                return await self.run_blocking(fn, *args)
            except asyncio.CancelledError:
                session.abort()
                log.warning("ssh.session_aborted", host=session.host)
                raise

    # ── public ────────────────────────────────────────────────────────

    async def execute(self, spec: CommandSpec) -> ExecutionResult:
        """Run ``spec.command`` once on ``spec.host``.

        Raises HostConnectionError when the host cannot be reached or
        rejects authentication. A command that times out comes back with
        ``exit_code == -1`` and whatever output was captured.
        """
        session = self.open_session(spec)
        log.info(
            "ssh.exec_start",
            host=spec.host,
            command=spec.command[:200],
            timeout=spec.timeout,
        )
        try:
            result = await self.run_session(
                session, _run_wrapper, session, spec.command, spec.timeout, spec.stdin,
            )
        except HostConnectionError as exc:
            log.error("ssh.connect_failed", host=spec.host, error=exc.reason)
            raise

        if result.timed_out:
            log.warning(
                "ssh.exec_timeout",
                host=spec.host,
                timeout=spec.timeout,
                stdout_bytes=len(result.stdout),
            )
        else:
            log.info(
                "ssh.exec_done",
                host=spec.host,
                exit_code=result.exit_code,
                duration_ms=result.duration_ms,
            )
        return result

    async def close(self) -> None:
        if self._owns_pool:
            self._pool.shutdown(wait=False, cancel_futures=True)


# ── module-level sync wrappers (executor-friendly) ────────────────────────

def _run_wrapper(
    session: RemoteSession,
    command: str,
    timeout: float,
    stdin: Optional[bytes],
) -> ExecutionResult:
    return session.run(command, timeout, stdin)
