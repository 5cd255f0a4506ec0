"""Single-file copy to a remote host over SFTP."""

from __future__ import annotations

import os
import time

import paramiko

from remoteops.errors import HostConnectionError
from remoteops.models.commands import CommandSpec, TransferResult
from remoteops.services.ssh_executor import RemoteExecutor, RemoteSession
from remoteops.utils.logging import get_logger

log = get_logger(__name__)


class _TransferAborted(Exception):
    def __init__(self, timed_out: bool) -> None:
        super().__init__("timed out" if timed_out else "cancelled")
        self.timed_out = timed_out


class FileTransfer:
    """Copies local files to remote hosts.

    Shares the executor's thread pool, credential resolver and per-host
    session limit, so a copy counts against the same host budget as a
    command.
    """

    def __init__(self, executor: RemoteExecutor) -> None:
        self._executor = executor

    async def copy(
        self, local_path: str, spec: CommandSpec, remote_path: str,
    ) -> TransferResult:
        """Copy *local_path* to *remote_path* on ``spec.host``.

        ``spec.command`` is not executed; only host, credentials and
        timeout are used.
        """
        if not os.path.isfile(local_path):
            raise FileNotFoundError(local_path)

        session = self._executor.open_session(spec)
        log.info(
            "sftp.put_start",
            host=spec.host,
            local=local_path,
            remote=remote_path,
        )
        try:
            result = await self._executor.run_session(
                session, _put_wrapper, session, local_path, remote_path, spec.timeout,
            )
        except HostConnectionError as exc:
            log.error("sftp.connect_failed", host=spec.host, error=exc.reason)
            raise

        if result.success:
            log.info("sftp.put_done", host=spec.host, duration_ms=result.duration_ms)
        else:
            log.warning(
                "sftp.put_failed",
                host=spec.host,
                exit_code=result.exit_code,
                output=result.combined_output[:200],
            )
        return result


# ── module-level sync wrappers (executor-friendly) ────────────────────────

def _put_wrapper(
    session: RemoteSession,
    local_path: str,
    remote_path: str,
    timeout: float,
) -> TransferResult:
    started = time.monotonic()
    deadline = started + timeout

    def progress(sent: int, total: int) -> None:
        if session.cancelled:
            raise _TransferAborted(timed_out=False)
        if time.monotonic() >= deadline:
            raise _TransferAborted(timed_out=True)

    exit_code = 0
    output = ""
    try:
        client = session.connect(timeout)
        try:
            sftp = client.open_sftp()
        except paramiko.SSHException as exc:
            raise HostConnectionError(session.host, f"SFTP refused: {exc}") from exc
        try:
            sftp.get_channel().settimeout(max(deadline - time.monotonic(), 0.1))
            attrs = sftp.put(local_path, remote_path, callback=progress)
            output = f"{attrs.st_size} bytes copied to {remote_path}"
        except _TransferAborted as exc:
            exit_code = -1
            output = f"Transfer {exc}"
        except TimeoutError:
            exit_code = -1
            output = "Transfer timed out"
        except (IOError, paramiko.SSHException) as exc:
            exit_code = 1
            output = str(exc)
        finally:
            sftp.close()
    finally:
        session.close()

    return TransferResult(
        local_path=local_path,
        remote_path=remote_path,
        exit_code=exit_code,
        combined_output=output,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
