"""Command-related data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, computed_field


class CommandSpec(BaseModel):
    """One command to run on one remote host.

    ``auth_ref`` names key material held elsewhere; it is resolved at
    connect time and never appears in ``command``.
    """

    host: str = Field(min_length=1)
    auth_ref: Optional[str] = None
    command: str = Field(min_length=1)
    timeout: float = Field(gt=0, description="Seconds")
    port: int = 22
    username: Optional[str] = None
    stdin: Optional[bytes] = Field(
        default=None,
        description="Bytes written to the remote command's stdin, e.g. a password",
        repr=False,
    )

    model_config = {"frozen": True}

    @classmethod
    def from_timeout_ms(cls, *, timeout_ms: int, **kwargs) -> "CommandSpec":
        return cls(timeout=timeout_ms / 1000.0, **kwargs)

    def with_command(
        self, command: str, *, timeout: float | None = None,
    ) -> "CommandSpec":
        """Same host and credentials, different command."""
        update: dict = {"command": command}
        if timeout is not None:
            update["timeout"] = timeout
        return self.model_copy(update=update)


class ExecutionResult(BaseModel):
    """Outcome of one remote command.

    ``exit_code == -1`` is reserved for runs that ended without a normal
    process exit (timeout or kill).
    """

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    output_trimmed: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Union of both streams, stdout first."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


class TransferResult(BaseModel):
    """Outcome of a single file copy."""

    local_path: str
    remote_path: str
    exit_code: int
    combined_output: str = ""
    duration_ms: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return self.exit_code == 0
