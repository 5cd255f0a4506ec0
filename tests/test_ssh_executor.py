"""Tests for the remote command executor (paramiko replaced by fakes)."""

from __future__ import annotations

import asyncio

import paramiko
import pytest

from remoteops.errors import CredentialError, HostConnectionError
from remoteops.models.commands import CommandSpec, ExecutionResult
from remoteops.services.ssh_executor import RemoteExecutor
from tests.mock_ssh import FakeChannel, FakeSSHClient


def _executor(test_settings, credentials, client: FakeSSHClient) -> RemoteExecutor:
    return RemoteExecutor(
        test_settings, credentials=credentials, client_factory=lambda: client,
    )


# ---------------------------------------------------------------------------
# ExecutionResult model
# ---------------------------------------------------------------------------


class TestExecutionResult:
    @pytest.mark.parametrize("code", [0, 1, 2, 127, 255, -1])
    def test_success_tracks_exit_code(self, code):
        result = ExecutionResult(command="true", exit_code=code)
        assert result.success is (code == 0)

    def test_success_serialized(self):
        dumped = ExecutionResult(command="true", exit_code=0).model_dump()
        assert dumped["success"] is True

    def test_output_joins_streams(self):
        result = ExecutionResult(command="x", exit_code=1, stdout="out", stderr="err")
        assert result.output == "out\nerr"

    def test_output_single_stream(self):
        assert ExecutionResult(command="x", exit_code=1, stderr="err").output == "err"
        assert ExecutionResult(command="x", exit_code=0, stdout="out").output == "out"


class TestCommandSpec:
    def test_from_timeout_ms(self):
        spec = CommandSpec.from_timeout_ms(host="h", command="ls", timeout_ms=2500)
        assert spec.timeout == 2.5

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            CommandSpec(host="h", command="ls", timeout=0)

    def test_with_command_keeps_host(self, make_spec):
        spec = make_spec("apt-get install -y curl", timeout=60)
        fix = spec.with_command("sudo apt-get update", timeout=120)
        assert fix.host == spec.host
        assert fix.auth_ref == spec.auth_ref
        assert fix.timeout == 120
        assert spec.command == "apt-get install -y curl"

    def test_stdin_not_in_repr(self, make_spec):
        spec = make_spec("docker login", stdin=b"hunter2")
        assert "hunter2" not in repr(spec)


# ---------------------------------------------------------------------------
# RemoteExecutor.execute
# ---------------------------------------------------------------------------


class TestExecute:
    @pytest.mark.asyncio
    async def test_separates_streams(self, test_settings, credentials, make_spec):
        client = FakeSSHClient(FakeChannel(b"hello\n", b"warning: deprecated\n", 0))
        executor = _executor(test_settings, credentials, client)

        result = await executor.execute(make_spec("echo hello"))

        assert result.exit_code == 0
        assert result.success
        assert result.stdout == "hello\n"
        assert result.stderr == "warning: deprecated\n"
        assert result.timed_out is False
        assert client.channel.command == "echo hello"
        assert client.closed
        await executor.close()

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_not_success(self, test_settings, credentials, make_spec):
        client = FakeSSHClient(FakeChannel(b"", b"E: Unable to locate package curl\n", 100))
        executor = _executor(test_settings, credentials, client)

        result = await executor.execute(make_spec("apt-get install -y curl"))

        assert result.exit_code == 100
        assert result.success is False
        assert "Unable to locate package" in result.stderr
        await executor.close()

    @pytest.mark.asyncio
    async def test_timeout_returns_minus_one(self, test_settings, credentials, make_spec):
        client = FakeSSHClient(FakeChannel(b"partial output", hang=True))
        executor = _executor(test_settings, credentials, client)

        result = await executor.execute(make_spec("sleep 600", timeout=0.05))

        assert result.timed_out is True
        assert result.exit_code == -1
        assert result.success is False
        assert result.stdout == "partial output"
        assert client.channel.closed
        assert client.closed
        await executor.close()

    @pytest.mark.asyncio
    async def test_authentication_failure_raises(self, test_settings, credentials, make_spec):
        client = FakeSSHClient(connect_error=paramiko.AuthenticationException("bad key"))
        executor = _executor(test_settings, credentials, client)

        with pytest.raises(HostConnectionError) as excinfo:
            await executor.execute(make_spec())

        assert excinfo.value.host == "10.0.0.5"
        assert "Authentication failed" in excinfo.value.reason
        assert isinstance(excinfo.value, ConnectionError)
        assert client.channel.command is None
        await executor.close()

    @pytest.mark.asyncio
    async def test_unreachable_host_raises(self, test_settings, credentials, make_spec):
        client = FakeSSHClient(connect_error=OSError(113, "No route to host"))
        executor = _executor(test_settings, credentials, client)

        with pytest.raises(HostConnectionError, match="Connection failed"):
            await executor.execute(make_spec())
        await executor.close()

    @pytest.mark.asyncio
    async def test_stdin_is_sent(self, test_settings, credentials, make_spec):
        client = FakeSSHClient(FakeChannel(b"Login Succeeded\n"))
        executor = _executor(test_settings, credentials, client)

        spec = make_spec("docker login --password-stdin registry", stdin=b"s3cret")
        await executor.execute(spec)

        assert client.channel.stdin == b"s3cret"
        assert client.channel.write_shut
        assert "s3cret" not in client.channel.command
        await executor.close()

    @pytest.mark.asyncio
    async def test_output_is_capped(self, test_settings, credentials, make_spec):
        cfg = test_settings.model_copy(update={"max_output_bytes": 4})
        client = FakeSSHClient(FakeChannel(b"abcdefgh"))
        executor = _executor(cfg, credentials, client)

        result = await executor.execute(make_spec("cat big.log"))

        assert result.stdout == "abcd"
        assert result.output_trimmed is True
        await executor.close()

    @pytest.mark.asyncio
    async def test_username_override(self, test_settings, credentials, make_spec):
        client = FakeSSHClient()
        executor = _executor(test_settings, credentials, client)

        await executor.execute(make_spec(username="ec2-user"))

        assert client.connect_kwargs["username"] == "ec2-user"
        assert client.connect_kwargs["key_filename"] == "/keys/deploy.pem"
        await executor.close()

    @pytest.mark.asyncio
    async def test_strict_host_keys_rejects_unknown(self, test_settings, credentials, make_spec):
        cfg = test_settings.model_copy(update={"ssh_strict_host_keys": True})
        client = FakeSSHClient()
        executor = _executor(cfg, credentials, client)

        await executor.execute(make_spec())

        assert isinstance(client.policy, paramiko.RejectPolicy)
        await executor.close()

    @pytest.mark.asyncio
    async def test_unknown_auth_ref(self, test_settings, credentials, make_spec):
        executor = _executor(test_settings, credentials, FakeSSHClient())
        with pytest.raises(CredentialError):
            await executor.execute(make_spec(auth_ref="nobody"))
        await executor.close()

    @pytest.mark.asyncio
    async def test_cancel_aborts_session(self, test_settings, credentials, make_spec):
        client = FakeSSHClient(FakeChannel(hang=True))
        executor = _executor(test_settings, credentials, client)

        task = asyncio.create_task(executor.execute(make_spec("sleep 600", timeout=60)))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert client.closed
        await executor.close()


class StreamingChannel(FakeChannel):
    """A command like ``yes``: output never stops and it never exits."""

    def recv_ready(self) -> bool:
        return True

    def recv(self, n: int) -> bytes:
        return b"y\n"

    def exit_status_ready(self) -> bool:
        return False


class TestDeadline:
    @pytest.mark.asyncio
    async def test_timeout_enforced_while_output_keeps_arriving(self, test_settings, credentials, make_spec):
        cfg = test_settings.model_copy(update={"max_output_bytes": 64})
        client = FakeSSHClient(StreamingChannel())
        executor = _executor(cfg, credentials, client)

        result = await asyncio.wait_for(executor.execute(make_spec("yes", timeout=0.2)), timeout=3)

        assert result.timed_out is True
        assert result.exit_code == -1
        assert result.output_trimmed is True
        assert result.stdout.startswith("y\n")
        assert client.channel.closed
        await executor.close()

    @pytest.mark.asyncio
    async def test_connect_timeout_capped_by_command_timeout(self, test_settings, credentials, make_spec):
        cfg = test_settings.model_copy(update={"ssh_connect_timeout": 10.0})
        client = FakeSSHClient()
        executor = _executor(cfg, credentials, client)

        await executor.execute(make_spec("uptime", timeout=2))

        assert client.connect_kwargs["timeout"] == 2
        assert client.connect_kwargs["banner_timeout"] == 2
        assert client.connect_kwargs["auth_timeout"] == 2
        await executor.close()

    @pytest.mark.asyncio
    async def test_connect_timeout_from_settings_when_shorter(self, test_settings, credentials, make_spec):
        cfg = test_settings.model_copy(update={"ssh_connect_timeout": 5.0})
        client = FakeSSHClient()
        executor = _executor(cfg, credentials, client)

        await executor.execute(make_spec("uptime", timeout=60))

        assert client.connect_kwargs["timeout"] == 5.0
        await executor.close()
