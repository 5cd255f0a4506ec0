"""Tests for shell command construction."""

from __future__ import annotations

import shlex

import pytest

from remoteops.utils import command_builder as cb


class TestQuoting:
    def test_plain_value_unchanged(self):
        assert cb.quote("nginx") == "nginx"

    def test_metacharacters_quoted(self):
        value = "x; rm -rf / #"
        assert shlex.split(cb.quote(value)) == [value]

    def test_join(self):
        argv = ["echo", "$HOME", "a b", "it's"]
        assert shlex.split(cb.join(argv)) == argv

    def test_join_non_strings(self):
        assert cb.join(["sleep", 30]) == "sleep 30"


class TestChain:
    def test_chain(self):
        assert cb.chain("apt-get update", "apt-get install -y curl") == (
            "apt-get update && apt-get install -y curl"
        )

    def test_chain_skips_empty(self):
        assert cb.chain("", "  ", "uptime") == "uptime"

    def test_chain_needs_a_command(self):
        with pytest.raises(ValueError):
            cb.chain("", "")


class TestSudo:
    def test_prefix(self):
        assert cb.sudo("systemctl restart app") == "sudo systemctl restart app"

    def test_no_double_prefix(self):
        assert cb.sudo("sudo systemctl restart app") == "sudo systemctl restart app"

    def test_has_sudo(self):
        assert cb.has_sudo("  sudo ls")
        assert not cb.has_sudo("sudoedit /etc/hosts")


class TestEnv:
    def test_assignments_quoted(self):
        prefix = cb.env_assignments({"DB_URL": "postgres://u:p@h/db?ssl=true&x=1"})
        assert prefix == "DB_URL='postgres://u:p@h/db?ssl=true&x=1'"

    def test_with_env(self):
        assert cb.with_env({"A": "1"}, "env") == "A=1 env"
        assert cb.with_env({}, "env") == "env"

    def test_invalid_name(self):
        with pytest.raises(ValueError):
            cb.env_assignments({"A;rm": "1"})


class TestWriteFile:
    def test_heredoc_is_quoted(self):
        cmd = cb.write_file("/etc/app.conf", "HOME=$HOME\n`id`\n")
        first, *body = cmd.splitlines()
        assert first == "tee /etc/app.conf > /dev/null <<'REMOTEOPS_EOF'"
        assert body == ["HOME=$HOME", "`id`", "REMOTEOPS_EOF"]

    def test_sudo_and_path_quoting(self):
        cmd = cb.write_file("/srv/my app/.env", "A=1", use_sudo=True)
        assert cmd.startswith("sudo tee '/srv/my app/.env' > /dev/null <<")
        assert cmd.endswith("A=1\nREMOTEOPS_EOF")

    def test_delimiter_avoids_collision(self):
        content = "line\nREMOTEOPS_EOF\nREMOTEOPS_EOF_1\n"
        assert cb.heredoc_delimiter(content) == "REMOTEOPS_EOF_2"
        cmd = cb.write_file("/tmp/x", content)
        assert cmd.splitlines()[-1] == "REMOTEOPS_EOF_2"

    def test_then_chained_on_header(self):
        cmd = cb.write_file("/etc/app.conf", "A=1\n", use_sudo=True, then="sudo systemctl reload app")
        first, *body = cmd.splitlines()
        assert first == "sudo tee /etc/app.conf > /dev/null <<'REMOTEOPS_EOF' && sudo systemctl reload app"
        assert body == ["A=1", "REMOTEOPS_EOF"]
