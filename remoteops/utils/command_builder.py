"""Shell command construction with safe quoting.

Every interpolated value (paths, URLs, env values, image names) goes
through :func:`quote`, so metacharacters in caller data cannot change the
shape of the remote command line.
"""

from __future__ import annotations

import re
import shlex
from typing import Iterable, Mapping

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_HEREDOC_BASE = "REMOTEOPS_EOF"


def quote(value: object) -> str:
    """Quote a single value for a POSIX shell."""
    return shlex.quote(str(value))


def join(argv: Iterable[object]) -> str:
    """Build a command line from an argument vector, quoting each element."""
    return " ".join(quote(a) for a in argv)


def chain(*commands: str) -> str:
    """Join commands with ``&&`` so each runs only if the previous succeeded."""
    parts = [c.strip() for c in commands if c and c.strip()]
    if not parts:
        raise ValueError("chain() needs at least one command")
    return " && ".join(parts)


def has_sudo(command: str) -> bool:
    return command.lstrip().startswith("sudo ")


def sudo(command: str) -> str:
    """Prefix ``sudo`` unless the command already starts with it."""
    if has_sudo(command):
        return command
    return f"sudo {command}"


def env_assignments(env: Mapping[str, object]) -> str:
    """``KEY='value' KEY2='value2'`` prefix for a single command."""
    parts: list[str] = []
    for name, value in env.items():
        if not _ENV_NAME.match(name):
            raise ValueError(f"invalid environment variable name: {name!r}")
        parts.append(f"{name}={quote(value)}")
    return " ".join(parts)


def with_env(env: Mapping[str, object], command: str) -> str:
    prefix = env_assignments(env)
    return f"{prefix} {command}" if prefix else command


def heredoc_delimiter(content: str) -> str:
    """Pick a delimiter that does not occur as a line of *content*."""
    lines = set(content.splitlines())
    delimiter = _HEREDOC_BASE
    n = 0
    while delimiter in lines:
        n += 1
        delimiter = f"{_HEREDOC_BASE}_{n}"
    return delimiter


def write_file(
    path: str, content: str, *, use_sudo: bool = False, then: str | None = None,
) -> str:
    """Write *content* to *path* on the remote host via a quoted here-document.

    The delimiter is single-quoted so the remote shell performs no
    expansion inside the body. *then* runs only if the write succeeded.
    """
    delimiter = heredoc_delimiter(content)
    body = content if content.endswith("\n") else content + "\n"
    target = f"tee {quote(path)} > /dev/null"
    if use_sudo:
        target = f"sudo {target}"
    head = f"{target} <<'{delimiter}'"
    if then:
        head = f"{head} && {then}"
    return f"{head}\n{body}{delimiter}"
