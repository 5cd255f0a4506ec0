"""Resolve ``auth_ref`` values to SSH credentials.

Storage and decryption of secrets belong to an external collaborator. This
module only turns a reference into something paramiko can authenticate
with: a key file path on disk, or key text kept in memory.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Protocol

import paramiko

from remoteops.config import Settings, settings
from remoteops.errors import CredentialError

DEFAULT_KEY_CANDIDATES = ("~/.ssh/id_rsa", "~/.ssh/ec2-key.pem")

# Tried in order when loading key text of unknown type
_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


@dataclass(frozen=True)
class SSHCredentials:
    username: str
    key_path: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)

    def connect_kwargs(self) -> dict:
        """Keyword arguments for ``paramiko.SSHClient.connect``."""
        kwargs: dict = {"username": self.username}
        if self.private_key:
            kwargs["pkey"] = load_private_key(self.private_key, self.passphrase)
            kwargs["look_for_keys"] = False
            kwargs["allow_agent"] = False
        elif self.key_path:
            kwargs["key_filename"] = self.key_path
            kwargs["look_for_keys"] = False
            if self.passphrase:
                kwargs["passphrase"] = self.passphrase
        return kwargs


def load_private_key(text: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """Parse PEM/OpenSSH key text without writing it to disk."""
    last_exc: Exception | None = None
    for key_cls in _KEY_CLASSES:
        try:
            return key_cls.from_private_key(io.StringIO(text), password=passphrase)
        except (paramiko.SSHException, ValueError) as exc:
            last_exc = exc
    raise CredentialError(f"unsupported or invalid private key: {last_exc}")


class CredentialResolver(Protocol):
    def resolve(self, auth_ref: Optional[str]) -> SSHCredentials:
        """Return credentials for *auth_ref* or raise CredentialError."""


class SettingsCredentialResolver:
    """Key files on the local filesystem.

    ``auth_ref`` is a file name inside ``ssh_key_dir`` (or an absolute
    path). Without a ref, the configured default key and the usual
    ``~/.ssh`` locations are tried in order.
    """

    def __init__(self, cfg: Settings | None = None) -> None:
        self._cfg = cfg or settings

    def _candidates(self, auth_ref: Optional[str]) -> list[Path]:
        if auth_ref:
            ref = Path(os.path.expanduser(auth_ref))
            if ref.is_absolute():
                return [ref]
            if self._cfg.ssh_key_dir:
                key_dir = Path(os.path.expanduser(self._cfg.ssh_key_dir))
                resolved = (key_dir / ref).resolve()
                if key_dir.resolve() not in resolved.parents:
                    raise CredentialError(f"auth_ref escapes key directory: {auth_ref}")
                return [resolved]
            return [ref]
        paths = [self._cfg.ssh_key_path, *DEFAULT_KEY_CANDIDATES]
        return [Path(os.path.expanduser(p)) for p in paths if p]

    def resolve(self, auth_ref: Optional[str]) -> SSHCredentials:
        for path in self._candidates(auth_ref):
            if path.is_file():
                return SSHCredentials(
                    username=self._cfg.ssh_username, key_path=str(path),
                )
        if auth_ref:
            raise CredentialError(f"no key file for auth_ref {auth_ref!r}")
        raise CredentialError(
            "No SSH private key found. Provide auth_ref or set REMOTEOPS_SSH_KEY_PATH.",
        )


class StaticCredentialResolver:
    """In-memory keys handed over by the secret store, keyed by ref."""

    def __init__(
        self,
        keys: Mapping[str, SSHCredentials],
        default: Optional[SSHCredentials] = None,
    ) -> None:
        self._keys = dict(keys)
        self._default = default

    def resolve(self, auth_ref: Optional[str]) -> SSHCredentials:
        if auth_ref is None:
            if self._default is None:
                raise CredentialError("no default credentials configured")
            return self._default
        try:
            return self._keys[auth_ref]
        except KeyError:
            raise CredentialError(f"unknown auth_ref {auth_ref!r}") from None
