"""Exception hierarchy.

Command failures are never raised; they come back as results. Only
conditions where nothing ran (or nothing can be looked up) raise.
"""

from __future__ import annotations


class RemoteOpsError(Exception):
    """Base class for engine errors."""


class HostConnectionError(RemoteOpsError, ConnectionError):
    """Host unreachable or authentication rejected. The command never ran."""

    def __init__(self, host: str, reason: str) -> None:
        super().__init__(f"{host}: {reason}")
        self.host = host
        self.reason = reason


class CredentialError(RemoteOpsError):
    """An auth reference could not be resolved to key material."""


class ServiceNotFoundError(RemoteOpsError, LookupError):
    """The control plane does not know the requested service."""

    def __init__(self, service_id: str, cluster_id: str) -> None:
        super().__init__(f"Service {service_id} not found in cluster {cluster_id}")
        self.service_id = service_id
        self.cluster_id = cluster_id
