"""Amazon ECS as a service status source.

The boto3 client is built once by the caller and passed in; nothing here
caches a client globally.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

import boto3

from remoteops.config import Settings, settings
from remoteops.errors import ServiceNotFoundError
from remoteops.models.service import ServiceRef, ServiceStatusSnapshot
from remoteops.utils.logging import get_logger

log = get_logger(__name__)


def build_ecs_client(cfg: Settings | None = None, session: Optional[boto3.session.Session] = None) -> Any:
    """Construct an ECS client for the configured region."""
    _cfg = cfg or settings
    _session = session or boto3.session.Session(region_name=_cfg.aws_region)
    return _session.client("ecs")


def snapshot_from_service(service: dict) -> ServiceStatusSnapshot:
    return ServiceStatusSnapshot(
        desired_count=service.get("desiredCount") or 0,
        running_count=service.get("runningCount") or 0,
        pending_count=service.get("pendingCount") or 0,
        status=service.get("status") or "",
    )


class EcsServiceStatusSource:
    """``DescribeServices`` on a worker thread, one service at a time."""

    def __init__(self, client: Any, pool: Optional[ThreadPoolExecutor] = None) -> None:
        self._client = client
        self._pool = pool

    def _describe_sync(self, ref: ServiceRef) -> ServiceStatusSnapshot:
        resp = self._client.describe_services(
            cluster=ref.cluster_id, services=[ref.service_id],
        )
        services = resp.get("services") or []
        if not services:
            failures = resp.get("failures") or []
            log.warning(
                "ecs.describe_missing",
                service=ref.service_id,
                cluster=ref.cluster_id,
                reasons=[f.get("reason") for f in failures],
            )
            raise ServiceNotFoundError(ref.service_id, ref.cluster_id)
        return snapshot_from_service(services[0])

    async def describe(self, ref: ServiceRef) -> ServiceStatusSnapshot:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, self._describe_sync, ref)
