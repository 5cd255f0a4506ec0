"""Managed-service status models used by the stabilization poller."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class ServiceRef(BaseModel):
    service_id: str
    cluster_id: str
    max_wait_seconds: Optional[float] = Field(default=None, gt=0)

    model_config = {"frozen": True}


class ServiceStatusSnapshot(BaseModel):
    """Replica counts as reported by the control plane."""

    desired_count: int = 0
    running_count: int = 0
    pending_count: int = 0
    status: str = ""

    model_config = {"frozen": True}

    @property
    def is_stable(self) -> bool:
        return (
            self.running_count == self.desired_count
            and self.pending_count == 0
        )


class PollOutcome(BaseModel):
    stable: bool
    timed_out: bool = False
    cancelled: bool = False
    snapshot: Optional[ServiceStatusSnapshot] = None
    polls: int = 0
    elapsed_seconds: float = 0.0
