"""Failure diagnosis and remediation outcome models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from remoteops.models.commands import ExecutionResult


class FailureKind(str, Enum):
    permission = "permission"
    package_index = "package_index"
    lock_contention = "lock_contention"
    connectivity = "connectivity"
    config = "config"
    missing_dependency = "missing_dependency"
    runtime = "runtime"
    unknown = "unknown"


class SignatureMatch(BaseModel):
    """One matched signature rule."""

    pattern: str
    suggestion: str

    model_config = {"frozen": True}


class Diagnosis(BaseModel):
    """Structured reading of a command's combined output."""

    has_errors: bool = False
    matched_signatures: tuple[SignatureMatch, ...] = ()
    can_retry: bool = False
    kinds: tuple[FailureKind, ...] = ()

    model_config = {"frozen": True}

    @property
    def suggestions(self) -> list[str]:
        return [m.suggestion for m in self.matched_signatures]


class RemediationPlan(BaseModel):
    original_command: str
    derived_command: str
    rule: str

    model_config = {"frozen": True}


class RetryStage(str, Enum):
    initial = "initial"
    remediation = "remediation"
    retry = "retry"


class RetryResult(BaseModel):
    """Aggregate of at most three executions: original, fix, re-run."""

    success: bool
    diagnosis: Diagnosis
    remediation_command: Optional[str] = None
    retried: bool = False
    stage: RetryStage = RetryStage.initial
    error: Optional[str] = None
    attempts: list[ExecutionResult] = Field(default_factory=list)

    @property
    def final_result(self) -> Optional[ExecutionResult]:
        return self.attempts[-1] if self.attempts else None
