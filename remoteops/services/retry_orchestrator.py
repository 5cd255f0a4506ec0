"""Bounded single-retry workflow: run -> classify -> fix -> re-run.

At most one remediation command and one re-run of the original command
happen per call, whatever their outcome. Command failures never raise;
the caller always gets a RetryResult and decides what to do next.
"""

from __future__ import annotations

from typing import Protocol

from remoteops.config import Settings, settings
from remoteops.errors import HostConnectionError
from remoteops.models.commands import CommandSpec, ExecutionResult
from remoteops.models.diagnosis import Diagnosis, RetryResult, RetryStage
from remoteops.services.host_limiter import HostLimiter
from remoteops.services.output_classifier import OutputClassifier
from remoteops.services.remediation_planner import RemediationPlanner
from remoteops.utils.logging import get_logger

log = get_logger(__name__)


class CommandExecutor(Protocol):
    async def execute(self, spec: CommandSpec) -> ExecutionResult:
        """Run one command; raise HostConnectionError if it never ran."""


class RetryOrchestrator:
    """Composes executor, classifier and planner.

    ``limiter`` must be shared by every orchestrator that may target the
    same hosts; by default the executor's own limiter is used.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        cfg: Settings | None = None,
        *,
        classifier: OutputClassifier | None = None,
        planner: RemediationPlanner | None = None,
        limiter: HostLimiter | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._executor = executor
        self._classifier = classifier or OutputClassifier()
        self._planner = planner or RemediationPlanner(self._cfg)
        self._limiter = (
            limiter
            or getattr(executor, "limiter", None)
            or HostLimiter(self._cfg.max_sessions_per_host)
        )

    # ── public ────────────────────────────────────────────────────────

    async def execute_with_remediation(
        self,
        spec: CommandSpec,
        auto_retry: bool = False,
        *,
        remediation_timeout: float | None = None,
    ) -> RetryResult:
        """Run *spec*; on a retryable failure apply one fix and re-run once.

        HostConnectionError from the first run propagates: the command
        never ran, so there is nothing to classify.
        """
        async with self._limiter.exclusive(spec.host):
            first = await self._executor.execute(spec)
            diagnosis = self._classifier.classify_result(first)

            if first.success:
                return RetryResult(success=True, diagnosis=diagnosis, attempts=[first])

            if not auto_retry or not diagnosis.can_retry:
                log.info(
                    "retry.not_attempted",
                    host=spec.host,
                    auto_retry=auto_retry,
                    can_retry=diagnosis.can_retry,
                    exit_code=first.exit_code,
                )
                return RetryResult(success=False, diagnosis=diagnosis, attempts=[first])

            return await self._remediate_and_retry(
                spec, first.output, diagnosis, [first], remediation_timeout,
            )

    async def remediate_output(
        self,
        spec: CommandSpec,
        error_output: str,
        *,
        remediation_timeout: float | None = None,
    ) -> RetryResult:
        """Fix a failure observed earlier, then re-run ``spec.command`` once.

        Used when the caller already holds the failing output and wants the
        engine to attempt the known fix without re-running the command first.
        """
        diagnosis = self._classifier.classify(error_output, spec.command)
        async with self._limiter.exclusive(spec.host):
            return await self._remediate_and_retry(
                spec, error_output, diagnosis, [], remediation_timeout,
            )

    # ── internals ─────────────────────────────────────────────────────

    async def _remediate_and_retry(
        self,
        spec: CommandSpec,
        output: str,
        diagnosis: Diagnosis,
        attempts: list[ExecutionResult],
        remediation_timeout: float | None,
    ) -> RetryResult:
        fix = self._planner.generate(output, spec.command)
        if fix is None:
            log.info("retry.no_remediation", host=spec.host, command=spec.command[:200])
            return RetryResult(success=False, diagnosis=diagnosis, attempts=attempts)

        timeout = remediation_timeout or self._cfg.remediation_timeout or spec.timeout
        log.info("retry.remediating", host=spec.host, remediation=fix[:200])
        fix_result = await self._run_step(
            spec.with_command(fix, timeout=timeout), RetryStage.remediation,
        )
        if isinstance(fix_result, str):
            return RetryResult(
                success=False,
                diagnosis=diagnosis,
                remediation_command=fix,
                stage=RetryStage.remediation,
                error=fix_result,
                attempts=attempts,
            )
        attempts.append(fix_result)
        if not fix_result.success:
            log.warning(
                "retry.remediation_failed",
                host=spec.host,
                exit_code=fix_result.exit_code,
            )
            return RetryResult(
                success=False,
                diagnosis=diagnosis,
                remediation_command=fix,
                stage=RetryStage.remediation,
                attempts=attempts,
            )

        log.info("retry.rerunning", host=spec.host, command=spec.command[:200])
        retry_result = await self._run_step(spec, RetryStage.retry)
        if isinstance(retry_result, str):
            return RetryResult(
                success=False,
                diagnosis=diagnosis,
                remediation_command=fix,
                stage=RetryStage.retry,
                error=retry_result,
                attempts=attempts,
            )
        attempts.append(retry_result)
        log.info(
            "retry.done",
            host=spec.host,
            success=retry_result.success,
            exit_code=retry_result.exit_code,
        )
        return RetryResult(
            success=retry_result.success,
            diagnosis=diagnosis,
            remediation_command=fix,
            retried=True,
            stage=RetryStage.retry,
            attempts=attempts,
        )

    async def _run_step(
        self, spec: CommandSpec, stage: RetryStage,
    ) -> ExecutionResult | str:
        """Execute a follow-up step; a lost connection becomes an error string."""
        try:
            return await self._executor.execute(spec)
        except HostConnectionError as exc:
            log.error("retry.connection_lost", host=spec.host, stage=stage.value, error=exc.reason)
            return f"Connection failed during {stage.value}: {exc.reason}"
