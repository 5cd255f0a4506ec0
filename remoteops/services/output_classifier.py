"""Command output classifier.

Collect-all semantics: every rule whose pattern occurs anywhere in the
combined stdout/stderr is reported, in table order. The output is
retryable if ANY matched rule is. The remediation planner keeps its own
table and stops at the first matching rule.

Pure: no I/O and no clock.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from remoteops.models.commands import ExecutionResult
from remoteops.models.diagnosis import Diagnosis, FailureKind, SignatureMatch


@dataclass(frozen=True)
class SignatureRule:
    pattern: re.Pattern[str]
    suggestion: str
    retryable: bool
    kind: FailureKind

    def matches(self, output: str) -> bool:
        return self.pattern.search(output) is not None


def _rule(
    pattern: str, suggestion: str, retryable: bool, kind: FailureKind,
) -> SignatureRule:
    return SignatureRule(re.compile(pattern, re.I), suggestion, retryable, kind)


# ── Signature table (order is the order of Diagnosis.matched_signatures) ──
SIGNATURE_RULES: tuple[SignatureRule, ...] = (
    _rule(
        r"command not found",
        "Install the required package",
        False,
        FailureKind.missing_dependency,
    ),
    _rule(
        r"permission denied",
        "Run with sudo or check file permissions",
        True,
        FailureKind.permission,
    ),
    _rule(
        r"connection refused",
        "Check if the service is running",
        True,
        FailureKind.connectivity,
    ),
    _rule(
        r"no such file or directory",
        "Verify the file path exists",
        False,
        FailureKind.config,
    ),
    _rule(
        r"unable to locate package",
        "Update apt cache with: sudo apt update",
        True,
        FailureKind.package_index,
    ),
    _rule(
        r"E: Could not get lock",
        "Wait for other apt process or kill it",
        True,
        FailureKind.lock_contention,
    ),
    _rule(
        r"connection timed out",
        "Check network connectivity and security groups",
        True,
        FailureKind.connectivity,
    ),
    _rule(
        r"Name or service not known",
        "Check DNS resolution or use IP address",
        False,
        FailureKind.connectivity,
    ),
    _rule(
        r"docker daemon is not running|Cannot connect to the Docker daemon",
        "Start Docker: sudo systemctl start docker",
        True,
        FailureKind.runtime,
    ),
    _rule(
        r"nginx.*failed",
        "Check nginx config: sudo nginx -t",
        True,
        FailureKind.config,
    ),
)


class OutputClassifier:
    """Applies a signature table to command output."""

    def __init__(self, rules: Sequence[SignatureRule] = SIGNATURE_RULES) -> None:
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[SignatureRule, ...]:
        return self._rules

    def classify(self, output: str, original_command: str = "") -> Diagnosis:
        """Diagnose *output*. *original_command* is accepted for context only."""
        del original_command
        matched: list[SignatureMatch] = []
        kinds: list[FailureKind] = []
        can_retry = False
        for rule in self._rules:
            if not rule.matches(output):
                continue
            match = SignatureMatch(pattern=rule.pattern.pattern, suggestion=rule.suggestion)
            if match not in matched:
                matched.append(match)
            if rule.kind not in kinds:
                kinds.append(rule.kind)
            if rule.retryable:
                can_retry = True
        return Diagnosis(
            has_errors=bool(matched),
            matched_signatures=tuple(matched),
            can_retry=can_retry,
            kinds=tuple(kinds),
        )

    def classify_result(self, result: ExecutionResult) -> Diagnosis:
        return self.classify(result.output, result.command)


_default = OutputClassifier()


def classify(output: str, original_command: str = "") -> Diagnosis:
    """Classify with the default signature table."""
    return _default.classify(output, original_command)
