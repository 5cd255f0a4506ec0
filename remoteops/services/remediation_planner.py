"""Remediation planner: derive one alternative command for a failed run.

First-match semantics: rules are tried in fixed priority order and the
first one that applies wins. Kept separate from the classifier table:
outputs matching several signatures get the highest-priority fix.

Priority:
    1. permission denied        -> ``sudo <cmd>`` (skipped if already sudo)
    2. unable to locate package -> ``sudo apt-get update && <cmd>``
    3. could not get lock       -> ``sleep <backoff> && <cmd>``
    4. docker daemon down       -> ``sudo systemctl start docker && <cmd>``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from remoteops.config import Settings, settings
from remoteops.models.diagnosis import RemediationPlan
from remoteops.utils import command_builder as cb

DEFAULT_LOCK_BACKOFF_SECONDS = 30


@dataclass(frozen=True)
class RemediationRule:
    name: str
    pattern: re.Pattern[str]
    derive: Callable[[str], Optional[str]]

    def apply(self, output: str, original_command: str) -> Optional[str]:
        if not self.pattern.search(output):
            return None
        return self.derive(original_command)


def _with_sudo(command: str) -> Optional[str]:
    if cb.has_sudo(command):
        return None
    return cb.sudo(command)


def _refresh_index(command: str) -> str:
    return cb.chain("sudo apt-get update", command)


def _backoff(seconds: int) -> Callable[[str], str]:
    def derive(command: str) -> str:
        return cb.chain(f"sleep {int(seconds)}", command)

    return derive


def _start_docker(command: str) -> str:
    return cb.chain("sudo systemctl start docker", command)


def build_rules(lock_backoff_seconds: int = DEFAULT_LOCK_BACKOFF_SECONDS) -> tuple[RemediationRule, ...]:
    return (
        RemediationRule("sudo", re.compile(r"permission denied", re.I), _with_sudo),
        RemediationRule(
            "refresh_package_index",
            re.compile(r"unable to locate package", re.I),
            _refresh_index,
        ),
        RemediationRule(
            "lock_backoff",
            re.compile(r"could not get lock", re.I),
            _backoff(lock_backoff_seconds),
        ),
        RemediationRule(
            "start_docker",
            re.compile(r"docker daemon is not running|Cannot connect to the Docker daemon", re.I),
            _start_docker,
        ),
    )


class RemediationPlanner:
    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        rules: Sequence[RemediationRule] | None = None,
    ) -> None:
        _cfg = cfg or settings
        self._rules = tuple(rules) if rules is not None else build_rules(
            _cfg.lock_backoff_seconds,
        )

    def plan(self, output: str, original_command: str) -> Optional[RemediationPlan]:
        for rule in self._rules:
            derived = rule.apply(output, original_command)
            if derived is not None:
                return RemediationPlan(
                    original_command=original_command,
                    derived_command=derived,
                    rule=rule.name,
                )
        return None

    def generate(self, output: str, original_command: str) -> Optional[str]:
        """Return the fix command, or None when no automatic fix is known."""
        plan = self.plan(output, original_command)
        return plan.derived_command if plan else None


_default = RemediationPlanner(rules=build_rules())


def generate(output: str, original_command: str) -> Optional[str]:
    """Plan with the default rules (30 s lock back-off)."""
    return _default.generate(output, original_command)
