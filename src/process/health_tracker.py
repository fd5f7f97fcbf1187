"""Recovery milestone detection from the node health endpoint.

Milestones are read from structured component health instead of log
text. The tracker polls until every component rule is satisfied, the
process exits, or the deadline passes. Process output that arrives in the
meantime is drained between polls and persisted to the run log.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Callable, Mapping, Sequence

import requests

from core.constants import (
    CONSISTENCY_HEALTH_COMPONENT,
    CONSISTENCY_HEALTH_DETAIL,
    CONSISTENCY_MILESTONE,
    DEFAULT_HEALTH_POLL_INTERVAL_SECONDS,
    HEALTH_READY_STATUS,
    INTERESTING_LINE_PATTERN,
    REORG_HEALTH_COMPONENT,
    REORG_HEALTH_DETAIL,
    REORG_MILESTONE,
)
from core.errors import MilestoneNotReachedError, StreamTimeoutError
from core.logging_config import get_logger
from core.types import MilestoneReport
from process.log_tracker import LineStream, persist_output_line

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class HealthMilestoneRule:
    """Component health condition that sets one milestone.

    Attributes:
        name: Milestone name.
        component: Health component key.
        batch_detail: Detail field holding the checked batch number.
    """

    name: str
    component: str
    batch_detail: str


def default_health_rules() -> tuple[HealthMilestoneRule, ...]:
    """Return health rules equivalent to the default log milestones."""
    return (
        HealthMilestoneRule(
            CONSISTENCY_MILESTONE, CONSISTENCY_HEALTH_COMPONENT, CONSISTENCY_HEALTH_DETAIL
        ),
        HealthMilestoneRule(REORG_MILESTONE, REORG_HEALTH_COMPONENT, REORG_HEALTH_DETAIL),
    )


class HealthStateTracker:
    """Wait for milestones by polling a JSON health endpoint."""

    def __init__(
        self,
        rules: Sequence[HealthMilestoneRule],
        health_url: str,
        log_path: Path,
        poll_interval_seconds: float = DEFAULT_HEALTH_POLL_INTERVAL_SECONDS,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        interesting_pattern: re.Pattern[str] | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._health_url = health_url
        self._log_path = log_path
        self._poll_interval_seconds = poll_interval_seconds
        self._session = session or requests.Session()
        self._sleep = sleep
        self._interesting = (
            interesting_pattern
            if interesting_pattern is not None
            else re.compile(INTERESTING_LINE_PATTERN)
        )

    def wait(self, process: LineStream, timeout_seconds: float | None = None) -> MilestoneReport:
        """Poll health until every milestone is satisfied.

        Output lines already produced by the process are written to the run
        log before each poll and once more before returning or failing.

        Raises:
            MilestoneNotReachedError: If the process exits first.
            StreamTimeoutError: If the deadline passes first.
        """
        deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
        observed: dict[str, int | None] = {}
        polls = 0
        lines_consumed = 0
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        with self._log_path.open("w", encoding="utf-8") as log_file:
            while True:
                lines_consumed += self._drain_output(process, log_file)
                payload = self._fetch_health()
                polls += 1
                if payload is not None:
                    self._match(payload, observed)
                if len(observed) == len(self._rules):
                    lines_consumed += self._drain_output(process, log_file)
                    break
                if process.exit_code is not None:
                    self._drain_output(process, log_file)
                    raise MilestoneNotReachedError(self._pending(observed), process.exit_code)
                if deadline is not None and time.monotonic() >= deadline:
                    self._drain_output(process, log_file)
                    raise StreamTimeoutError(
                        self._pending(observed), float(timeout_seconds or 0.0)
                    )
                self._sleep(self._poll_interval_seconds)
        _LOGGER.info(
            "milestones_reached",
            milestones=list(observed),
            polls=polls,
            lines_consumed=lines_consumed,
            log_path=str(self._log_path),
        )
        return MilestoneReport(
            reached=tuple(observed),
            observed_batches=dict(observed),
            lines_consumed=lines_consumed,
        )

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self._session.close()

    def _drain_output(self, process: LineStream, log_file: IO[str]) -> int:
        drained = 0
        while True:
            try:
                line = process.next_line(timeout=0)
            except TimeoutError:
                return drained
            if line is None:
                return drained
            persist_output_line(log_file, line, self._interesting)
            drained += 1

    def _fetch_health(self) -> Mapping[str, Any] | None:
        # Unreachable or not-yet-serving endpoints are expected while the node boots.
        try:
            response = self._session.get(self._health_url, timeout=self._poll_interval_seconds * 5)
            payload = response.json()
        except (requests.RequestException, ValueError) as error:
            _LOGGER.debug("health_poll_failed", url=self._health_url, error=str(error))
            return None
        return payload if isinstance(payload, Mapping) else None

    def _match(self, payload: Mapping[str, Any], observed: dict[str, int | None]) -> None:
        components = payload.get("components")
        if not isinstance(components, Mapping):
            return
        for rule in self._rules:
            if rule.name in observed:
                continue
            component = components.get(rule.component)
            if not isinstance(component, Mapping):
                continue
            if component.get("status") != HEALTH_READY_STATUS:
                continue
            details = component.get("details")
            batch = details.get(rule.batch_detail) if isinstance(details, Mapping) else None
            if not isinstance(batch, int) or isinstance(batch, bool):
                continue
            observed[rule.name] = batch
            _LOGGER.info("milestone_reached", milestone=rule.name, batch=batch)

    def _pending(self, observed: dict[str, int | None]) -> tuple[str, ...]:
        return tuple(rule.name for rule in self._rules if rule.name not in observed)
