"""Recovery milestone detection from process output.

This module consumes a process line stream, marks named milestones when
their patterns first match, persists every line to an append-only log,
and stops as soon as every milestone has fired. Output ending early and
the deadline passing are reported as distinct failures.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Protocol, Sequence

from core.constants import (
    CONSISTENCY_LINE_PATTERN,
    CONSISTENCY_MILESTONE,
    INTERESTING_LINE_PATTERN,
    REORG_LINE_PATTERN,
    REORG_MILESTONE,
)
from core.errors import MilestoneNotReachedError, StreamTimeoutError
from core.logging_config import get_logger
from core.types import MilestoneReport

_LOGGER = get_logger(__name__)


class LineStream(Protocol):
    """Source of output lines with end-of-stream and timeout signalling."""

    @property
    def exit_code(self) -> int | None: ...

    def next_line(self, timeout: float | None = None) -> str | None: ...


@dataclass(frozen=True)
class MilestoneRule:
    """Pattern that sets one milestone on its first matching line.

    Attributes:
        name: Milestone name.
        pattern: Regular expression; group 1, if present, captures a batch number.
        announcement: Message logged when the milestone fires.
    """

    name: str
    pattern: re.Pattern[str]
    announcement: str


def default_milestone_rules() -> tuple[MilestoneRule, ...]:
    """Return the consistency-checker and reorg-detector milestone rules."""
    return (
        MilestoneRule(
            name=CONSISTENCY_MILESTONE,
            pattern=re.compile(CONSISTENCY_LINE_PATTERN),
            announcement="Consistency checker successfully checked post-snapshot L1 batch",
        ),
        MilestoneRule(
            name=REORG_MILESTONE,
            pattern=re.compile(REORG_LINE_PATTERN),
            announcement="Reorg detector successfully checked post-snapshot L1 batch",
        ),
    )


def persist_output_line(log_file: IO[str], line: str, interesting: re.Pattern[str]) -> None:
    """Append one output line to the run log, echoing interesting lines."""
    if interesting.search(line):
        _LOGGER.info("node_output", line=line)
    log_file.write(line + "\n")
    log_file.flush()


class LogStateTracker:
    """Wait for milestones by matching process output lines."""

    def __init__(
        self,
        rules: Sequence[MilestoneRule],
        log_path: Path,
        interesting_pattern: re.Pattern[str] | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._log_path = log_path
        self._interesting = (
            interesting_pattern
            if interesting_pattern is not None
            else re.compile(INTERESTING_LINE_PATTERN)
        )

    def wait(self, stream: LineStream, timeout_seconds: float | None = None) -> MilestoneReport:
        """Consume lines until every milestone fires.

        Args:
            stream: Line source, usually a supervised process.
            timeout_seconds: Overall deadline; ``None`` waits for process exit only.

        Returns:
            Report of fired milestones and consumed lines.

        Raises:
            MilestoneNotReachedError: If the stream ends first.
            StreamTimeoutError: If the deadline passes first.
        """
        deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
        observed: dict[str, int | None] = {}
        lines_consumed = 0
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        with self._log_path.open("w", encoding="utf-8") as log_file:
            while len(observed) < len(self._rules):
                remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
                try:
                    line = stream.next_line(remaining)
                except TimeoutError as error:
                    raise StreamTimeoutError(
                        self._pending(observed), float(timeout_seconds or 0.0)
                    ) from error
                if line is None:
                    raise MilestoneNotReachedError(self._pending(observed), stream.exit_code)
                lines_consumed += 1
                persist_output_line(log_file, line, self._interesting)
                self._match(line, observed)
        _LOGGER.info(
            "milestones_reached",
            milestones=list(observed),
            lines_consumed=lines_consumed,
            log_path=str(self._log_path),
        )
        return MilestoneReport(
            reached=tuple(observed),
            observed_batches=dict(observed),
            lines_consumed=lines_consumed,
        )

    def _match(self, line: str, observed: dict[str, int | None]) -> None:
        for rule in self._rules:
            if rule.name in observed:
                continue
            match = rule.pattern.search(line)
            if match is None:
                continue
            observed[rule.name] = _captured_batch(match)
            _LOGGER.info(
                "milestone_reached",
                milestone=rule.name,
                batch=observed[rule.name],
                message=rule.announcement,
            )

    def _pending(self, observed: dict[str, int | None]) -> tuple[str, ...]:
        return tuple(rule.name for rule in self._rules if rule.name not in observed)


def _captured_batch(match: re.Match[str]) -> int | None:
    if not match.groups() or match.group(1) is None:
        return None
    return int(match.group(1))
