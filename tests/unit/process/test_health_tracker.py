"""Unit tests for health-endpoint milestone tracking."""

from __future__ import annotations

from pathlib import Path

import pytest
import requests

from core.errors import MilestoneNotReachedError, StreamTimeoutError
from process.health_tracker import HealthStateTracker, default_health_rules


class _FakeResponse:
    def __init__(self, payload: object) -> None:
        self._payload = payload

    def json(self) -> object:
        return self._payload


class _FakeSession:
    def __init__(self, payloads: list[object]) -> None:
        self._payloads = payloads
        self.get_count = 0

    def get(self, url: str, timeout: float) -> _FakeResponse:
        self.get_count += 1
        payload = self._payloads[min(self.get_count, len(self._payloads)) - 1]
        if isinstance(payload, Exception):
            raise payload
        return _FakeResponse(payload)


class _FakeProcess:
    def __init__(self, exit_code: int | None = None, lines: list[str] | None = None) -> None:
        self.exit_code = exit_code
        self._lines = list(lines or [])

    def next_line(self, timeout: float | None = None) -> str | None:
        if self._lines:
            return self._lines.pop(0)
        if self.exit_code is not None:
            return None
        raise TimeoutError(f"no line within {timeout}")


def _health(consistency_batch: int | None, reorg_batch: int | None) -> dict[str, object]:
    components: dict[str, object] = {}
    if consistency_batch is not None:
        components["consistency_checker"] = {
            "status": "ready",
            "details": {"last_checked_batch": consistency_batch},
        }
    if reorg_batch is not None:
        components["reorg_detector"] = {
            "status": "ready",
            "details": {"last_correct_l1_batch": reorg_batch},
        }
    return {"status": "ready", "components": components}


def _tracker(session: _FakeSession, log_dir: Path) -> HealthStateTracker:
    return HealthStateTracker(
        default_health_rules(),
        "http://node:3081/health",
        log_dir / "snapshot-recovery.log",
        poll_interval_seconds=0.01,
        session=session,  # type: ignore[arg-type]
        sleep=lambda _: None,
    )


def test_wait_collects_milestones_across_polls(tmp_path: Path) -> None:
    """Milestones should accumulate until every component is ready."""
    session = _FakeSession(
        [
            requests.ConnectionError("booting"),
            _health(None, None),
            _health(11, None),
            _health(None, 12),
        ]
    )

    report = _tracker(session, tmp_path).wait(_FakeProcess(), timeout_seconds=5)

    assert session.get_count == 4 and report.observed_batches == {
        "consistency_checked": 11,
        "reorg_checked": 12,
    }


def test_wait_fails_when_process_exits_first(tmp_path: Path) -> None:
    """A dead process should end the wait with the pending milestones."""
    session = _FakeSession([_health(4, None)])

    with pytest.raises(MilestoneNotReachedError) as error_info:
        _tracker(session, tmp_path).wait(_FakeProcess(exit_code=1), timeout_seconds=5)

    assert error_info.value.pending == ("reorg_checked",) and error_info.value.exit_code == 1


def test_wait_raises_stream_timeout_after_deadline(tmp_path: Path) -> None:
    """Components that never become ready should time out."""
    session = _FakeSession([_health(None, None)])

    with pytest.raises(StreamTimeoutError) as error_info:
        _tracker(session, tmp_path).wait(_FakeProcess(), timeout_seconds=0.0)

    assert error_info.value.pending == ("consistency_checked", "reorg_checked")


def test_wait_persists_process_output(tmp_path: Path) -> None:
    """Node output should reach the recovery log even though milestones come from health."""
    log_path = tmp_path / "logs" / "snapshot-recovery.log"
    lines = ["starting recovery", "applying storage logs", "recovery complete"]
    session = _FakeSession([_health(7, 7)])

    tracker = _tracker(session, log_path.parent)

    report = tracker.wait(_FakeProcess(lines=lines), timeout_seconds=5)

    assert log_path.read_text(encoding="utf-8").splitlines() == lines and (
        report.lines_consumed == 3
    )


def test_wait_persists_output_of_failed_process(tmp_path: Path) -> None:
    """Output of a node that dies before its milestones should still be logged."""
    log_path = tmp_path / "snapshot-recovery.log"
    session = _FakeSession([_health(None, None)])

    with pytest.raises(MilestoneNotReachedError):
        _tracker(session, tmp_path).wait(
            _FakeProcess(exit_code=101, lines=["panicked at recovery"]), timeout_seconds=5
        )

    assert log_path.read_text(encoding="utf-8") == "panicked at recovery\n"
