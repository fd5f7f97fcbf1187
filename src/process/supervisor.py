"""Lifecycle control for external node processes.

This module runs one-shot tooling commands to completion and starts
long-running nodes whose standard output is exposed as a line stream.
Supervised processes are context managers so they are force-terminated
on every exit path.
"""

from __future__ import annotations

import queue
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Mapping, Sequence

import psutil

from core.constants import DEFAULT_STOP_GRACE_SECONDS, EXIT_REAP_SECONDS
from core.errors import ProcessExitError, ProcessSpawnError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
_END_OF_STREAM = object()


class SupervisedProcess:
    """Handle to a running process with a line-oriented stdout stream."""

    def __init__(self, command: Sequence[str], popen: subprocess.Popen[str]) -> None:
        self.command = " ".join(command)
        self._popen = popen
        self._lines: queue.Queue[object] = queue.Queue()
        self._stream_closed = False
        self._reader = threading.Thread(
            target=_pump_lines,
            args=(popen.stdout, self._lines),
            name=f"stdout-reader-{popen.pid}",
            daemon=True,
        )
        self._reader.start()

    @property
    def pid(self) -> int:
        """Operating system process id."""
        return self._popen.pid

    @property
    def exit_code(self) -> int | None:
        """Exit code, or ``None`` while the process is running."""
        return self._popen.poll()

    def next_line(self, timeout: float | None = None) -> str | None:
        """Return the next stdout line without its line terminator.

        Args:
            timeout: Seconds to wait; ``None`` waits indefinitely.

        Returns:
            The next line, or ``None`` once stdout has been closed. The
            process is briefly awaited at that point so ``exit_code`` is set.

        Raises:
            TimeoutError: If no line arrives within ``timeout``.
        """
        if self._stream_closed:
            return None
        try:
            item = self._lines.get(timeout=timeout)
        except queue.Empty as error:
            raise TimeoutError(f"No output from '{self.command}' within {timeout}s.") from error
        if item is _END_OF_STREAM:
            self._stream_closed = True
            self._reap()
            return None
        return str(item)

    def _reap(self) -> None:
        try:
            self._popen.wait(timeout=EXIT_REAP_SECONDS)
        except subprocess.TimeoutExpired:
            _LOGGER.debug("stdout_closed_process_running", command=self.command, pid=self.pid)

    def stop(self, grace_seconds: float = DEFAULT_STOP_GRACE_SECONDS) -> int | None:
        """Force-terminate the process and reap it.

        Returns:
            Final exit code, if the process could be reaped.
        """
        if self._popen.poll() is None:
            self._popen.kill()
            _LOGGER.info("process_killed", command=self.command, pid=self.pid)
        try:
            return self._popen.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            _LOGGER.warning("process_not_reaped", command=self.command, pid=self.pid)
            return None

    def __enter__(self) -> "SupervisedProcess":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def _pump_lines(stdout: IO[str] | None, lines: "queue.Queue[object]") -> None:
    if stdout is None:
        lines.put(_END_OF_STREAM)
        return
    try:
        for line in stdout:
            lines.put(line.rstrip("\r\n"))
    finally:
        stdout.close()
        lines.put(_END_OF_STREAM)


class ProcessSupervisor:
    """Start external commands and own their termination."""

    def run_to_completion(
        self,
        command: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
        log_path: Path | None = None,
    ) -> None:
        """Run a command and block until it exits.

        Args:
            command: Argument vector.
            cwd: Working directory.
            env: Full environment; ``None`` inherits the current one.
            log_path: File receiving stdout and stderr; inherited when omitted.

        Raises:
            ProcessSpawnError: If the command cannot be started.
            ProcessExitError: If the command exits with a nonzero code.
        """
        display = " ".join(command)
        started_at = time.monotonic()
        _LOGGER.info("process_started", command=display, cwd=str(cwd))
        if log_path is None:
            exit_code = self._wait(command, display, cwd, env, None)
        else:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("w", encoding="utf-8") as log_file:
                exit_code = self._wait(command, display, cwd, env, log_file)
        _LOGGER.info(
            "process_exited",
            command=display,
            exit_code=exit_code,
            duration_seconds=round(time.monotonic() - started_at, 3),
        )
        if exit_code != 0:
            raise ProcessExitError(display, exit_code)

    def _wait(
        self,
        command: Sequence[str],
        display: str,
        cwd: Path,
        env: Mapping[str, str] | None,
        log_file: IO[str] | None,
    ) -> int:
        try:
            popen = subprocess.Popen(
                list(command),
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT if log_file is not None else None,
            )
        except OSError as error:
            raise ProcessSpawnError(display, error) from error
        try:
            return popen.wait()
        finally:
            if popen.poll() is None:
                popen.kill()
                popen.wait()

    def run_supervised(
        self,
        command: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> SupervisedProcess:
        """Start a long-running command and return immediately.

        Stdout is exposed line by line; stderr goes to this process's stderr.

        Raises:
            ProcessSpawnError: If the command cannot be started.
        """
        display = " ".join(command)
        try:
            popen = subprocess.Popen(
                list(command),
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=None,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as error:
            raise ProcessSpawnError(display, error) from error
        _LOGGER.info("supervised_process_started", command=display, pid=popen.pid)
        return SupervisedProcess(command, popen)


def kill_stale_processes(process_name: str) -> int:
    """Force-kill every process with the given name.

    Args:
        process_name: Executable name to match.

    Returns:
        Number of processes killed; zero when none matched.
    """
    killed = 0
    for candidate in psutil.process_iter(["name"]):
        if candidate.info.get("name") != process_name:
            continue
        try:
            candidate.kill()
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            continue
        except psutil.AccessDenied:
            _LOGGER.warning(
                "stale_process_kill_denied", process_name=process_name, pid=candidate.pid
            )
            continue
        killed += 1
    if killed:
        _LOGGER.info("stale_processes_killed", process_name=process_name, count=killed)
    return killed
