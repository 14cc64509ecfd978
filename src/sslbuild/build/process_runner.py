"""Process Runner.

This module runs the external build steps (Configure, make) for a target and
captures their output in the target's log file.

Design:
    - Verbose mode streams output to the console and appends it to the log
    - Otherwise output only goes to the log while the runner polls the child
      on a fixed interval until it exits (blocking wait, no timeout)
    - A non-zero exit raises BuildPhaseError naming the phase and log file
    - Ctrl-C terminates the whole child process tree before re-raising
"""

import logging
import subprocess
import sys
import time
from collections import deque
from pathlib import Path
from typing import List, Mapping, Optional

import psutil

from ..config.options import Verbosity

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.75
TAIL_LINES = 500


class BuildPhaseError(Exception):
    """Raised when an external build step exits with a non-zero status."""

    def __init__(
        self,
        phase: str,
        log_path: Path,
        returncode: Optional[int] = None,
        tail: Optional[List[str]] = None,
        detail: Optional[str] = None,
    ):
        self.phase = phase
        self.log_path = log_path
        self.returncode = returncode
        self.tail = tail
        message = f"Problem during {phase} - Please check {log_path}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)


def terminate_process_tree(pid: int, timeout: float = 3) -> int:
    """Terminate a process and all of its children.

    Args:
        pid: PID of the root process
        timeout: Seconds to wait before force-killing survivors

    Returns:
        Number of processes signalled
    """
    try:
        root_proc = psutil.Process(pid)
        processes = root_proc.children(recursive=True) + [root_proc]
    except psutil.NoSuchProcess:
        return 0

    # Children first so make cannot spawn replacements
    signalled: List[psutil.Process] = []
    for proc in processes:
        try:
            proc.terminate()
            signalled.append(proc)
        except psutil.NoSuchProcess:
            pass

    _gone, alive = psutil.wait_procs(signalled, timeout=timeout)
    for proc in alive:
        try:
            proc.kill()
            logger.warning(f"Force killed stubborn process {proc.pid}")
        except psutil.NoSuchProcess:
            pass

    return len(signalled)


class ProcessRunner:
    """Runs external build commands with log capture.

    This class handles:
    - Writing command output to the per-target log file
    - Streaming output live in verbose mode
    - Reporting failures with the log location (and log tail on request)
    """

    def __init__(
        self,
        verbosity: Verbosity = Verbosity.NORMAL,
        poll_interval: float = POLL_INTERVAL,
        tail_lines: int = TAIL_LINES,
    ):
        """Initialize process runner.

        Args:
            verbosity: Output mode for command output
            poll_interval: Seconds between liveness checks of the child
            tail_lines: Number of log lines attached to errors in verbose-on-error mode
        """
        self.verbosity = verbosity
        self.poll_interval = poll_interval
        self.tail_lines = tail_lines

    def run(
        self,
        phase: str,
        cmd: List[str],
        cwd: Path,
        log_path: Path,
        env: Optional[Mapping[str, str]] = None,
        append: bool = True,
    ) -> None:
        """Run a command to completion.

        Args:
            phase: Name of the step for error messages (e.g. "Configure")
            cmd: Command and arguments
            cwd: Working directory
            log_path: Log file receiving the output
            env: Environment for the child process
            append: Append to the log instead of truncating it

        Raises:
            BuildPhaseError: If the command cannot start or exits non-zero
        """
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Running {phase}: {' '.join(cmd)} (cwd={cwd})")

        with open(log_path, "a" if append else "w", encoding="utf-8") as log:
            try:
                if self.verbosity == Verbosity.VERBOSE:
                    returncode = self._run_streaming(cmd, cwd, env, log)
                else:
                    returncode = self._run_captured(cmd, cwd, env, log)
            except OSError as e:
                raise BuildPhaseError(phase, log_path, detail=f"Failed to start {cmd[0]}: {e}") from e

        if returncode != 0:
            tail = None
            if self.verbosity == Verbosity.VERBOSE_ON_ERROR:
                tail = self.read_tail(log_path)
            raise BuildPhaseError(phase, log_path, returncode=returncode, tail=tail)

    def _run_streaming(self, cmd: List[str], cwd: Path, env, log) -> int:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                sys.stdout.write(line)
                log.write(line)
            return proc.wait()
        except KeyboardInterrupt:
            terminate_process_tree(proc.pid)
            raise

    def _run_captured(self, cmd: List[str], cwd: Path, env, log) -> int:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdout=log,
            stderr=subprocess.STDOUT,
        )
        try:
            while proc.poll() is None:
                time.sleep(self.poll_interval)
            return proc.returncode
        except KeyboardInterrupt:
            terminate_process_tree(proc.pid)
            raise

    def read_tail(self, log_path: Path) -> List[str]:
        """Return the last lines of a log file.

        Args:
            log_path: Log file to read

        Returns:
            Up to ``tail_lines`` lines without trailing newlines
        """
        if not log_path.exists():
            return []
        with open(log_path, "r", encoding="utf-8", errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=self.tail_lines)]
