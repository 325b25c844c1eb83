from __future__ import annotations

import shlex
import subprocess
import threading
from datetime import datetime
from queue import Empty, Queue
from typing import Callable

from PyQt5 import QtCore

COMMAND_CANCEL_EXIT_CODE = -9
COMMAND_TIMEOUT_EXIT_CODE = -124
COMMAND_NOT_FOUND_EXIT_CODE = -127
DEFAULT_PROBE_TIMEOUT_SEC = 30


def run_command_with_options(
    command: str | list[str],
    *,
    timeout_sec: float | None = None,
    cancel_requested: Callable[[], bool] | None = None,
    merge_stderr: bool = False,
    poll_interval_sec: float = 0.05,
) -> tuple[int, str]:
    """Run command with optional timeout/cancellation support.

    A missing executable is reported as ``COMMAND_NOT_FOUND_EXIT_CODE`` with
    empty output instead of raising, since most probe tools are optional.
    """
    args = command if isinstance(command, list) else shlex.split(command)
    try:
        proc = subprocess.Popen(
            args,
            shell=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="ignore",
        )
    except (FileNotFoundError, PermissionError):
        return COMMAND_NOT_FOUND_EXIT_CODE, ""

    output_lines: list[str] = []
    output_queue: Queue[str | None] = Queue()

    def enqueue_output() -> None:
        if proc.stdout is None:
            output_queue.put(None)
            return
        for line in proc.stdout:
            output_queue.put(line)
        output_queue.put(None)

    stdout_thread = threading.Thread(target=enqueue_output, daemon=True)
    stdout_thread.start()

    deadline = None if timeout_sec is None else datetime.now().timestamp() + timeout_sec
    stream_finished = False
    while True:
        while True:
            try:
                line = output_queue.get_nowait()
            except Empty:
                break

            if line is None:
                stream_finished = True
                continue
            output_lines.append(line.rstrip("\r\n"))

        if cancel_requested and cancel_requested():
            _stop(proc)
            stdout_thread.join(timeout=1)
            return COMMAND_CANCEL_EXIT_CODE, "\n".join(output_lines).strip()

        if deadline is not None and datetime.now().timestamp() >= deadline:
            _stop(proc)
            stdout_thread.join(timeout=1)
            return COMMAND_TIMEOUT_EXIT_CODE, "\n".join(output_lines).strip()

        rc = proc.poll()
        if rc is not None and stream_finished:
            stdout_thread.join(timeout=1)
            return rc, "\n".join(output_lines).strip()

        QtCore.QThread.msleep(max(1, int(poll_interval_sec * 1000)))


def _stop(proc: subprocess.Popen) -> None:
    proc.terminate()
    try:
        proc.wait(timeout=5)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


def format_command(args: list[str]) -> str:
    """Create a readable command line string for operator messages."""
    return subprocess.list2cmdline(args)
