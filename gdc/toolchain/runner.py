"""Process runners for the go command.

The toolchain adapter never calls ``subprocess`` directly; it goes through a
runner so tests can substitute canned output for a real Go installation.
"""

from __future__ import annotations

import os
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import CanceledError, ToolchainMalformedOutputError, ToolchainMissingError


@dataclass
class RunResult:
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class SubprocessRunner:
    """Runs commands as child processes.

    ``env`` holds overrides on top of the current environment. A set
    ``cancel`` event kills the child and raises ``CanceledError``.
    """

    def __init__(self, poll_interval: float = 0.2):
        self.poll_interval = poll_interval

    def run(
        self,
        argv: List[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> RunResult:
        if cancel is not None and cancel.is_set():
            raise CanceledError()

        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                env=full_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ToolchainMissingError(argv[0], str(e)) from e

        deadline = time.monotonic() + timeout if timeout else None
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    proc.kill()
                    proc.communicate()
                    raise CanceledError()
                if deadline is not None and time.monotonic() > deadline:
                    proc.kill()
                    proc.communicate()
                    raise ToolchainMalformedOutputError(argv, f"timed out after {timeout}s")

        return RunResult(returncode=proc.returncode, stdout=stdout, stderr=stderr)
