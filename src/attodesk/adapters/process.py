"""Synchronous process runner.

Non-zero exits are returned, never raised: the caller decides whether a
failure is fatal.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ProcessResult:
    output: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner(Protocol):
    def run(
        self,
        command: str | Sequence[str],
        cwd: str | Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult: ...


class SubprocessRunner:
    """Runs commands with stdout and stderr merged into one output string."""

    def run(
        self,
        command: str | Sequence[str],
        cwd: str | Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        shell = isinstance(command, str)
        try:
            proc = subprocess.run(
                command if shell else list(command),
                cwd=cwd,
                shell=shell,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            output = exc.output if isinstance(exc.output, str) else ""
            logger.warning("Command timed out after %ss: %s", timeout, command)
            return ProcessResult(output=output + f"\ntimed out after {timeout}s", exit_code=124)
        except OSError as exc:
            return ProcessResult(output=str(exc), exit_code=127)
        return ProcessResult(output=proc.stdout or "", exit_code=proc.returncode)
