"""Step: one external process invocation with a terminal status."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import sys
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from .artifact import ResultArtifact

log = logging.getLogger(__name__)

# on_launch(pid) -> None, called once the OS confirms the process exists
LaunchCallback = Callable[[int], None]

# Seconds a cancelled step gets to exit after SIGTERM before it is killed
TERMINATE_TIMEOUT = 5.0


@dataclass(frozen=True)
class Step:
    """Command line plus the files the process reads from and writes to."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = field(default=None, compare=False)
    artifact: ResultArtifact | None = None
    stdout_path: Path | None = None
    log_path: Path | None = None

    def __post_init__(self) -> None:
        if not self.argv:
            raise ValueError("Step needs a command")
        object.__setattr__(self, "argv", tuple(str(a) for a in self.argv))

    @classmethod
    def success(cls) -> Step:
        """A step that does nothing and exits 0."""
        return cls(argv=(sys.executable, "-c", ""))

    @property
    def name(self) -> str:
        return Path(self.argv[0]).name

    @property
    def command_str(self) -> str:
        return " ".join(shlex.quote(p) for p in self.argv)

    async def run(self, on_launch: LaunchCallback | None = None) -> int:
        """Spawn the process, report its pid and wait for it to exit.

        Raises ``OSError`` when the process cannot be created. If the waiting
        task is cancelled the process is terminated and reaped first.
        """
        env = {**os.environ, **self.env} if self.env else None
        with ExitStack() as stack:
            stdout = stderr = None
            if self.log_path is not None:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                log_file = stack.enter_context(self.log_path.open("ab"))
                stdout = stderr = log_file
            if self.stdout_path is not None:
                self.stdout_path.parent.mkdir(parents=True, exist_ok=True)
                stdout = stack.enter_context(self.stdout_path.open("wb"))

            process = await asyncio.create_subprocess_exec(
                *self.argv,
                cwd=str(self.cwd) if self.cwd else None,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
            )
            log.debug("Launched %s (pid %d)", self.command_str, process.pid)
            if on_launch is not None:
                on_launch(process.pid)
            try:
                return await process.wait()
            except asyncio.CancelledError:
                await _terminate(process)
                raise


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Stop and reap a child whose waiter was cancelled."""
    if process.returncode is not None:
        return
    log.info("Terminating pid %d", process.pid)
    try:
        process.terminate()
        await asyncio.wait_for(process.wait(), TERMINATE_TIMEOUT)
    except ProcessLookupError:
        return
    except asyncio.TimeoutError:
        log.warning("pid %d ignored SIGTERM, killing it", process.pid)
        process.kill()
        await process.wait()
