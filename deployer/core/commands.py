"""Bounded subprocess execution for clone and build steps."""

import asyncio
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from deployer.utils.logging import get_logger

logger = get_logger(__name__)

# Keep only the tail of long build logs
MAX_OUTPUT_CHARS = 20_000


@dataclass
class CommandResult:
    """Result of a subprocess command."""

    command: list[str]
    exit_code: int
    output: str = ""
    duration_ms: int = 0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


CommandRunner = Callable[..., Awaitable[CommandResult]]


async def run_command(
    command: Sequence[str],
    cwd: Path | None = None,
    timeout: float = 600.0,
    env: dict[str, str] | None = None,
    redact: Sequence[str] = (),
) -> CommandResult:
    """Run ``command`` to completion, killing it after ``timeout`` seconds.

    stdout and stderr are merged. A nonzero exit is reported in the result,
    not raised; only failure to start the executable raises ``OSError``.
    Strings in ``redact`` are masked wherever the command is logged.
    """
    cmd = [str(part) for part in command]
    masked = [_mask(part, redact) for part in cmd]
    display = " ".join(masked)
    start = time.perf_counter()

    logger.info("command.started", cmd=display, cwd=str(cwd) if cwd else None)

    process = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        env={**os.environ, **env} if env else None,
    )

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.error("command.timed_out", cmd=display, timeout=timeout)
        return CommandResult(
            command=masked,
            exit_code=-1,
            duration_ms=duration_ms,
            timed_out=True,
        )

    output = _mask(stdout.decode(errors="replace") if stdout else "", redact)
    duration_ms = int((time.perf_counter() - start) * 1000)

    logger.info(
        "command.completed",
        cmd=display,
        returncode=process.returncode,
        duration_ms=duration_ms,
    )

    return CommandResult(
        command=masked,
        exit_code=process.returncode if process.returncode is not None else -1,
        output=output[-MAX_OUTPUT_CHARS:],
        duration_ms=duration_ms,
    )


def _mask(text: str, secrets: Sequence[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text
