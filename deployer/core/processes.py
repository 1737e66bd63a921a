"""Registry of long-lived processes launched by deployments.

Go and Python deployments keep running after the deploy request returns.
Every such process is recorded here so it can later be listed or stopped;
nothing in this module restarts or supervises them.
"""

import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Sequence

from deployer.utils.logging import get_logger

logger = get_logger(__name__)


def derive_port(base_port: int, now: float | None = None) -> int:
    """Pick a port as ``base_port + (unix_now mod 1000)``.

    Two deployments in the same second-mod-1000 bucket get the same port.
    """
    timestamp = int(time.time() if now is None else now)
    return base_port + timestamp % 1000


@dataclass
class LaunchedProcess:
    """A detached process started for a deployment."""

    deployment_id: str
    command: list[str]
    cwd: Path
    port: int
    process: subprocess.Popen
    started_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.poll() is None


class ProcessRegistry:
    """Owns the handles of every process launched by a deployment."""

    def __init__(self) -> None:
        self._processes: dict[str, LaunchedProcess] = {}
        self._lock = threading.Lock()

    def launch(
        self,
        deployment_id: str,
        command: Sequence[str],
        cwd: Path,
        port: int,
        log_file: Path | None = None,
    ) -> LaunchedProcess:
        """Start ``command`` detached with ``PORT`` set and record its handle.

        Output goes to ``log_file`` when given, otherwise it is discarded.
        """
        cmd = [str(part) for part in command]
        env = {**os.environ, "PORT": str(port)}

        if log_file is not None:
            stdout = open(log_file, "ab")
        else:
            stdout = subprocess.DEVNULL
        try:
            process = subprocess.Popen(
                cmd,
                cwd=str(cwd),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        finally:
            if log_file is not None:
                stdout.close()

        launched = LaunchedProcess(
            deployment_id=deployment_id,
            command=cmd,
            cwd=Path(cwd),
            port=port,
            process=process,
        )
        with self._lock:
            self._processes[deployment_id] = launched

        logger.info(
            "process.launched",
            deployment_id=deployment_id,
            pid=process.pid,
            port=port,
        )
        return launched

    def get(self, deployment_id: str) -> LaunchedProcess | None:
        with self._lock:
            return self._processes.get(deployment_id)

    def list_processes(self) -> list[LaunchedProcess]:
        """All recorded processes, oldest first."""
        with self._lock:
            return sorted(self._processes.values(), key=lambda p: p.started_at)

    def terminate(self, deployment_id: str, timeout: float = 5.0) -> bool:
        """Stop a recorded process and forget it.

        Returns:
            False if no process is recorded for ``deployment_id``
        """
        with self._lock:
            launched = self._processes.pop(deployment_id, None)
        if launched is None:
            return False

        if launched.running:
            launched.process.terminate()
            try:
                launched.process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                launched.process.kill()
                launched.process.wait()

        logger.info(
            "process.terminated",
            deployment_id=deployment_id,
            pid=launched.pid,
            returncode=launched.process.returncode,
        )
        return True

    def terminate_all(self) -> int:
        """Stop every recorded process. Returns how many were stopped."""
        ids = [p.deployment_id for p in self.list_processes()]
        return sum(1 for deployment_id in ids if self.terminate(deployment_id))
