"""
Runs a single container command as a blocking, fallible external step.

A ContainerRunner has one primitive, `start`, which launches the invocation and returns a ContainerProcess handle.
`run` is start-then-wait, and raises ContainerExecutionError on a non-zero exit. Nothing is retried.

DockerRunner drives the `docker` executable:
 - `docker pull <image>` if force_pull is set, otherwise only when `docker image inspect <image>` fails,
 - `docker run --rm --name <random> -v host:container ... <image> sh -c <command>`.

Timeouts are not handled here; the caller that needs one keeps the handle and kills it.
"""

import logging
import subprocess
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

from mare.errors import ContainerExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BindMount:
    host_path: Path
    container_path: str

    def volume(self) -> str:
        return f"{Path(self.host_path).absolute()}:{self.container_path}"


@dataclass
class ContainerInvocation:
    image: str
    command: str
    mounts: Sequence[BindMount] = field(default_factory=list)
    force_pull: bool = False


@dataclass
class ExitResult:
    exit_code: int
    stdout: str
    stderr: str

    def check(self, command: str = "") -> "ExitResult":
        if self.exit_code != 0:
            raise ContainerExecutionError(self.exit_code, (self.stdout + self.stderr).strip(), command)
        return self


class ContainerProcess:
    """Handle of a started container. `on_kill` is invoked after the local process was killed, to stop whatever
    the process was only a client of."""

    def __init__(self, popen: subprocess.Popen, description: str, on_kill: Optional[Callable[[], None]] = None):
        self.popen = popen
        self.description = description
        self.on_kill = on_kill

    def wait(self, timeout: Optional[float] = None) -> ExitResult:
        """Raises subprocess.TimeoutExpired if still running after `timeout`; waiting again later is fine."""
        stdout, stderr = self.popen.communicate(timeout=timeout)
        result = ExitResult(self.popen.returncode, _decode(stdout), _decode(stderr))
        logger.debug(f"{self.description} exited with {result.exit_code}")
        if result.stdout:
            logger.debug(f"{self.description} stdout: {result.stdout}")
        if result.stderr:
            logger.debug(f"{self.description} stderr: {result.stderr}")
        return result

    def kill(self) -> None:
        logger.debug(f"killing {self.description}")
        self.popen.kill()
        if self.on_kill is not None:
            self.on_kill()


def _decode(output: Optional[bytes]) -> str:
    return output.decode("utf-8", errors="replace") if output else ""


@runtime_checkable
class ContainerRunner(Protocol):
    def start(self, invocation: ContainerInvocation) -> ContainerProcess:
        raise NotImplementedError

    def run(self, invocation: ContainerInvocation) -> ExitResult:
        return self.start(invocation).wait().check(invocation.command)


@dataclass
class DockerRunner(ContainerRunner):
    executable: str = "docker"

    def _call(self, *args: str) -> ExitResult:
        completed = subprocess.run([self.executable, *args], capture_output=True)
        return ExitResult(completed.returncode, _decode(completed.stdout), _decode(completed.stderr))

    def pull(self, image: str, force: bool = False) -> None:
        if not force and self._call("image", "inspect", image).exit_code == 0:
            logger.debug(f"image {image} present locally, not pulling")
            return
        logger.info(f"pulling image {image}")
        self._call("pull", image).check(f"pull {image}")

    def run_args(self, invocation: ContainerInvocation, name: str) -> list[str]:
        args = [self.executable, "run", "--rm", "--name", name]
        for mount in invocation.mounts:
            args += ["-v", mount.volume()]
        return args + [invocation.image, "sh", "-c", invocation.command]

    def start(self, invocation: ContainerInvocation) -> ContainerProcess:
        self.pull(invocation.image, invocation.force_pull)
        name = f"mare_{uuid.uuid4().hex}"
        args = self.run_args(invocation, name)
        logger.debug(f"starting container {name}: {args}")
        popen = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

        def remove() -> None:
            # killing the client does not stop the container itself
            removed = self._call("rm", "-f", name)
            if removed.exit_code != 0:
                logger.warning(f"could not remove container {name}: {removed.stderr.strip()}")

        return ContainerProcess(popen, f"container {name}", on_kill=remove)
