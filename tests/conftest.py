import os
import signal
import subprocess

import pytest

from mare.config import Config
from mare.runner import ContainerInvocation, ContainerProcess, ContainerRunner


class ShellRunner(ContainerRunner):
    """Stands in for docker: rewrites the container paths of the command into the bound host paths, and runs the
    command with the local `sh`. The image is ignored."""

    def __init__(self):
        self.invocations: list[ContainerInvocation] = []

    def start(self, invocation: ContainerInvocation) -> ContainerProcess:
        self.invocations.append(invocation)
        command = invocation.command
        # longest first, so that /input does not clobber /input1
        for mount in sorted(invocation.mounts, key=lambda m: len(m.container_path), reverse=True):
            command = command.replace(mount.container_path, str(mount.host_path))
        popen = subprocess.Popen(
            ["sh", "-c", command], stdout=subprocess.PIPE, stderr=subprocess.PIPE, start_new_session=True
        )

        def kill_group() -> None:
            try:
                os.killpg(popen.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass

        return ContainerProcess(popen, f"shell {command!r}", on_kill=kill_group)


@pytest.fixture
def runner() -> ShellRunner:
    return ShellRunner()


@pytest.fixture
def config(tmp_path) -> Config:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return Config(scratch_dir=scratch, fifo_timeout_s=10)
