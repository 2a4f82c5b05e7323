import stat
from pathlib import Path

import pytest

from mare.errors import ContainerExecutionError
from mare.runner import BindMount, ContainerInvocation, DockerRunner, ExitResult

# logs every call, pretends only "present:latest" is available locally, and fails runs of the "broken" image
_FAKE_DOCKER = """#!/bin/sh
echo "$@" >> "{log}"
case "$1" in
  image) [ "$3" = "present:latest" ] ;;
  pull) [ "$2" != "missing:latest" ] || {{ echo "pull access denied" >&2; exit 1; }} ;;
  run) case "$*" in *broken*) echo "no such command" >&2; exit 127 ;; *) echo ran ;; esac ;;
  rm) exit 0 ;;
esac
"""


@pytest.fixture
def fake_docker(tmp_path) -> tuple[DockerRunner, Path]:
    log = tmp_path / "calls.log"
    log.touch()
    executable = tmp_path / "docker"
    executable.write_text(_FAKE_DOCKER.format(log=log))
    executable.chmod(executable.stat().st_mode | stat.S_IEXEC)
    return DockerRunner(executable=str(executable)), log


def calls(log: Path) -> list[str]:
    return log.read_text().splitlines()


def test_run_args(tmp_path) -> None:
    invocation = ContainerInvocation(
        "ubuntu:xenial",
        "rev /in > /out",
        [BindMount(tmp_path / "a", "/in"), BindMount(tmp_path / "b", "/out")],
    )
    args = DockerRunner().run_args(invocation, "mare_x")
    assert args == [
        "docker", "run", "--rm", "--name", "mare_x",
        "-v", f"{tmp_path / 'a'}:/in",
        "-v", f"{tmp_path / 'b'}:/out",
        "ubuntu:xenial", "sh", "-c", "rev /in > /out",
    ]  # fmt: skip


def test_pull_policy(fake_docker) -> None:
    runner, log = fake_docker
    runner.pull("present:latest")
    assert calls(log) == ["image inspect present:latest"]
    runner.pull("absent:latest")
    assert calls(log)[1:] == ["image inspect absent:latest", "pull absent:latest"]
    runner.pull("present:latest", force=True)
    assert calls(log)[-1] == "pull present:latest"
    with pytest.raises(ContainerExecutionError) as e:
        runner.pull("missing:latest")
    assert "pull access denied" in e.value.output


def test_run_success_and_failure(fake_docker, tmp_path) -> None:
    runner, log = fake_docker
    result = runner.run(ContainerInvocation("present:latest", "true", [BindMount(tmp_path, "/data")]))
    assert result == ExitResult(0, "ran\n", "")
    assert calls(log)[-1].startswith("run --rm --name mare_")
    assert calls(log)[-1].endswith(f"-v {tmp_path}:/data present:latest sh -c true")

    with pytest.raises(ContainerExecutionError) as e:
        runner.run(ContainerInvocation("present:latest", "broken"))
    assert e.value.exit_code == 127
    assert e.value.output == "no such command"
    assert e.value.command == "broken"


def test_kill_removes_container(fake_docker) -> None:
    runner, log = fake_docker
    process = runner.start(ContainerInvocation("present:latest", "true"))
    process.wait()
    process.kill()
    name = calls(log)[1].split()[3]
    assert calls(log)[-1] == f"rm -f {name}"


def test_container_execution_error_pickles() -> None:
    import pickle

    e = pickle.loads(pickle.dumps(ContainerExecutionError(3, "oops", "false")))
    assert (e.exit_code, e.output, e.command) == (3, "oops", "false")
