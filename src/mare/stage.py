"""
The per-partition pipeline: partition -> input mount -> container -> output mount -> new partition.

Within one partition everything is sequential and blocking. Both temp paths are deleted when the partition is done,
on failure just as on success; the error itself is propagated unchanged.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, Iterable, TypeVar

from mare.config import Config
from mare.mount import MountPoint
from mare.pa.core import ParallelCollection
from mare.runner import BindMount, ContainerInvocation, ContainerRunner, DockerRunner
from mare.tmp import PathLike, scratch_paths, unique_path

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class ContainerStage(Generic[T, U]):
    """Callable applied to each partition. Must stay picklable if the partitions are processed out of process."""

    input_mount: MountPoint[T]
    output_mount: MountPoint[U]
    image: str
    command: str
    force_pull: bool = False
    runner: ContainerRunner = field(default_factory=DockerRunner)
    config: Config = field(default_factory=Config)

    def invocation(self, host_in: Path, host_out: Path) -> ContainerInvocation:
        return ContainerInvocation(
            image=self.image,
            command=self.command,
            mounts=[
                BindMount(host_in, self.input_mount.path),
                BindMount(host_out, self.output_mount.path),
            ],
            force_pull=self.force_pull,
        )

    def __call__(self, partition: Iterable[T]) -> list[U]:
        with scratch_paths(self.config.scratch_dir, 2) as (host_in, host_out):
            self.input_mount.write(partition, host_in)
            self.output_mount.create_empty(host_out)
            self.runner.run(self.invocation(host_in, host_out))
            output = self.output_mount.read(host_out)
        logger.debug(f"partition processed by {self.command!r} into {len(output)} records")
        return output


def collect_reduce(
    collection: ParallelCollection[T],
    stage: ContainerStage[T, T],
    local_out_path: PathLike,
) -> None:
    """Streams all partitions, one at a time, into a single file next to `local_out_path`, and runs the container
    on it once, with its output mount bound directly to `local_out_path`."""
    out_path = Path(local_out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with scratch_paths(out_path.parent, 1, prefix=".temporary_") as (tmp_dir,):
        tmp_dir.mkdir()
        tmp_in = unique_path(tmp_dir)
        stage.input_mount.create_empty(tmp_in)
        stage.output_mount.create_empty(out_path)
        for i, partition in enumerate(collection.iter_partitions()):
            logger.debug(f"appending partition {i} to {tmp_in}")
            stage.input_mount.append(partition, tmp_in)
        stage.runner.run(stage.invocation(tmp_in, out_path))
