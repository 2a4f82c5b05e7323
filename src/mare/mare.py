from typing import Generic, Optional, TypeVar

from typing_extensions import Self

from mare.config import Config
from mare.fifo import fifo_reduce
from mare.mount import MountPoint
from mare.pa.core import ParallelCollection
from mare.runner import ContainerRunner, DockerRunner
from mare.stage import ContainerStage, collect_reduce
from mare.tmp import PathLike
from mare.tree import tree_reduce

T = TypeVar("T")
U = TypeVar("U")


class MaRe(Generic[T]):
    """Map and reduce a ParallelCollection with commands running in containers.

    ```
    counts = (
        MaRe(collection)
        .map(TextFile("/dna"), TextFile("/count"), "ubuntu:xenial", "grep -o '[gc]' /dna | wc -l > /count")
        .reduce(TextFile("/counts"), TextFile("/sum"), "ubuntu:xenial", "awk '{s+=$1} END {print s}' /counts > /sum")
        .collect()
    )
    ```

    The runner and config are passed down explicitly to every partition task."""

    def __init__(
        self,
        collection: ParallelCollection[T],
        runner: Optional[ContainerRunner] = None,
        config: Optional[Config] = None,
    ):
        self.collection = collection
        self.runner = runner or DockerRunner()
        self.config = config or Config.from_env()

    def _derive(self, collection: ParallelCollection[U]) -> "MaRe[U]":
        return MaRe(collection, self.runner, self.config)

    def _stage(
        self, input_mount: MountPoint[T], output_mount: MountPoint[U], image: str, command: str, force_pull: bool
    ) -> ContainerStage[T, U]:
        return ContainerStage(input_mount, output_mount, image, command, force_pull, self.runner, self.config)

    @property
    def num_partitions(self) -> int:
        return self.collection.num_partitions

    def cache(self) -> Self:
        return self.__class__(self.collection.cache(), self.runner, self.config)

    def repartition(self, num_partitions: int) -> Self:
        return self.__class__(self.collection.repartition(num_partitions), self.runner, self.config)

    def collect(self) -> list[T]:
        return self.collection.collect()

    def map(
        self,
        input_mount: MountPoint[T],
        output_mount: MountPoint[U],
        image: str,
        command: str,
        force_pull: bool = False,
    ) -> "MaRe[U]":
        """Maps each partition through `command`, which reads `input_mount.path` and writes `output_mount.path`."""
        stage = self._stage(input_mount, output_mount, image, command, force_pull)
        return self._derive(self.collection.map_partitions(stage))

    def reduce(
        self,
        input_mount: MountPoint[T],
        output_mount: MountPoint[T],
        image: str,
        command: str,
        depth: int = 2,
        force_pull: bool = False,
    ) -> Self:
        """Reduces to a single partition with a tree of `depth` levels (at least 2). The command must be associative
        and commutative."""
        stage = self._stage(input_mount, output_mount, image, command, force_pull)
        return self.__class__(tree_reduce(self.collection, stage, depth), self.runner, self.config)

    def collect_reduce(
        self,
        input_mount: MountPoint[T],
        output_mount: MountPoint[T],
        image: str,
        command: str,
        local_out_path: PathLike,
        force_pull: bool = False,
    ) -> None:
        """Collects everything to the local disk of the driver first, then reduces it with a single container run
        whose output lands at `local_out_path`."""
        stage = self._stage(input_mount, output_mount, image, command, force_pull)
        collect_reduce(self.collection, stage, local_out_path)

    def pairwise_reduce(self, image: str, command: str, force_pull: bool = False) -> str:
        """Reduces text records two at a time, see `mare.fifo`."""
        return fifo_reduce(self.collection, image, command, self.runner, self.config, force_pull)  # type: ignore
