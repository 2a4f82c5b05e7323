"""
mare -- map and reduce a partitioned dataset with commands running in containers instead of native code.

The moving parts:
 - mount points (`mare.mount`) turn a partition into files a container can read, and the container's output back
   into a partition,
 - a container runner (`mare.runner`) executes one command as a blocking, fallible step,
 - `MaRe.map` runs the container once per partition, `MaRe.reduce` runs it along a tree of bounded depth until a
   single partition remains, `MaRe.collect_reduce` funnels everything through a single local run,
 - `MaRe.pairwise_reduce` (and `mare.fifo`) use the container as the binary combiner of the runtime's own reduce,
   exchanging two records at a time through named pipes.

The partitions themselves are owned by a data-parallel runtime behind the `mare.pa.ParallelCollection` protocol.
Commands used for reducing must be associative and commutative.
"""

from mare.config import Config  # noqa: F401
from mare.errors import (  # noqa: F401
    ContainerExecutionError,
    MalformedDataError,
    MaReError,
    PreconditionError,
    ReduceTimeoutError,
)
from mare.mare import MaRe  # noqa: F401
from mare.mount import BinaryFiles, MountPoint, TextFile, WholeTextFiles  # noqa: F401
from mare.runner import BindMount, ContainerInvocation, ContainerRunner, DockerRunner, ExitResult  # noqa: F401
