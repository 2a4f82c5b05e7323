"""
Tree reduce of a partitioned collection through a container command.

Every level first reduces each partition on its own, then shrinks the partition count by a scale factor derived
from the remaining depth, so the count goes down geometrically instead of funnelling everything into one partition
right away. The last level collects into a single partition and runs the command once more. The command must be
associative and commutative -- then the result does not depend on the depth.
"""

import logging
import math
from typing import Callable, Iterable, TypeVar

from mare.errors import PreconditionError
from mare.pa.core import ParallelCollection

logger = logging.getLogger(__name__)

T = TypeVar("T")


def scale_factor(num_partitions: int, depth: int) -> int:
    """scale_factor(100, 3) -> 5, i.e. 100 partitions are merged into 20 at the next level."""
    return max(math.ceil(num_partitions ** (1.0 / depth)), 2)


def tree_reduce(
    collection: ParallelCollection[T],
    stage: Callable[[Iterable[T]], Iterable[T]],
    depth: int = 2,
) -> ParallelCollection[T]:
    if depth < 2:
        raise PreconditionError(f"depth must be greater than or equal to 2 but got {depth}")

    while True:
        num_partitions = collection.num_partitions
        reduced = collection.map_partitions(stage)
        scale = scale_factor(num_partitions, depth)
        shrunk = num_partitions // scale
        # never shrink into zero partitions
        if depth > 2 and num_partitions > shrunk >= 1:
            logger.debug(f"depth {depth}: {num_partitions} partitions reduced, repartitioning into {shrunk}")
            collection = reduced.repartition(shrunk)
            depth -= 1
        elif reduced.num_partitions > 1:
            logger.debug(f"depth {depth}: {num_partitions} partitions reduced, final pass over one partition")
            return reduced.repartition(1).map_partitions(stage)
        else:
            return reduced
