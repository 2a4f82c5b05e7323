"""
An in-process ParallelCollection. Partitions are plain lists held by the driver, and partition tasks run on a thread
pool of `parallelism` workers. Threads are enough since the work of a partition is waiting on a container process.

Features:
 - `parallelism=1` runs partitions sequentially in the calling thread (the `--local` mode),
 - the first failing partition fails the whole operation, with its original exception; tasks not yet started
   are cancelled,
 - `parallelize` slices the input evenly and `repartition` deals records round-robin, so partition sizes never
   differ by more than one.

To use, instantiate via `LocalCollection.parallelize(records, num_partitions, Config(parallelism=...))`.
"""

import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from functools import reduce as fold
from typing import Callable, Iterable, Iterator, Optional, Sequence, TypeVar

from typing_extensions import Self

from mare.it import flatmap, round_robin, split_even
from mare.pa.core import ParallelCollection

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


@dataclass
class Config:
    parallelism: int = 1


class LocalCollection(ParallelCollection[T]):
    def __init__(self, partitions: Iterable[Iterable[T]], config: Optional[Config] = None):
        self.partitions: list[list[T]] = [list(p) for p in partitions]
        self.config = config or Config()

    @classmethod
    def parallelize(cls, records: Sequence[T], num_partitions: int, config: Optional[Config] = None) -> Self:
        return cls(split_even(records, num_partitions), config)

    @property
    def num_partitions(self) -> int:
        return len(self.partitions)

    @property
    def parallelism(self) -> int:
        return max(self.config.parallelism, 1)

    def _run(self, f: Callable[[list[T]], R]) -> list[R]:
        if self.config.parallelism <= 1 or self.num_partitions <= 1:
            return [f(p) for p in self.partitions]
        with ThreadPoolExecutor(max_workers=self.config.parallelism, thread_name_prefix="mare-partition") as pool:
            futures: list[Future] = [pool.submit(f, p) for p in self.partitions]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                if future.exception() is not None:
                    logger.debug(f"a partition failed, cancelling {len(pending)} pending ones")
                    for p in pending:
                        p.cancel()
                    raise future.exception()  # type: ignore
            return [future.result() for future in futures]

    def map_partitions(self, f: Callable[[Iterable[T]], Iterable[U]]) -> "LocalCollection[U]":
        return LocalCollection(self._run(lambda p: list(f(p))), self.config)

    def reduce(self, f: Callable[[T, T], T]) -> T:
        partials = list(flatmap(lambda r: r, self._run(lambda p: [fold(f, p)] if p else [])))
        if not partials:
            raise ValueError("reduce of an empty collection")
        return fold(f, partials)

    def repartition(self, num_partitions: int) -> Self:
        return self.__class__(round_robin(self.collect(), num_partitions), self.config)

    def collect(self) -> list[T]:
        return list(flatmap(lambda p: p, self.partitions))

    def iter_partitions(self) -> Iterator[list[T]]:
        return iter(self.partitions)

    def cache(self) -> Self:
        # partitions are already materialized
        return self
