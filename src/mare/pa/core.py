from typing import Callable, Iterable, Iterator, Protocol, TypeVar, runtime_checkable

from typing_extensions import Self

T = TypeVar("T")
U = TypeVar("U")


@runtime_checkable
class ParallelCollection(Protocol[T]):
    """The capability of a data-parallel runtime that mare relies on. Scheduling, placement and fault tolerance of
    the partitions are entirely the runtime's business. Collections are immutable: every operation returns a new
    one."""

    @property
    def num_partitions(self) -> int:
        raise NotImplementedError

    @property
    def parallelism(self) -> int:
        """How many partitions the runtime may process at the same time, on this driver's behalf."""
        raise NotImplementedError

    def map_partitions(self, f: Callable[[Iterable[T]], Iterable[U]]) -> "ParallelCollection[U]":
        raise NotImplementedError

    def reduce(self, f: Callable[[T, T], T]) -> T:
        raise NotImplementedError

    def repartition(self, num_partitions: int) -> Self:
        raise NotImplementedError

    def collect(self) -> list[T]:
        raise NotImplementedError

    def iter_partitions(self) -> Iterator[list[T]]:
        """Materializes one partition at a time on the driver."""
        raise NotImplementedError

    def cache(self) -> Self:
        raise NotImplementedError
