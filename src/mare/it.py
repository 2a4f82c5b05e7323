"""
Module contents:
    - flatmap -- standard functional construct, here mostly used to flatten partitions into a single sequence,
    - split_even -- cut a sequence into `n` contiguous chunks whose sizes differ by at most one,
    - round_robin -- deal the elements of an iterable into `n` lists, one element at a time.

"""
from typing import Callable, Iterable, Sequence, TypeVar

TA = TypeVar("TA")
TB = TypeVar("TB")


def flatmap(f: Callable[[TA], Iterable[TB]], xs: Iterable[TA]) -> Iterable[TB]:
    """Often one wants to map-and-filter a sequence, which perfectly suits the flatMap."""
    return (y for x in xs for y in f(x))


def split_even(s: Sequence[TA], n: int) -> list[list[TA]]:
    """split_even([1,2,3,4,5], 2) -> [[1, 2], [3, 4, 5]]. Always returns exactly `n` chunks, some possibly empty."""
    if n < 1:
        raise ValueError(f"need at least one chunk, got {n}")
    length = len(s)
    return [list(s[i * length // n : (i + 1) * length // n]) for i in range(n)]


def round_robin(xs: Iterable[TA], n: int) -> list[list[TA]]:
    """round_robin([1,2,3,4,5], 2) -> [[1, 3, 5], [2, 4]]."""
    if n < 1:
        raise ValueError(f"need at least one bucket, got {n}")
    buckets: list[list[TA]] = [[] for _ in range(n)]
    for i, x in enumerate(xs):
        buckets[i % n].append(x)
    return buckets
