import logging
import threading

import pytest

from mare.pa import LocalCollection, LocalConfig, ParallelCollection

_error = ValueError("thou shalt not pass more than 9")


def checked_double(partition):
    for a in partition:
        if a > 9:
            raise _error
        yield a * 2


def test_local_collection_happy() -> None:
    logging.basicConfig(level="DEBUG", force=True)

    for parallelism in [1, 4]:
        c = LocalCollection.parallelize([1, 2, 3, 4, 5], 3, LocalConfig(parallelism=parallelism))
        assert isinstance(c, ParallelCollection)
        assert c.num_partitions == 3
        assert c.parallelism == parallelism
        assert c.partitions == [[1], [2, 3], [4, 5]]
        doubled = c.map_partitions(checked_double)
        assert doubled.partitions == [[2], [4, 6], [8, 10]]
        assert doubled.reduce(lambda a, b: a + b) == 30
        assert c.collect() == [1, 2, 3, 4, 5]
        assert c.cache() is c


def test_local_collection_failure() -> None:
    for parallelism in [1, 4]:
        c = LocalCollection.parallelize([1, 2, 10], 3, LocalConfig(parallelism=parallelism))
        with pytest.raises(ValueError) as e:
            c.map_partitions(lambda p: list(checked_double(p)))
        assert e.value is _error


def test_local_collection_runs_partitions_concurrently() -> None:
    barrier = threading.Barrier(3, timeout=5)

    def meet(partition):
        barrier.wait()
        return partition

    c = LocalCollection.parallelize(list(range(6)), 3, LocalConfig(parallelism=3))
    assert c.map_partitions(meet).collect() == list(range(6))


def test_repartition() -> None:
    c = LocalCollection([[1, 2, 3], [], [4, 5]])
    assert c.repartition(2).partitions == [[1, 3, 5], [2, 4]]
    assert c.repartition(1).partitions == [[1, 2, 3, 4, 5]]
    assert c.repartition(6).num_partitions == 6


def test_reduce_skips_empty_partitions() -> None:
    c = LocalCollection([[], ["a", "b"], [], ["c"]])
    assert c.reduce(lambda a, b: a + b) == "abc"
    with pytest.raises(ValueError):
        LocalCollection([[], []]).reduce(lambda a, b: a + b)
