import pytest

from mare.errors import PreconditionError
from mare.mount import TextFile
from mare.pa import LocalCollection, LocalConfig
from mare.stage import ContainerStage
from mare.tree import scale_factor, tree_reduce

_SUM = "awk '{s+=$1} END {print s+0}' /input > /output"


def sum_stage(runner, config) -> ContainerStage:
    return ContainerStage(TextFile("/input"), TextFile("/output"), "alpine", _SUM, False, runner, config)


def numbers(num_partitions: int) -> LocalCollection:
    return LocalCollection.parallelize([str(i) for i in range(1, 65)], num_partitions, LocalConfig(parallelism=4))


def test_scale_factor() -> None:
    assert scale_factor(100, 3) == 5
    assert 100 // scale_factor(100, 3) == 20
    assert scale_factor(16, 2) == 4
    assert scale_factor(1, 5) == 2
    assert scale_factor(3, 4) == 2


def test_tree_reduce_independent_of_depth(runner, config) -> None:
    results = {}
    invocations = {}
    for depth in [2, 4]:
        runner.invocations.clear()
        reduced = tree_reduce(numbers(16), sum_stage(runner, config), depth)
        assert reduced.num_partitions == 1
        results[depth] = reduced.collect()
        invocations[depth] = len(runner.invocations)
    assert results[2] == results[4] == [str(sum(range(1, 65)))]
    assert invocations[2] == 16 + 1
    assert invocations[4] > invocations[2]
    assert list(config.scratch_dir.iterdir()) == []


def test_tree_reduce_single_partition(runner, config) -> None:
    reduced = tree_reduce(numbers(1), sum_stage(runner, config), 3)
    assert reduced.collect() == ["2080"]
    assert len(runner.invocations) == 1


def test_tree_reduce_shrinks_geometrically(runner, config) -> None:
    seen = []

    def stage(partition):
        seen.append(len(partition))
        return [str(sum(int(r) for r in partition))]

    collection = LocalCollection([[str(i)] for i in range(20)])
    reduced = tree_reduce(collection, stage, 3)
    assert reduced.collect() == [str(sum(range(20)))]
    # 20 partitions, then 20 // 3 = 6, then the single final partition
    assert len(seen) == 20 + 6 + 1
    assert seen[-1] == 6


def test_tree_reduce_depth_precondition(runner, config) -> None:
    with pytest.raises(PreconditionError):
        tree_reduce(numbers(4), sum_stage(runner, config), 1)
    assert runner.invocations == []
