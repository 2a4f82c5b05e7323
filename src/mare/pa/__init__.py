"""
This package describes the data-parallel runtime mare runs on top of. mare never schedules anything by itself: it
hands per-partition functions and a binary combiner to a ParallelCollection, and the runtime decides how many
partitions run at once, where, and what happens when a worker dies.

There is one implementation here:
 - LocalCollection -- partitions held in the driver process, processed by a thread pool. Used by the `--local`
   mode of the command line tools and by the tests.

Any other runtime can be plugged in by satisfying the ParallelCollection protocol; the per-partition callables
mare passes to `map_partitions` are dataclasses and stay picklable as long as their runner and mounts are.
"""

from mare.pa.core import ParallelCollection  # noqa: F401
from mare.pa.local import Config as LocalConfig  # noqa: F401
from mare.pa.local import LocalCollection  # noqa: F401
