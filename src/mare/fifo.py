"""
Pairwise reduce through named pipes: the binary combiner of a ParallelCollection.reduce is a container that reads two
records from /input1 and /input2 and writes the combined record to /output.

Opening a fifo blocks until the other end is opened as well, and the other ends are opened by the container at
times we do not control. So the two writers and the reader run on a thread pool while the calling thread waits for
the container to exit. The FifoReducer owns the pool for the lifetime of the whole reduce -- not per pair -- and
admits at most `fifo_workers // 3` pairs at a time, so every admitted pair has all its pipe threads running and the
pool can never fill up with writers waiting for containers that wait for a queued reader. Pairs beyond that wait for
a slot before their container starts.

Per pair, the container has to exit within `fifo_timeout_s`. Otherwise it is killed and ReduceTimeoutError is raised.
Once the container is gone, any thread still stuck in a fifo open is released by opening the opposite end of that
fifo without blocking: a reader then sees end of file, and a writer fails with a broken pipe. A broken pipe on an
input is not an error -- commands may legitimately stop reading early -- but it is logged as a warning since it may
also mean the command ignored its input. The three fifos are deleted after every pair, whatever the outcome.
"""

import logging
import os
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from pathlib import Path
from typing import Optional

from typing_extensions import Self

from mare.config import Config
from mare.errors import MalformedDataError, PreconditionError, ReduceTimeoutError
from mare.pa.core import ParallelCollection
from mare.runner import BindMount, ContainerInvocation, ContainerProcess, ContainerRunner, DockerRunner
from mare.tmp import scratch_paths

logger = logging.getLogger(__name__)

THREADS_PER_PAIR = 3  # two writers, one reader
_RELEASE_ATTEMPTS = 50
_RELEASE_INTERVAL_S = 0.05
_KILL_GRACE_S = 10


def _write_fifo(path: Path, data: bytes) -> None:
    # no O_CREAT: a fifo deleted in the meantime must not turn into a regular file
    fd = os.open(path, os.O_WRONLY)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except BrokenPipeError:
        logger.warning(f"{path} was closed by its reader before all {len(data)} bytes were written")


def _read_fifo(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _release(path: Path, future: Future, flags: int) -> None:
    """Unblocks the thread of `future` if it is stuck opening `path`, by briefly opening the other end."""
    for _ in range(_RELEASE_ATTEMPTS):
        if future.done():
            return
        try:
            fd = os.open(path, flags | os.O_NONBLOCK)
        except OSError as e:
            # ENXIO -- the write end can't be opened while the reader has not reached its open yet
            logger.debug(f"could not open {path} to release it: {e}")
        else:
            os.close(fd)
        wait([future], timeout=_RELEASE_INTERVAL_S)
    if not future.done():
        logger.warning(f"a thread blocked on {path} could not be released")


class FifoReducer:
    """Use as a context manager around the whole reduce; the instance itself is the binary combiner:

    ```
    with FifoReducer(image, command, runner, config) as combine:
        result = collection.reduce(combine)
    ```
    """

    input1 = "/input1"
    input2 = "/input2"
    output = "/output"

    def __init__(
        self,
        image: str,
        command: str,
        runner: Optional[ContainerRunner] = None,
        config: Optional[Config] = None,
        force_pull: bool = False,
    ):
        self.image = image
        self.command = command
        self.runner = runner or DockerRunner()
        self.config = config or Config()
        self.force_pull = force_pull
        if self.config.fifo_workers < THREADS_PER_PAIR:
            raise PreconditionError(
                f"a pairwise reduce needs at least {THREADS_PER_PAIR} fifo workers, got {self.config.fifo_workers}"
            )
        self._pool: Optional[ThreadPoolExecutor] = None
        self._slots = threading.BoundedSemaphore(self.config.fifo_workers // THREADS_PER_PAIR)

    def __enter__(self) -> Self:
        self._pool = ThreadPoolExecutor(max_workers=self.config.fifo_workers, thread_name_prefix="mare-fifo")
        return self

    def __exit__(self, *exc_info) -> None:
        if self._pool is not None:
            logger.debug("releasing the fifo worker pool")
            self._pool.shutdown(wait=False, cancel_futures=True)
            self._pool = None

    def invocation(self, input1: Path, input2: Path, output: Path) -> ContainerInvocation:
        return ContainerInvocation(
            image=self.image,
            command=self.command,
            mounts=[
                BindMount(input1, self.input1),
                BindMount(input2, self.input2),
                BindMount(output, self.output),
            ],
            force_pull=self.force_pull,
        )

    def __call__(self, left: str, right: str) -> str:
        if self._pool is None:
            raise RuntimeError("FifoReducer must be entered as a context manager before use")
        with self._slots:
            data = self._combine(self._pool, left, right)
        try:
            result = data.decode(self.config.encoding)
        except UnicodeDecodeError as e:
            raise MalformedDataError(f"output of {self.command!r} is not valid {self.config.encoding}") from e
        return result.strip() if self.config.trim_output else result

    def _combine(self, pool: ThreadPoolExecutor, left: str, right: str) -> bytes:
        encoding = self.config.encoding
        with scratch_paths(self.config.scratch_dir, 3, prefix="mare_fifo_") as (input1, input2, output):
            for path in (input1, input2, output):
                os.mkfifo(path)
            writers = [
                pool.submit(_write_fifo, input1, left.encode(encoding)),
                pool.submit(_write_fifo, input2, right.encode(encoding)),
            ]
            reader = pool.submit(_read_fifo, output)
            try:
                self._run_container(self.invocation(input1, input2, output))
                # the container is gone: nothing reads the inputs anymore, nothing else will write the output
                _release(output, reader, os.O_WRONLY)
                try:
                    return reader.result(timeout=_RELEASE_ATTEMPTS * _RELEASE_INTERVAL_S)
                except FutureTimeoutError:
                    raise ReduceTimeoutError(f"output of {self.command!r} could not be read") from None
            finally:
                for writer, path in zip(writers, (input1, input2)):
                    _release(path, writer, os.O_RDONLY)
                _release(output, reader, os.O_WRONLY)

    def _run_container(self, invocation: ContainerInvocation) -> None:
        process = self.runner.start(invocation)
        try:
            result = process.wait(timeout=self.config.fifo_timeout_s)
        except subprocess.TimeoutExpired:
            self._abort(process)
            raise ReduceTimeoutError(f"{self.command!r} did not exit within {self.config.fifo_timeout_s}s") from None
        result.check(self.command)

    def _abort(self, process: ContainerProcess) -> None:
        process.kill()
        try:
            process.wait(timeout=_KILL_GRACE_S)
        except subprocess.TimeoutExpired:
            logger.warning(f"{process.description} did not terminate after being killed")


def fifo_reduce(
    collection: ParallelCollection[str],
    image: str,
    command: str,
    runner: Optional[ContainerRunner] = None,
    config: Optional[Config] = None,
    force_pull: bool = False,
) -> str:
    """Sizes the fifo pool so that every partition the collection processes at once can have a pair in flight."""
    config = config or Config()
    workers = max(config.fifo_workers, THREADS_PER_PAIR * collection.parallelism)
    with FifoReducer(image, command, runner, replace(config, fifo_workers=workers), force_pull) as combine:
        return collection.reduce(combine)
