import os
from dataclasses import dataclass, field
from pathlib import Path

from typing_extensions import Self

FIFO_READ_TIMEOUT = 1200  # seconds
FIFO_WORKERS = 10


def _default_scratch_dir() -> Path:
    return Path(os.environ.get("TMPDIR", "/tmp"))


@dataclass
class Config:
    """Passed explicitly to every stage, so nothing below reads the environment on its own.

    `scratch_dir` is where per-invocation temp files and fifos are created -- point it at fast ephemeral storage.
    `fifo_workers` bounds the thread pool of a pairwise reduce. Every pair in flight holds 3 of its threads (two
    writers, one reader), so at most `fifo_workers // 3` pairs run at once; `fifo_reduce` grows it to fit the
    parallelism of the collection."""

    scratch_dir: Path = field(default_factory=_default_scratch_dir)
    fifo_timeout_s: float = FIFO_READ_TIMEOUT
    fifo_workers: int = FIFO_WORKERS
    trim_output: bool = True
    encoding: str = "utf-8"

    @classmethod
    def from_env(cls, **overrides) -> Self:
        overrides.setdefault("scratch_dir", _default_scratch_dir())
        return cls(**overrides)
