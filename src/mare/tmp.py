"""
Ephemeral files, directories and fifos that get bound into containers.

Every path handed out here has a random name, so concurrently running partitions on the same worker never collide.
The primary contract is `scratch_paths`, which deletes what it allocated when the block exits, on success as well as
on failure. Paths are additionally registered for deletion at interpreter exit, as a net for abnormal termination;
that registry is best-effort only.
"""

import atexit
import logging
import shutil
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_on_exit: set[Path] = set()
_on_exit_lock = threading.Lock()


def unique_path(directory: PathLike, prefix: str = "mare_") -> Path:
    """Only a name -- nothing is created on disk."""
    return Path(directory) / f"{prefix}{uuid.uuid4()}"


def force_delete(path: PathLike) -> None:
    """Removes a file, fifo or a whole directory tree. A path that is already gone is fine."""
    path = Path(path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


def delete_on_exit(path: PathLike) -> None:
    with _on_exit_lock:
        _on_exit.add(Path(path))


def forget(path: PathLike) -> None:
    with _on_exit_lock:
        _on_exit.discard(Path(path))


def pending_on_exit() -> frozenset[Path]:
    with _on_exit_lock:
        return frozenset(_on_exit)


@atexit.register
def _delete_registered() -> None:
    with _on_exit_lock:
        paths = list(_on_exit)
        _on_exit.clear()
    for path in paths:
        try:
            force_delete(path)
        except OSError as e:
            logger.warning(f"could not delete {path} at exit: {e}")


@contextmanager
def scratch_paths(directory: PathLike, n: int, prefix: str = "mare_") -> Iterator[list[Path]]:
    """Yields `n` fresh path names under `directory`. The caller creates whatever it needs at them; on exit from
    the block all of them are deleted, whichever were actually created."""
    paths = [unique_path(directory, prefix) for _ in range(n)]
    for path in paths:
        delete_on_exit(path)
    logger.debug(f"allocated scratch paths {[str(p) for p in paths]}")
    try:
        yield paths
    finally:
        for path in paths:
            force_delete(path)
            forget(path)
