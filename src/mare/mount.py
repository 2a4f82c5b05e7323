"""
Mount points bind an in-memory partition to a path on the host, which is then bound into the container at `path`.

Implementations:
 - TextFile -- records are strings, stored in a single file separated by a delimiter (newline by default).
   The delimiter is *not* escaped: records that contain it will come back split.
 - WholeTextFiles -- records are (name, content) pairs, stored as a directory with one file per record.
 - BinaryFiles -- as WholeTextFiles, but the content is bytes.

The container command has to read and write the same layout the mount point uses.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol, TypeVar

from mare.errors import MalformedDataError, PreconditionError
from mare.tmp import PathLike

T = TypeVar("T")


class MountPoint(Protocol[T]):
    """`path` is where the container sees the data, the `host_path` arguments are where it lives on the worker."""

    path: str

    def write(self, records: Iterable[T], host_path: PathLike) -> None:
        raise NotImplementedError

    def create_empty(self, host_path: PathLike) -> None:
        raise NotImplementedError

    def read(self, host_path: PathLike) -> list[T]:
        raise NotImplementedError

    def append(self, records: Iterable[T], host_path: PathLike) -> None:
        raise NotImplementedError


@dataclass
class TextFile(MountPoint[str]):
    path: str
    delimiter: str = "\n"
    encoding: str = "utf-8"

    def __post_init__(self):
        if not self.delimiter:
            raise PreconditionError("record delimiter must not be empty")

    def _encode(self, records: Iterable[str]) -> str:
        return "".join(record + self.delimiter for record in records)

    def write(self, records: Iterable[str], host_path: PathLike) -> None:
        with open(host_path, "w", encoding=self.encoding, newline="") as f:
            f.write(self._encode(records))

    def create_empty(self, host_path: PathLike) -> None:
        Path(host_path).touch()

    def read(self, host_path: PathLike) -> list[str]:
        try:
            with open(host_path, encoding=self.encoding, newline="") as f:
                content = f.read()
        except FileNotFoundError as e:
            raise MalformedDataError(f"expected a text file at {host_path}") from e
        except UnicodeDecodeError as e:
            raise MalformedDataError(f"{host_path} is not valid {self.encoding}") from e
        if not content:
            return []
        records = content.split(self.delimiter)
        # a trailing delimiter terminates the last record, it does not start a new one
        if records[-1] == "":
            records.pop()
        return records

    def append(self, records: Iterable[str], host_path: PathLike) -> None:
        with open(host_path, "a", encoding=self.encoding, newline="") as f:
            f.write(self._encode(records))


def _safe_name(name: str) -> str:
    safe = Path(name).name
    if not safe:
        raise ValueError(f"record name {name!r} does not name a file")
    return safe


def _list_files(host_path: PathLike) -> list[Path]:
    directory = Path(host_path)
    if not directory.is_dir():
        raise MalformedDataError(f"expected a directory at {host_path}")
    return sorted(p for p in directory.iterdir() if p.is_file())


@dataclass
class WholeTextFiles(MountPoint[tuple[str, str]]):
    path: str
    encoding: str = "utf-8"

    def write(self, records: Iterable[tuple[str, str]], host_path: PathLike) -> None:
        self.create_empty(host_path)
        self.append(records, host_path)

    def create_empty(self, host_path: PathLike) -> None:
        Path(host_path).mkdir(parents=True, exist_ok=True)

    def read(self, host_path: PathLike) -> list[tuple[str, str]]:
        try:
            return [(p.name, p.read_text(encoding=self.encoding)) for p in _list_files(host_path)]
        except UnicodeDecodeError as e:
            raise MalformedDataError(f"{host_path} contains a file that is not valid {self.encoding}") from e

    def append(self, records: Iterable[tuple[str, str]], host_path: PathLike) -> None:
        directory = Path(host_path)
        for name, content in records:
            (directory / _safe_name(name)).write_text(content, encoding=self.encoding)


@dataclass
class BinaryFiles(MountPoint[tuple[str, bytes]]):
    path: str

    def write(self, records: Iterable[tuple[str, bytes]], host_path: PathLike) -> None:
        self.create_empty(host_path)
        self.append(records, host_path)

    def create_empty(self, host_path: PathLike) -> None:
        Path(host_path).mkdir(parents=True, exist_ok=True)

    def read(self, host_path: PathLike) -> list[tuple[str, bytes]]:
        return [(p.name, p.read_bytes()) for p in _list_files(host_path)]

    def append(self, records: Iterable[tuple[str, bytes]], host_path: PathLike) -> None:
        directory = Path(host_path)
        for name, content in records:
            (directory / _safe_name(name)).write_bytes(content)
