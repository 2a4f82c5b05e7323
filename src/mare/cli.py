"""
easy-reduce: reduce a dataset to a single result with a command running in a container.

The command reads two records from /input1 and /input2 and writes their combination to /output, e.g.
`easy-reduce --command 'expr $(cat /input1) + $(cat /input2) > /output' numbers.txt result`.
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from mare.config import FIFO_READ_TIMEOUT, Config
from mare.errors import MalformedDataError, MaReError
from mare.fifo import fifo_reduce
from mare.pa.local import Config as LocalConfig
from mare.pa.local import LocalCollection
from mare.runner import ContainerRunner, DockerRunner

logger = logging.getLogger(__name__)


@dataclass
class Params:
    command: str
    input_path: Path
    output_path: Path
    image_name: str = "ubuntu:14.04"
    trim_command_output: bool = True
    whole_files: bool = False
    command_timeout_s: int = FIFO_READ_TIMEOUT
    local: bool = False
    parallelism: int = os.cpu_count() or 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="easy-reduce", description="Reduce a distributed dataset using a command from a Docker container."
    )
    parser.add_argument("--imageName", dest="image_name", default=Params.image_name, help="Docker image name.")
    parser.add_argument(
        "--command",
        required=True,
        help="command to run inside the Docker container, reading /input1 and /input2 and writing /output.",
    )
    parser.add_argument(
        "--noTrim", dest="trim_command_output", action="store_false", help="do not trim the command output."
    )
    parser.add_argument(
        "--wholeFiles",
        dest="whole_files",
        action="store_true",
        help="each file of the input directory is one record. Otherwise every line of the input is a record.",
    )
    parser.add_argument(
        "--commandTimeout",
        dest="command_timeout_s",
        type=int,
        default=FIFO_READ_TIMEOUT,
        help="execution timeout for the command, in seconds.",
    )
    parser.add_argument("--local", action="store_true", help="process all partitions in a single thread.")
    parser.add_argument(
        "--parallelism", type=int, default=Params.parallelism, help="number of partitions processed concurrently."
    )
    parser.add_argument("input_path", metavar="inputPath", type=Path, help="dataset input path.")
    parser.add_argument("output_path", metavar="outputPath", type=Path, help="result output directory.")
    return parser


def _input_files(input_path: Path) -> list[Path]:
    if input_path.is_dir():
        return sorted(p for p in input_path.iterdir() if p.is_file() and not p.name.startswith((".", "_")))
    return [input_path]


def _lines(path: Path, encoding: str) -> list[str]:
    # text mode iteration splits on \n, \r\n and \r only -- not on the other unicode line boundaries
    with open(path, encoding=encoding) as f:
        return [line.rstrip("\n") for line in f]


def read_records(params: Params, encoding: str = "utf-8") -> tuple[list[str], int]:
    """Returns the records and the number of partitions to split them into."""
    files = _input_files(params.input_path)
    try:
        if params.whole_files:
            return [f.read_text(encoding=encoding) for f in files], len(files)
        records = [line for f in files for line in _lines(f, encoding)]
    except UnicodeDecodeError as e:
        raise MalformedDataError(f"input under {params.input_path} is not valid {encoding}") from e
    return records, max(1, min(len(records), 1 if params.local else params.parallelism))


def run(params: Params, runner: Optional[ContainerRunner] = None) -> str:
    parallelism = 1 if params.local else params.parallelism
    config = Config.from_env(
        fifo_timeout_s=params.command_timeout_s,
        trim_output=params.trim_command_output,
    )
    records, num_partitions = read_records(params, config.encoding)
    logger.info(f"reducing {len(records)} records in {num_partitions} partitions with {params.command!r}")
    collection = LocalCollection.parallelize(records, num_partitions, LocalConfig(parallelism=parallelism))
    result = fifo_reduce(collection, params.image_name, params.command, runner or DockerRunner(), config)

    params.output_path.mkdir(parents=True)
    lines = result.split("\n")
    if lines[-1] == "":
        lines.pop()
    (params.output_path / "part-00000").write_text("".join(line + "\n" for line in lines), encoding=config.encoding)
    (params.output_path / "_SUCCESS").touch()
    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    params = Params(**vars(parser.parse_args(argv)))
    if params.output_path.exists():
        parser.error(f"output path {params.output_path} already exists")
    logging.basicConfig(level="INFO", format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        run(params)
    except (MaReError, ValueError, OSError) as e:
        logger.error(f"reduce failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
