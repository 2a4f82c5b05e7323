"""
Module contents:
 - MaReError: common base of everything raised by the container orchestration,
 - ContainerExecutionError: a container (or its image pull) exited non-zero,
 - MalformedDataError: an expected mount point output is missing or cannot be parsed,
 - ReduceTimeoutError: a pairwise reduce did not produce its output in time,
 - PreconditionError: invalid arguments, raised before any work starts.

None of these are retried internally -- retries are the business of whatever schedules the partitions.
"""


class MaReError(Exception):
    pass


class ContainerExecutionError(MaReError):
    """Carries the exit code and whatever the container printed, so the task failure is diagnosable on the driver."""

    def __init__(self, exit_code: int, output: str, command: str = ""):
        super().__init__(f"command {command!r} exited with code {exit_code}: {output}")
        self.exit_code = exit_code
        self.output = output
        self.command = command

    # NOTE default pickling re-calls __init__ with the formatted message only
    def __reduce__(self):
        return self.__class__, (self.exit_code, self.output, self.command)


class MalformedDataError(MaReError):
    pass


class ReduceTimeoutError(MaReError, TimeoutError):
    pass


class PreconditionError(MaReError, ValueError):
    pass
