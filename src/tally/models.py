"""Data models for tally."""

from dataclasses import dataclass
from enum import Enum


class OutputFormat(Enum):
    """Report layouts selectable from the command line."""

    PRETTY = "pretty"
    POSIX = "posix"
    GNU = "gnu"
    DELIMITED = "delimited"


@dataclass(slots=True, frozen=True)
class RunRequest:
    """Immutable description of one timed run."""

    command: tuple[str, ...]
    format: OutputFormat = OutputFormat.PRETTY
    delimiter: str | None = None
    header: bool = False

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("command must not be empty")
        # Accept any sequence but store a tuple so the request stays hashable
        object.__setattr__(self, "command", tuple(self.command))


@dataclass(slots=True, frozen=True)
class ExitStatus:
    """How the child ended: a normal exit code or a terminating signal."""

    code: int | None = None
    signal: int | None = None

    @property
    def exit_code(self) -> int:
        """Exit code the tool itself should terminate with."""
        if self.signal is not None:
            return 128 + self.signal
        if self.code is not None:
            return self.code
        return 127

    @property
    def success(self) -> bool:
        return self.code == 0


@dataclass(slots=True, frozen=True)
class RawUsage:
    """
    Counters exactly as the operating system reported them.

    Times are float seconds and instants are monotonic nanoseconds.
    ``max_rss`` is in platform units; ``max_rss_unit`` is the number of
    bytes per unit (1024 on Linux, 1 on macOS).
    """

    start_ns: int
    end_ns: int
    user_cpu: float
    sys_cpu: float
    max_rss: int | None = None
    max_rss_unit: int = 1024
    major_faults: int | None = None
    minor_faults: int | None = None
    swaps: int | None = None
    block_input: int | None = None
    block_output: int | None = None
    voluntary_switches: int | None = None
    involuntary_switches: int | None = None


@dataclass(slots=True, frozen=True)
class Metrics:
    """Display-ready measurements of a finished child, in nanoseconds and bytes."""

    wall_clock_ns: int
    user_cpu_ns: int
    sys_cpu_ns: int
    cpu_percent: float
    max_memory_bytes: int | None
    exit_status: ExitStatus
    major_faults: int | None = None
    minor_faults: int | None = None
    swaps: int | None = None
    block_input: int | None = None
    block_output: int | None = None
    voluntary_switches: int | None = None
    involuntary_switches: int | None = None


@dataclass(slots=True, frozen=True)
class Report:
    """Metrics together with the text they were rendered to."""

    metrics: Metrics
    rendered_text: str
