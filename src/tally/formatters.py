"""Report layouts for tally: pretty, POSIX, GNU time and delimited."""

import signal
from abc import ABC, abstractmethod

from rich.text import Text

from tally.models import Metrics, OutputFormat

NOT_AVAILABLE = "N/A"
DEFAULT_DELIMITER = ","

KIB = 1024
MIB = 1024**2
GIB = 1024**3

NS_PER_US = 1_000
NS_PER_MS = 1_000_000
NS_PER_S = 1_000_000_000


def format_duration(ns: int) -> str:
    """
    Format nanoseconds using a single unit chosen by magnitude.

    ``812 µs``, ``12.345 ms``, ``1.003 s``, ``1m 02.345s``, ``1h 02m 03.456s``.
    Values are truncated, never rounded up into the next unit.
    """
    if ns < NS_PER_MS:
        return f"{ns // NS_PER_US} µs"
    if ns < NS_PER_S:
        us = ns // NS_PER_US
        return f"{us // 1000}.{us % 1000:03d} ms"

    ms = ns // NS_PER_MS
    seconds, millis = divmod(ms, 1000)
    if seconds < 60:
        return f"{seconds}.{millis:03d} s"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {seconds:02d}.{millis:03d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m {seconds:02d}.{millis:03d}s"


def format_memory(size: int | None) -> str:
    """Format a byte count as KB, MB or GB; ``N/A`` when unknown."""
    if size is None:
        return NOT_AVAILABLE
    if size < MIB:
        return f"{size // KIB} KB"
    if size < 10 * MIB:
        return f"{size / MIB:.1f} MB"
    if size < GIB:
        return f"{size / MIB:.0f} MB"
    if size < 10 * GIB:
        return f"{size / GIB:.1f} GB"
    return f"{size / GIB:.0f} GB"


def _count(value: int | None) -> str:
    return NOT_AVAILABLE if value is None else str(value)


def _signal_name(signum: int) -> str | None:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return None


class Formatter(ABC):
    """Renders ``Metrics`` to text. Never raises on well-formed metrics."""

    styled = False

    @abstractmethod
    def render(self, metrics: Metrics) -> str:
        """Render ``metrics`` without a trailing newline."""

    def render_styled(self, metrics: Metrics) -> Text:
        """Terminal rendering; plain text unless a variant adds styling."""
        return Text(self.render(metrics))


class PrettyFormatter(Formatter):
    """Human-friendly labeled block, the default layout."""

    styled = True
    LABEL_WIDTH = 15
    RULE_WIDTH = 43

    def render(self, metrics: Metrics) -> str:
        return self.render_styled(metrics).plain

    def render_styled(self, metrics: Metrics) -> Text:
        text = Text()
        text.append(f"{' [stats] ':-^{self.RULE_WIDTH}}", style="dim")
        text.append("\n")
        for row in self._rows(metrics):
            if row is None:
                text.append("\n")
                continue
            label, value = row
            text.append(f"{label:>{self.LABEL_WIDTH}}", style="yellow")
            text.append(f" {value}\n")
        text.append("-" * self.RULE_WIDTH, style="dim")
        return text

    def _rows(self, metrics: Metrics) -> list[tuple[str, str] | None]:
        return [
            None,
            ("wall clock:", format_duration(metrics.wall_clock_ns)),
            ("user time:", format_duration(metrics.user_cpu_ns)),
            ("system time:", format_duration(metrics.sys_cpu_ns)),
            ("cpu:", f"{metrics.cpu_percent:.1f}%"),
            None,
            ("max memory:", format_memory(metrics.max_memory_bytes)),
            (
                "page faults:",
                f"{_count(metrics.major_faults)} major, {_count(metrics.minor_faults)} minor",
            ),
            (
                "switches:",
                f"{_count(metrics.voluntary_switches)} voluntary, "
                f"{_count(metrics.involuntary_switches)} involuntary",
            ),
            (
                "block I/O:",
                f"{_count(metrics.block_input)} in, {_count(metrics.block_output)} out",
            ),
            ("exit status:", self._exit_status(metrics)),
            None,
        ]

    @staticmethod
    def _exit_status(metrics: Metrics) -> str:
        status = metrics.exit_status
        if status.signal is not None:
            name = _signal_name(status.signal)
            suffix = f" ({name})" if name else ""
            return f"killed by signal {status.signal}{suffix}"
        return _count(status.code)


class PosixFormatter(Formatter):
    """``real``/``user``/``sys`` lines as produced by ``time -p``."""

    @staticmethod
    def seconds(ns: int) -> str:
        ms = ns // NS_PER_MS
        return f"{ms // 1000}.{ms % 1000:03d}"

    def render(self, metrics: Metrics) -> str:
        return "\n".join(
            [
                f"real\t{self.seconds(metrics.wall_clock_ns)}",
                f"user\t{self.seconds(metrics.user_cpu_ns)}",
                f"sys\t{self.seconds(metrics.sys_cpu_ns)}",
            ]
        )


class GnuFormatter(Formatter):
    """
    The default report of GNU time::

        %Uuser %Ssystem %Eelapsed %PCPU (%Xtext+%Ddata %Mmax)k
        %Iinputs+%Ooutputs (%Fmajor+%Rminor)pagefaults %Wswaps

    preceded by a status line when the command did not exit 0. Text and data
    sizes are no longer reported by any kernel and are always 0.
    """

    @staticmethod
    def seconds(ns: int) -> str:
        cs = ns // (NS_PER_MS * 10)
        return f"{cs // 100}.{cs % 100:02d}"

    @staticmethod
    def elapsed(ns: int) -> str:
        """``[h:]m:ss.cc``; with hours present the fraction is dropped, as GNU does."""
        cs = ns // (NS_PER_MS * 10)
        seconds, centis = divmod(cs, 100)
        minutes, seconds = divmod(seconds, 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}.{centis:02d}"

    def render(self, metrics: Metrics) -> str:
        lines = []
        status = metrics.exit_status
        if status.signal is not None:
            lines.append(f"Command terminated by signal {status.signal}")
        elif status.code:
            lines.append(f"Command exited with non-zero status {status.code}")

        if metrics.max_memory_bytes is None:
            max_kb = NOT_AVAILABLE
        else:
            max_kb = str(metrics.max_memory_bytes // KIB)

        lines.append(
            f"{self.seconds(metrics.user_cpu_ns)}user "
            f"{self.seconds(metrics.sys_cpu_ns)}system "
            f"{self.elapsed(metrics.wall_clock_ns)}elapsed "
            f"{int(metrics.cpu_percent)}%CPU "
            f"(0text+0data {max_kb}max)k"
        )
        lines.append(
            f"{_count(metrics.block_input)}inputs+{_count(metrics.block_output)}outputs "
            f"({_count(metrics.major_faults)}major+{_count(metrics.minor_faults)}minor)pagefaults "
            f"{_count(metrics.swaps)}swaps"
        )
        return "\n".join(lines)


class DelimitedFormatter(Formatter):
    """
    One machine-readable row with a fixed schema.

    Times are nanoseconds, ``peak_mem`` is kilobytes, ``cpu_percent`` has two
    decimals. Absent values are empty fields; the row always has
    ``len(FIELDS)`` fields in ``FIELDS`` order.
    """

    FIELDS = (
        "real",
        "user",
        "system",
        "cpu_percent",
        "peak_mem",
        "major_faults",
        "minor_faults",
        "swaps",
        "inputs",
        "outputs",
        "voluntary_switches",
        "involuntary_switches",
        "exit_code",
        "signal",
    )

    def __init__(self, delimiter: str | None = None, header: bool = False) -> None:
        self.delimiter = delimiter or DEFAULT_DELIMITER
        self.header = header

    def values(self, metrics: Metrics) -> list[str]:
        """Field values in ``FIELDS`` order."""

        def field(value: int | None) -> str:
            return "" if value is None else str(value)

        peak_kb = None if metrics.max_memory_bytes is None else metrics.max_memory_bytes // KIB
        return [
            str(metrics.wall_clock_ns),
            str(metrics.user_cpu_ns),
            str(metrics.sys_cpu_ns),
            f"{metrics.cpu_percent:.2f}",
            field(peak_kb),
            field(metrics.major_faults),
            field(metrics.minor_faults),
            field(metrics.swaps),
            field(metrics.block_input),
            field(metrics.block_output),
            field(metrics.voluntary_switches),
            field(metrics.involuntary_switches),
            field(metrics.exit_status.code),
            field(metrics.exit_status.signal),
        ]

    def render(self, metrics: Metrics) -> str:
        row = self.delimiter.join(self.values(metrics))
        if self.header:
            return self.delimiter.join(self.FIELDS) + "\n" + row
        return row


def get_formatter(
    output_format: OutputFormat,
    delimiter: str | None = None,
    header: bool = False,
) -> Formatter:
    """Select the formatter for a run."""
    if output_format is OutputFormat.POSIX:
        return PosixFormatter()
    if output_format is OutputFormat.GNU:
        return GnuFormatter()
    if output_format is OutputFormat.DELIMITED:
        return DelimitedFormatter(delimiter, header=header)
    return PrettyFormatter()
