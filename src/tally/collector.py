"""Normalisation of raw OS counters into display-ready metrics."""

from tally.models import ExitStatus, Metrics, RawUsage

NANOS_PER_SECOND = 1_000_000_000


def seconds_to_ns(seconds: float) -> int:
    """Convert float seconds to whole nanoseconds, never negative."""
    return max(0, round(seconds * NANOS_PER_SECOND))


def cpu_percent(user_ns: int, sys_ns: int, wall_ns: int) -> float:
    """Share of one CPU used over the wall-clock span; 0.0 for an empty span."""
    if wall_ns <= 0:
        return 0.0
    return max(0.0, (user_ns + sys_ns) / wall_ns * 100.0)


class MetricsCollector:
    """Turns ``RawUsage`` into ``Metrics``. Pure: no I/O, no clocks."""

    def collect(self, exit_status: ExitStatus, usage: RawUsage) -> Metrics:
        wall_ns = max(0, usage.end_ns - usage.start_ns)
        user_ns = seconds_to_ns(usage.user_cpu)
        sys_ns = seconds_to_ns(usage.sys_cpu)

        # Zero means the platform did not fill the field in, not an empty process
        if usage.max_rss:
            max_memory = usage.max_rss * usage.max_rss_unit
        else:
            max_memory = None

        return Metrics(
            wall_clock_ns=wall_ns,
            user_cpu_ns=user_ns,
            sys_cpu_ns=sys_ns,
            cpu_percent=cpu_percent(user_ns, sys_ns, wall_ns),
            max_memory_bytes=max_memory,
            exit_status=exit_status,
            major_faults=usage.major_faults,
            minor_faults=usage.minor_faults,
            swaps=usage.swaps,
            block_input=usage.block_input,
            block_output=usage.block_output,
            voluntary_switches=usage.voluntary_switches,
            involuntary_switches=usage.involuntary_switches,
        )
