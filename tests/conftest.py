"""Shared fixtures for tally tests."""

import sys

import pytest

from tally.models import ExitStatus, Metrics

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="requires POSIX signals and wait4")


def python_command(code: str) -> tuple[str, ...]:
    """A child command running ``code`` in this interpreter."""
    return (sys.executable, "-c", code)


@pytest.fixture(autouse=True)
def plain_terminal(monkeypatch):
    """Keep rich from forcing terminal styling onto captured output."""
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.delenv("TTY_COMPATIBLE", raising=False)


@pytest.fixture
def metrics() -> Metrics:
    """A fully populated measurement of a one second run."""
    return Metrics(
        wall_clock_ns=1_003_456_789,
        user_cpu_ns=250_000_000,
        sys_cpu_ns=50_000_000,
        cpu_percent=29.9,
        max_memory_bytes=9_650_000,
        exit_status=ExitStatus(code=0),
        major_faults=1,
        minor_faults=118,
        swaps=0,
        block_input=8,
        block_output=16,
        voluntary_switches=2,
        involuntary_switches=3,
    )


@pytest.fixture
def sparse_metrics() -> Metrics:
    """A measurement from a platform that reports only CPU times."""
    return Metrics(
        wall_clock_ns=500_000_000,
        user_cpu_ns=100_000_000,
        sys_cpu_ns=0,
        cpu_percent=20.0,
        max_memory_bytes=None,
        exit_status=ExitStatus(code=3),
    )
