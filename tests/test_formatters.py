"""Tests for the report formatters."""

from dataclasses import replace

import pytest
from rich.text import Text

from tally.formatters import (
    GIB,
    MIB,
    DelimitedFormatter,
    GnuFormatter,
    PosixFormatter,
    PrettyFormatter,
    format_duration,
    format_memory,
    get_formatter,
)
from tally.models import ExitStatus, OutputFormat


@pytest.mark.parametrize(
    ("ns", "expected"),
    [
        (0, "0 µs"),
        (812_345, "812 µs"),
        (12_345_678, "12.345 ms"),
        (1_003_456_789, "1.003 s"),
        (59_999_999_999, "59.999 s"),
        (62_345_000_000, "1m 02.345s"),
        (3_723_456_000_000, "1h 02m 03.456s"),
    ],
)
def test_format_duration(ns, expected):
    """Test a unit is picked by magnitude."""
    assert format_duration(ns) == expected


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (None, "N/A"),
        (512 * 1024, "512 KB"),
        (int(1.5 * MIB), "1.5 MB"),
        (100 * MIB, "100 MB"),
        (int(2.5 * GIB), "2.5 GB"),
        (12 * GIB, "12 GB"),
    ],
)
def test_format_memory(size, expected):
    """Test memory thresholds between KB, MB and GB."""
    assert format_memory(size) == expected


class TestGetFormatter:
    """Tests for formatter selection."""

    def test_selects_each_variant(self):
        """Test each OutputFormat maps to its formatter."""
        assert isinstance(get_formatter(OutputFormat.PRETTY), PrettyFormatter)
        assert isinstance(get_formatter(OutputFormat.POSIX), PosixFormatter)
        assert isinstance(get_formatter(OutputFormat.GNU), GnuFormatter)
        assert isinstance(get_formatter(OutputFormat.DELIMITED, ";"), DelimitedFormatter)

    def test_delimiter_defaults_to_comma(self):
        """Test the delimited formatter falls back to a comma."""
        assert get_formatter(OutputFormat.DELIMITED).delimiter == ","


class TestPrettyFormatter:
    """Tests for the default layout."""

    def test_render(self, metrics):
        """Test labels and values of a full measurement."""
        text = PrettyFormatter().render(metrics)
        lines = text.splitlines()

        assert "[stats]" in lines[0]
        assert "wall clock: 1.003 s" in text
        assert "user time: 250.000 ms" in text
        assert "system time: 50.000 ms" in text
        assert "cpu: 29.9%" in text
        assert "max memory: 9.2 MB" in text
        assert "page faults: 1 major, 118 minor" in text
        assert "switches: 2 voluntary, 3 involuntary" in text
        assert "block I/O: 8 in, 16 out" in text
        assert "exit status: 0" in text
        assert not text.endswith("\n")

    def test_labels_are_aligned(self, metrics):
        """Test every value starts in the same column."""
        lines = [line for line in PrettyFormatter().render(metrics).splitlines() if ": " in line]

        assert len({line.index(": ") for line in lines}) == 1

    def test_absent_values(self, sparse_metrics):
        """Test absent values render as N/A."""
        text = PrettyFormatter().render(sparse_metrics)

        assert "max memory: N/A" in text
        assert "page faults: N/A major, N/A minor" in text
        assert "exit status: 3" in text

    def test_signal_exit(self, metrics):
        """Test a signal death is spelled out."""
        killed = replace(metrics, exit_status=ExitStatus(signal=9))

        assert "exit status: killed by signal 9" in PrettyFormatter().render(killed)

    def test_render_styled_matches_plain(self, metrics):
        """Test styled output carries the same text as plain output."""
        formatter = PrettyFormatter()
        styled = formatter.render_styled(metrics)

        assert isinstance(styled, Text)
        assert styled.plain == formatter.render(metrics)
        assert styled.spans


class TestPosixFormatter:
    """Tests for the POSIX layout."""

    def test_render(self, metrics):
        """Test the three fixed lines."""
        assert PosixFormatter().render(metrics) == "real\t1.003\nuser\t0.250\nsys\t0.050"

    def test_render_sparse(self, sparse_metrics):
        """Test the layout does not depend on optional fields."""
        lines = PosixFormatter().render(sparse_metrics).splitlines()

        assert lines == ["real\t0.500", "user\t0.100", "sys\t0.000"]

    def test_render_styled_is_plain(self, metrics):
        """Test non-pretty formats carry no styling."""
        assert not PosixFormatter().render_styled(metrics).spans


class TestGnuFormatter:
    """Tests for the GNU time layout."""

    def test_render(self, metrics):
        """Test the two-line report of a successful run."""
        assert GnuFormatter().render(metrics) == (
            "0.25user 0.05system 0:01.00elapsed 29%CPU (0text+0data 9423max)k\n"
            "8inputs+16outputs (1major+118minor)pagefaults 0swaps"
        )

    def test_render_non_zero_exit(self, sparse_metrics):
        """Test the status line and N/A for unreported counters."""
        assert GnuFormatter().render(sparse_metrics).splitlines() == [
            "Command exited with non-zero status 3",
            "0.10user 0.00system 0:00.50elapsed 20%CPU (0text+0data N/Amax)k",
            "N/Ainputs+N/Aoutputs (N/Amajor+N/Aminor)pagefaults N/Aswaps",
        ]

    def test_render_signal(self, metrics):
        """Test a signal death gets its own status line."""
        killed = replace(metrics, exit_status=ExitStatus(signal=15))

        assert GnuFormatter().render(killed).splitlines()[0] == "Command terminated by signal 15"

    def test_elapsed(self):
        """Test m:ss.cc below an hour and h:mm:ss above."""
        assert GnuFormatter.elapsed(61_230_000_000) == "1:01.23"
        assert GnuFormatter.elapsed(3_723_456_000_000) == "1:02:03"


class TestDelimitedFormatter:
    """Tests for the machine-readable layout."""

    def test_render(self, metrics):
        """Test field values and order."""
        assert DelimitedFormatter().render(metrics) == (
            "1003456789,250000000,50000000,29.90,9423,1,118,0,8,16,2,3,0,"
        )

    def test_render_custom_delimiter(self, metrics):
        """Test the delimiter is inserted verbatim, even multi-character."""
        row = DelimitedFormatter(" | ").render(metrics)

        assert row.split(" | ")[:3] == ["1003456789", "250000000", "50000000"]

    def test_absent_fields_are_empty_not_omitted(self, metrics, sparse_metrics):
        """Test the field count is stable whatever is absent."""
        formatter = DelimitedFormatter(";")
        full = formatter.render(metrics).split(";")
        sparse = formatter.render(sparse_metrics).split(";")

        assert len(full) == len(sparse) == len(DelimitedFormatter.FIELDS)
        assert sparse == [
            "500000000", "100000000", "0", "20.00",
            "", "", "", "", "", "", "", "",
            "3", "",
        ]

    def test_render_signal(self, metrics):
        """Test a signal death fills the signal field and leaves exit_code empty."""
        killed = replace(metrics, exit_status=ExitStatus(signal=9))
        values = DelimitedFormatter().render(killed).split(",")

        assert values[-2:] == ["", "9"]

    def test_header(self, metrics):
        """Test the optional header names every field."""
        header, row = DelimitedFormatter(";", header=True).render(metrics).splitlines()

        assert header.split(";") == list(DelimitedFormatter.FIELDS)
        assert len(row.split(";")) == len(DelimitedFormatter.FIELDS)
