"""Orchestration of a timed run: run, collect, render, write."""

import logging
import sys
from typing import TextIO

from rich.console import Console

from tally.collector import MetricsCollector
from tally.errors import Interrupted, LaunchError
from tally.formatters import Formatter, get_formatter
from tally.models import Report, RunRequest
from tally.runner import ProcessRunner, default_runner

logger = logging.getLogger(__name__)

LAUNCH_FAILURE_EXIT_CODE = 127


class Reporter:
    """
    Runs a ``RunRequest`` end to end and decides the tool's exit code.

    The report goes to ``stdout``; the only thing written to ``stderr`` is the
    diagnostic for a command that could not be launched.
    """

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        collector: MetricsCollector | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self._runner = runner or default_runner()
        self._collector = collector or MetricsCollector()
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> TextIO:
        # Resolved lazily so redirection after construction is honoured
        return self._stdout or sys.stdout

    @property
    def stderr(self) -> TextIO:
        return self._stderr or sys.stderr

    def measure(self, request: RunRequest) -> Report:
        """
        Run the command and render its metrics without writing anything.

        Raises:
            LaunchError: The command could not be started.
            Interrupted: tally was signalled while the command ran.
        """
        exit_status, usage = self._runner.run(request)
        metrics = self._collector.collect(exit_status, usage)
        formatter = self.formatter_for(request)
        return Report(metrics=metrics, rendered_text=formatter.render(metrics))

    @staticmethod
    def formatter_for(request: RunRequest) -> Formatter:
        return get_formatter(request.format, request.delimiter, request.header)

    def run(self, request: RunRequest) -> int:
        """Run, report to stdout and return the exit code tally should end with."""
        logger.debug("Timing %r with %s", request.command, type(self._runner).__name__)
        try:
            report = self.measure(request)
        except LaunchError as exc:
            logger.debug("Launch failed: %s", exc)
            print(f"tally: {exc}", file=self.stderr)
            return LAUNCH_FAILURE_EXIT_CODE
        except Interrupted as exc:
            logger.info("Exiting without a report: %s", exc)
            return 128 + exc.signum

        self.write(report, self.formatter_for(request))
        return report.metrics.exit_status.exit_code

    def write(self, report: Report, formatter: Formatter) -> None:
        """Write a report, styled only when stdout is a terminal."""
        out = self.stdout
        if formatter.styled:
            console = Console(file=out, highlight=False, soft_wrap=True)
            if console.is_terminal:
                console.print(formatter.render_styled(report.metrics))
                return
        out.write(report.rendered_text + "\n")
        out.flush()
