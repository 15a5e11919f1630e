"""Child process execution and resource accounting for tally."""

import logging
import os
import signal
import subprocess
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import FrameType

import psutil

from tally.errors import Interrupted, LaunchError
from tally.models import ExitStatus, RawUsage, RunRequest

logger = logging.getLogger(__name__)

FORWARDED_SIGNALS: tuple[int, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGHUP", "SIGQUIT")
    if hasattr(signal, name)
)

# ru_maxrss is in bytes on macOS and kilobytes everywhere else
RU_MAXRSS_UNIT = 1 if sys.platform == "darwin" else 1024


class SignalForwarder:
    """
    Relay termination signals received by tally to the running child.

    Handlers are installed on ``__enter__`` and the previous ones restored on
    ``__exit__``. A signal that arrives before the child exists is remembered
    and delivered as soon as :meth:`attach` is called. The first signal seen is
    kept in :attr:`received` so the caller can exit without a report.

    Signals that tally was started with ignored (``nohup``, background jobs)
    are left ignored, so the child inherits them ignored as well.

    A terminal Ctrl-C or Ctrl-\\ reaches the whole foreground process group,
    so the child gets SIGINT or SIGQUIT once from the terminal and once more
    from tally.
    """

    def __init__(self, signals: tuple[int, ...] = FORWARDED_SIGNALS) -> None:
        self._signals = signals
        self._previous: dict[int, object] = {}
        self._send: Callable[[int], None] | None = None
        self.received: int | None = None

    def __enter__(self) -> "SignalForwarder":
        for signum in self._signals:
            if signal.getsignal(signum) is signal.SIG_IGN:
                logger.debug("Signal %d is ignored, not forwarding it", signum)
                continue
            try:
                self._previous[signum] = signal.signal(signum, self.handle_signal)
            except ValueError:
                # Not the main thread; the child keeps default signal semantics
                logger.debug("Cannot install handler for signal %d outside main thread", signum)
        return self

    def __exit__(self, *exc_info) -> None:
        self._send = None
        for signum, previous in self._previous.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()

    def attach(self, send: Callable[[int], None]) -> None:
        """Start forwarding through ``send``, delivering any signal already received."""
        self._send = send
        if self.received is not None:
            self._forward(self.received)

    def detach(self) -> None:
        """Stop forwarding; the child has been reaped."""
        self._send = None

    def handle_signal(self, signum: int, _frame: FrameType | None) -> None:
        if self.received is None:
            self.received = signum
        if self._send is not None:
            self._forward(signum)

    def _forward(self, signum: int) -> None:
        logger.info("Received signal %d, passing to command", signum)
        try:
            self._send(signum)
        except ProcessLookupError:
            logger.debug("Command already exited, signal %d dropped", signum)


class ProcessRunner(ABC):
    """Spawns a command, waits for it and reports how it ended and what it used."""

    @abstractmethod
    def run(self, request: RunRequest) -> tuple[ExitStatus, RawUsage]:
        """
        Run ``request.command`` to completion with inherited standard streams.

        Args:
            request: The run to perform.

        Returns:
            The child's exit status and its raw resource usage.

        Raises:
            LaunchError: The command could not be started.
            Interrupted: tally received a termination signal while waiting.
        """


def exit_status_from_wait(status: int) -> ExitStatus:
    """Decode a ``waitpid``-style status word."""
    if os.WIFSIGNALED(status):
        return ExitStatus(signal=os.WTERMSIG(status))
    return ExitStatus(code=os.WEXITSTATUS(status))


def exit_status_from_returncode(returncode: int | None) -> ExitStatus:
    """Decode a ``subprocess``-style return code (negative means signal)."""
    if returncode is None:
        return ExitStatus()
    if returncode < 0:
        return ExitStatus(signal=-int(returncode))
    return ExitStatus(code=int(returncode))


class Wait4Runner(ProcessRunner):
    """
    POSIX runner.

    Reaps the child with ``os.wait4`` which hands back the rusage of that
    child (and the descendants it waited for) only, unaffected by anything
    else the calling process has run.
    """

    def run(self, request: RunRequest) -> tuple[ExitStatus, RawUsage]:
        argv = list(request.command)

        with SignalForwarder() as forwarder:
            start_ns = time.perf_counter_ns()
            try:
                proc = subprocess.Popen(argv)
            except OSError as exc:
                logger.debug("Failed to spawn %r: %s", argv, exc)
                raise LaunchError.from_os_error(argv[0], exc) from exc

            logger.debug("Spawned pid %d: %r", proc.pid, argv)
            forwarder.attach(lambda signum: os.kill(proc.pid, signum))
            _, status, usage = os.wait4(proc.pid, 0)
            end_ns = time.perf_counter_ns()
            forwarder.detach()

        exit_status = exit_status_from_wait(status)
        # Keep Popen consistent, it must not try to reap the pid again
        proc.returncode = (
            -exit_status.signal if exit_status.signal is not None else exit_status.code
        )
        logger.debug("pid %d finished: %s", proc.pid, exit_status)

        if forwarder.received is not None:
            raise Interrupted(forwarder.received)

        return exit_status, RawUsage(
            start_ns=start_ns,
            end_ns=end_ns,
            user_cpu=usage.ru_utime,
            sys_cpu=usage.ru_stime,
            max_rss=usage.ru_maxrss,
            max_rss_unit=RU_MAXRSS_UNIT,
            major_faults=usage.ru_majflt,
            minor_faults=usage.ru_minflt,
            swaps=usage.ru_nswap,
            block_input=usage.ru_inblock,
            block_output=usage.ru_oublock,
            voluntary_switches=usage.ru_nvcsw,
            involuntary_switches=usage.ru_nivcsw,
        )


class UsageSampler:
    """Keeps the latest CPU times and the peak memory seen for a psutil process."""

    def __init__(self, proc: psutil.Process) -> None:
        self._proc = proc
        self.user_cpu = 0.0
        self.sys_cpu = 0.0
        self.max_rss: int | None = None
        self.voluntary_switches: int | None = None
        self.involuntary_switches: int | None = None
        self.samples = 0

    def sample(self) -> None:
        """Take one sample; a process that vanished mid-read leaves the last one standing."""
        try:
            with self._proc.oneshot():
                cpu = self._proc.cpu_times()
                mem = self._proc.memory_info()
                ctx = self._proc.num_ctx_switches()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return

        self.user_cpu = cpu.user + getattr(cpu, "children_user", 0.0)
        self.sys_cpu = cpu.system + getattr(cpu, "children_system", 0.0)
        # Windows tracks the true peak working set; elsewhere rss is a lower bound
        peak = getattr(mem, "peak_wset", None) or mem.rss
        self.max_rss = max(self.max_rss or 0, peak)
        self.voluntary_switches = ctx.voluntary
        self.involuntary_switches = ctx.involuntary
        self.samples += 1


class PsutilRunner(ProcessRunner):
    """
    Portable runner for platforms without ``os.wait4``.

    Waits on the child in short slices and samples it with psutil in between,
    so CPU times are those of the last sample before exit and memory is the
    highest value observed.
    """

    def __init__(self, sample_interval: float = 0.05) -> None:
        self._sample_interval = max(0.001, sample_interval)

    @property
    def sample_interval(self) -> float:
        return self._sample_interval

    def run(self, request: RunRequest) -> tuple[ExitStatus, RawUsage]:
        argv = list(request.command)

        with SignalForwarder() as forwarder:
            start_ns = time.perf_counter_ns()
            try:
                proc = psutil.Popen(argv)
            except OSError as exc:
                logger.debug("Failed to spawn %r: %s", argv, exc)
                raise LaunchError.from_os_error(argv[0], exc) from exc

            logger.debug("Spawned pid %d: %r", proc.pid, argv)
            forwarder.attach(lambda signum: self._send_signal(proc, signum))
            sampler = UsageSampler(proc)
            sampler.sample()
            while True:
                try:
                    returncode = proc.wait(timeout=self._sample_interval)
                    break
                except psutil.TimeoutExpired:
                    sampler.sample()
            end_ns = time.perf_counter_ns()
            forwarder.detach()

        exit_status = exit_status_from_returncode(returncode)
        logger.debug("pid %d finished: %s (%d samples)", proc.pid, exit_status, sampler.samples)

        if forwarder.received is not None:
            raise Interrupted(forwarder.received)

        return exit_status, RawUsage(
            start_ns=start_ns,
            end_ns=end_ns,
            user_cpu=sampler.user_cpu,
            sys_cpu=sampler.sys_cpu,
            max_rss=sampler.max_rss,
            max_rss_unit=1,
            voluntary_switches=sampler.voluntary_switches,
            involuntary_switches=sampler.involuntary_switches,
        )

    @staticmethod
    def _send_signal(proc: psutil.Process, signum: int) -> None:
        try:
            proc.send_signal(signum)
        except ValueError:
            # Windows only accepts SIGTERM and console control events
            proc.terminate()
        except psutil.NoSuchProcess:
            logger.debug("Command already exited, signal %d dropped", signum)


def default_runner() -> ProcessRunner:
    """The runner for this platform: ``wait4`` where available, psutil otherwise."""
    if hasattr(os, "wait4"):
        return Wait4Runner()
    return PsutilRunner()
