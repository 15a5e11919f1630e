"""tally - command-line entry point."""

import argparse
import logging
import sys

from tally.models import OutputFormat, RunRequest
from tally.reporter import LAUNCH_FAILURE_EXIT_CODE, Reporter

__version__ = "0.2.0"

DESCRIPTION = """\
tally runs the specified program `command` with the given arguments. When
`command` finishes, tally writes timing statistics about the run to standard
output: the elapsed real time, the user and system CPU time, and other
runtime statistics such as peak resident memory and page faults. tally exits
with the exit status of `command`."""

DELIMITED_HELP = """\
output a single delimited row for machine parsing; DELIM is inserted
verbatim between the fields: real, user, system (nanoseconds),
cpu_percent, peak_mem (kilobytes), major_faults, minor_faults, swaps,
inputs, outputs, voluntary_switches, involuntary_switches, exit_code,
signal"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tally",
        usage="%(prog)s [options] command [arguments]...",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    layout = parser.add_mutually_exclusive_group()
    layout.add_argument(
        "-p",
        "--portability",
        dest="format",
        action="store_const",
        const=OutputFormat.POSIX,
        help='use the POSIX format "real %%f\\nuser %%f\\nsys %%f"',
    )
    layout.add_argument(
        "-g",
        "--gnu",
        dest="format",
        action="store_const",
        const=OutputFormat.GNU,
        help="use the output format of GNU time",
    )
    layout.add_argument(
        "-d",
        "--delimited",
        metavar="DELIM",
        dest="delimiter",
        help=DELIMITED_HELP,
    )
    parser.add_argument(
        "-H",
        "--header",
        action="store_true",
        help="print a line of field names before the delimited row (requires -d)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="log debugging information to standard error",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="the command to tally and its arguments",
    )
    return parser


def parse_request(
    parser: argparse.ArgumentParser,
    argv: list[str] | None = None,
) -> tuple[RunRequest | None, argparse.Namespace]:
    """Parse ``argv`` into a ``RunRequest``; ``None`` when no command was given."""
    args = parser.parse_args(argv)

    if args.delimiter is not None:
        if args.delimiter == "":
            parser.error("no delimiter given")
        output_format = OutputFormat.DELIMITED
    else:
        if args.header:
            parser.error("-H/--header requires -d/--delimited")
        output_format = args.format or OutputFormat.PRETTY

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        return None, args

    return RunRequest(
        command=tuple(command),
        format=output_format,
        delimiter=args.delimiter,
        header=args.header,
    ), args


def main(argv: list[str] | None = None) -> None:
    """Entry point for the tally command."""
    parser = build_parser()
    request, args = parse_request(parser, argv)

    logging.basicConfig(
        format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    if request is None:
        parser.print_help(sys.stderr)
        sys.exit(LAUNCH_FAILURE_EXIT_CODE)

    sys.exit(Reporter().run(request))


if __name__ == "__main__":
    main()
