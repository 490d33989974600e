from __future__ import annotations

import argparse
import logging
import sys
from typing import BinaryIO, List, Optional

from .errors import BftError
from .program import format_listing, load_file
from .tape import DEFAULT_TAPE_SIZE
from .vm import MachineConfig, StepLimitExceeded, VirtualMachine


def positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text!r}")
    return value


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bft", description="Run a BF program")
    parser.add_argument("program", metavar="PROGRAM", help="The file of BF program to be parsed.")
    parser.add_argument(
        "-c",
        "--cells",
        type=positive_int,
        default=DEFAULT_TAPE_SIZE,
        help=f"The size of VM's tape (default: {DEFAULT_TAPE_SIZE}).",
    )
    parser.add_argument(
        "-e",
        "--extensible",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Whether to extend VM's tape or not. By default - false.",
    )
    parser.add_argument(
        "--max-steps",
        type=positive_int,
        default=None,
        help="Abort after this many executed instructions (default: unlimited)",
    )
    parser.add_argument(
        "--listing",
        action="store_true",
        help="Print every instruction with its source position instead of running",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v for info, -vv for debug)",
    )
    return parser


def main(
    argv: Optional[List[str]] = None,
    *,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        program = load_file(args.program)
    except (OSError, BftError) as exc:
        print(f"bft: error: {exc}", file=sys.stderr)
        return 1

    if args.listing:
        for line in format_listing(program):
            print(line)
        return 0

    config = MachineConfig(tape_size=args.cells, growable=args.extensible)
    machine = VirtualMachine(program, config, max_steps=args.max_steps)
    try:
        machine.run(stdin or sys.stdin.buffer, stdout or sys.stdout.buffer)
    except (BftError, StepLimitExceeded) as exc:
        print(f"bft: error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
