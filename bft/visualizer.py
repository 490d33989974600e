from __future__ import annotations

import argparse
import dataclasses
import io
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .cells import ByteCell
from .cli import positive_int
from .errors import BftError, ExecutionError
from .program import Program, load
from .tape import DEFAULT_TAPE_SIZE
from .vm import ExecutionState, MachineConfig, StepLimitExceeded, VirtualMachine


def _to_input_bytes(data: str) -> bytes:
    return data.encode("utf-8")


@dataclass
class VisualizerSession:
    code: str
    input_template: bytes
    tape_window: int = 10
    max_steps: Optional[int] = None
    history_limit: int = 200
    tape_size: int = DEFAULT_TAPE_SIZE
    growable: bool = False
    source_name: str = "<session>"

    def __post_init__(self) -> None:
        self.program: Program = load(self.code, self.source_name)
        self.config = MachineConfig(tape_size=self.tape_size, growable=self.growable)
        self.breakpoints: set[int] = set()
        self.history: List[ExecutionState] = []
        self.hit_breakpoint: Optional[int] = None
        self._init_machine()

    def _init_machine(self) -> None:
        self.machine: VirtualMachine[ByteCell] = VirtualMachine(
            self.program, self.config, max_steps=self.max_steps
        )
        self._input = io.BytesIO(bytes(self.input_template))
        self._output = io.BytesIO()
        self.step_iter = self.machine.step(
            self._input,
            self._output,
            tape_window=self.tape_window,
        )
        self.finished = False
        self.error: Optional[ExecutionError] = None
        self._record_state(self.machine.snapshot(self.tape_window))

    def restart(self) -> None:
        self._init_machine()

    @property
    def instruction_code(self) -> str:
        return self.program.code

    @property
    def output(self) -> bytes:
        return self._output.getvalue()

    def _record_state(self, state: ExecutionState) -> ExecutionState:
        state = dataclasses.replace(state, output=self._output.getvalue())
        self.history.append(state)
        if len(self.history) > self.history_limit:
            self.history.pop(0)
        self.last_state = state
        return state

    def step_forward(self, count: int = 1) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        if count <= 0:
            return states
        self.hit_breakpoint = None
        for _ in range(count):
            if self.finished:
                break
            try:
                state = next(self.step_iter)
            except StopIteration:
                self.finished = True
                break
            except StepLimitExceeded:
                self.finished = True
                raise
            except ExecutionError as exc:
                self.finished = True
                self.error = exc
                raise
            state = self._record_state(state)
            states.append(state)
            if state.instruction is None and state.ip >= state.code_length:
                self.finished = True
                break
            if state.ip in self.breakpoints:
                self.hit_breakpoint = state.ip
                break
        if not states and self.finished:
            self.hit_breakpoint = None
        return states

    def run_until_break(self, limit: Optional[int] = None) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        executed = 0
        while limit is None or executed < limit:
            step_states = self.step_forward(1)
            if not step_states:
                break
            states.extend(step_states)
            executed += 1
            if self.hit_breakpoint is not None:
                break
        return states

    def current_state(self) -> ExecutionState:
        return self.last_state

    def add_breakpoint(self, ip: int) -> None:
        self.breakpoints.add(ip)

    def remove_breakpoint(self, ip: int) -> bool:
        if ip in self.breakpoints:
            self.breakpoints.remove(ip)
            return True
        return False

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    def list_breakpoints(self) -> List[int]:
        return sorted(self.breakpoints)

    def is_finished(self) -> bool:
        return self.finished


def format_state(state: ExecutionState, code: str) -> str:
    lines: List[str] = []
    instruction = state.instruction if state.instruction is not None else "(init)"
    location = ""
    if state.line is not None:
        location = f" at {state.line}:{state.column}"
    lines.append(
        f"step={state.step} ip={state.ip}/{state.code_length} "
        f"instruction={instruction!r}{location} head={state.head}"
    )
    if state.output:
        lines.append(f"output={state.output.decode('latin-1')!r}")
    tape_parts: List[str] = []
    for idx, value in enumerate(state.tape):
        absolute = state.tape_start + idx
        cell_repr = f"{absolute}:{value:03}"
        if absolute == state.head:
            tape_parts.append(f"[{cell_repr}]")
        else:
            tape_parts.append(f" {cell_repr} ")
    lines.append("tape=" + " ".join(tape_parts))
    lines.append(f"code={_format_code_window(code, state.ip)}")
    return "\n".join(lines)


def _format_code_window(code: str, ip: int, window: int = 16) -> str:
    if not code:
        return "(empty)"
    start = max(0, ip - window)
    end = min(len(code), ip + window + 1)
    pieces: List[str] = []
    for index in range(start, end):
        ch = code[index]
        if index == ip:
            pieces.append(f"[{ch}]")
        else:
            pieces.append(ch)
    if ip >= len(code):
        pieces.append("[END]")
    return "".join(pieces)


def run_repl(session: VisualizerSession) -> None:
    print("bft visualizer (type 'help' for commands)")
    _print_state(session.current_state(), session)
    while True:
        try:
            line = input("(bft) ").strip()
        except EOFError:
            print()
            break
        if not line:
            continue
        parts = shlex.split(line)
        command = parts[0].lower()
        args = parts[1:]
        try:
            if command in {"n", "next"}:
                count = max(1, int(args[0])) if args else 1
                states = session.step_forward(count)
                if states:
                    _print_state(states[-1], session)
                elif session.is_finished():
                    print("Program has finished.")
            elif command in {"r", "run"}:
                limit = int(args[0]) if args else None
                states = session.run_until_break(limit)
                if states:
                    _print_state(states[-1], session)
                    if session.hit_breakpoint is not None:
                        print(f"Stopped at breakpoint {session.hit_breakpoint}.")
                        session.hit_breakpoint = None
                elif session.is_finished():
                    print("Program has finished.")
            elif command == "state":
                _print_state(session.current_state(), session)
            elif command == "history":
                count = int(args[0]) if args else 10
                for state in session.history[-count:]:
                    _print_state(state, session)
            elif command == "break":
                if not args:
                    print("Specify an instruction index.")
                    continue
                ip = int(args[0])
                session.add_breakpoint(ip)
                print(f"Breakpoint set at {ip}.")
            elif command == "breaks":
                points = session.list_breakpoints()
                if not points:
                    print("No breakpoints.")
                else:
                    print("Breakpoints:", ", ".join(map(str, points)))
            elif command == "clear":
                if not args:
                    session.clear_breakpoints()
                    print("All breakpoints cleared.")
                else:
                    ip = int(args[0])
                    if session.remove_breakpoint(ip):
                        print(f"Breakpoint {ip} removed.")
                    else:
                        print(f"No breakpoint at {ip}.")
            elif command == "restart":
                session.restart()
                print("Session restarted.")
                _print_state(session.current_state(), session)
            elif command in {"quit", "exit"}:
                break
            elif command == "help":
                _print_help()
            else:
                print("Unknown command, see 'help'.")
        except ValueError:
            print("Invalid number.", file=sys.stderr)
        except StepLimitExceeded as exc:
            print(f"Step limit reached: {exc}", file=sys.stderr)
        except ExecutionError as exc:
            print(f"Execution failed: {exc}", file=sys.stderr)


def _print_state(state: ExecutionState, session: VisualizerSession) -> None:
    print("-" * 40)
    print(format_state(state, session.instruction_code))


def _print_help() -> None:
    print(
        "Commands:\n"
        "  next [N]    : execute N instructions (default 1)\n"
        "  run [N]     : run until a breakpoint, the end, or N instructions\n"
        "  state       : show the current state\n"
        "  history [N] : show the last N states\n"
        "  break IP    : set a breakpoint at instruction index IP\n"
        "  breaks      : list breakpoints\n"
        "  clear [IP]  : remove a breakpoint (all when IP is omitted)\n"
        "  restart     : reset the session\n"
        "  quit/exit   : leave\n"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="bft-visualizer", description="Step through a BF program")
    parser.add_argument("source", help="Path to the BF program")
    parser.add_argument("--input", default="", help="Text supplied to ',' instructions")
    parser.add_argument(
        "--max-steps",
        type=positive_int,
        default=5_000_000,
        help="Step budget (default: 5,000,000)",
    )
    parser.add_argument("--tape-window", type=int, default=10, help="Cells shown on each side of the head")
    parser.add_argument(
        "--history-limit",
        type=positive_int,
        default=200,
        help="Number of states kept in the history",
    )
    parser.add_argument("-c", "--cells", type=positive_int, default=DEFAULT_TAPE_SIZE, help="Tape size")
    parser.add_argument(
        "-e",
        "--extensible",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Grow the tape on demand",
    )
    args = parser.parse_args(argv)

    try:
        source_text = Path(args.source).read_bytes().decode("utf-8", errors="replace")
    except OSError as exc:
        print(f"Cannot open file: {exc}", file=sys.stderr)
        return 1

    try:
        session = VisualizerSession(
            source_text,
            input_template=_to_input_bytes(args.input),
            tape_window=args.tape_window,
            max_steps=args.max_steps,
            history_limit=args.history_limit,
            tape_size=args.cells,
            growable=args.extensible,
            source_name=args.source,
        )
    except BftError as exc:
        print(f"Invalid program: {exc}", file=sys.stderr)
        return 1

    run_repl(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
