from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO, Callable, Generic, Iterator, List, Optional

from .cells import ByteCell
from .errors import (
    ExecutionError,
    InputOutputError,
    MalformedProgram,
    TapeOverflow,
    TapeUnderflow,
)
from .program import Instruction, PositionedInstruction, Program, SourceText, load
from .tape import DEFAULT_TAPE_SIZE, C, Tape

logger = logging.getLogger(__name__)


class StepLimitExceeded(RuntimeError):
    """Raised when execution exceeds the configured step budget."""


@dataclass(frozen=True)
class MachineConfig:
    tape_size: int = DEFAULT_TAPE_SIZE
    growable: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.tape_size, bool) or not isinstance(self.tape_size, int):
            raise ValueError("tape_size must be a positive integer")
        if self.tape_size < 1:
            raise ValueError("tape_size must be a positive integer")


@dataclass
class ExecutionState:
    step: int
    ip: int
    instruction: Optional[str]
    line: Optional[int]
    column: Optional[int]
    head: int
    tape_start: int
    tape: List[int]
    code_length: int
    output: bytes = b""


class VirtualMachine(Generic[C]):
    """Executes a :class:`Program` against a tape of cells.

    The machine never mutates the program, so one validated program can be
    run by any number of machines. A failed step leaves ``ip`` and ``head``
    where they were.
    """

    def __init__(
        self,
        program: Program,
        config: Optional[MachineConfig] = None,
        *,
        cell_factory: Callable[[], C] = ByteCell,  # type: ignore[assignment]
        max_steps: Optional[int] = None,
    ) -> None:
        self.program = program
        self.config = config or MachineConfig()
        self.max_steps = max_steps
        self._cell_factory = cell_factory
        self.reset()

    def reset(self) -> None:
        self.tape: Tape[C] = Tape(
            self.config.tape_size, self.config.growable, self._cell_factory
        )
        self.head = 0
        self.ip = 0
        self.steps = 0

    @property
    def halted(self) -> bool:
        return self.ip >= len(self.program.instructions)

    def run(self, input_stream: BinaryIO, output_stream: BinaryIO) -> None:
        logger.debug(
            "running %s: %d instructions, tape_size=%d, growable=%s",
            self.program.source_name,
            len(self.program.instructions),
            self.config.tape_size,
            self.config.growable,
        )
        try:
            while not self.halted:
                self.advance(input_stream, output_stream)
        except ExecutionError as exc:
            logger.debug("halted after %d steps: %s", self.steps, exc)
            raise
        logger.debug("%s finished after %d steps", self.program.source_name, self.steps)

    def step(
        self,
        input_stream: BinaryIO,
        output_stream: BinaryIO,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        while not self.halted:
            positioned = self.advance(input_stream, output_stream)
            yield self.snapshot(tape_window, positioned)

        # Emit final snapshot indicating completion
        yield self.snapshot(tape_window)

    def advance(self, input_stream: BinaryIO, output_stream: BinaryIO) -> PositionedInstruction:
        if self.halted:
            raise RuntimeError("program has already halted")
        if self.max_steps is not None and self.steps >= self.max_steps:
            raise StepLimitExceeded(
                f"{self.program.source_name} exceeded the step budget of {self.max_steps}"
            )
        positioned = self.program.instructions[self.ip]
        self.ip = self._execute_instruction(positioned, input_stream, output_stream)
        self.steps += 1
        return positioned

    def snapshot(
        self,
        tape_window: int = 10,
        positioned: Optional[PositionedInstruction] = None,
    ) -> ExecutionState:
        start = max(0, self.head - tape_window)
        end = self.head + tape_window + 1
        return ExecutionState(
            step=self.steps,
            ip=self.ip,
            instruction=positioned.instruction.symbol if positioned else None,
            line=positioned.line if positioned else None,
            column=positioned.column if positioned else None,
            head=self.head,
            tape_start=start,
            tape=self.tape.values(start, end),
            code_length=len(self.program.instructions),
        )

    def _execute_instruction(
        self,
        positioned: PositionedInstruction,
        input_stream: BinaryIO,
        output_stream: BinaryIO,
    ) -> int:
        instruction = positioned.instruction
        new_ip = self.ip + 1
        if instruction is Instruction.MOVE_RIGHT:
            if not self.tape.can_reach(self.head + 1):
                raise self._error(TapeOverflow, positioned)
            if self.tape.growable:
                self.tape.extend_to(self.head + 1)
            self.head += 1
        elif instruction is Instruction.MOVE_LEFT:
            if self.head == 0:
                raise self._error(TapeUnderflow, positioned)
            self.head -= 1
        elif instruction is Instruction.INCREMENT:
            self.tape.cell(self.head).wrapping_increment()
        elif instruction is Instruction.DECREMENT:
            self.tape.cell(self.head).wrapping_decrement()
        elif instruction is Instruction.OUTPUT:
            self._write(positioned, output_stream)
        elif instruction is Instruction.INPUT:
            self._read(positioned, input_stream)
        elif instruction is Instruction.JUMP_IF_ZERO:
            partner = self._partner(positioned)
            if self.tape.cell(self.head).get_byte() == 0:
                new_ip = partner + 1
        elif instruction is Instruction.JUMP_IF_NON_ZERO:
            partner = self._partner(positioned)
            if self.tape.cell(self.head).get_byte() != 0:
                new_ip = partner + 1
        return new_ip

    def _partner(self, positioned: PositionedInstruction) -> int:
        bracket_map = self.program.bracket_map
        if bracket_map is None or self.ip not in bracket_map:
            raise self._error(MalformedProgram, positioned)
        return bracket_map[self.ip]

    def _read(self, positioned: PositionedInstruction, input_stream: BinaryIO) -> None:
        try:
            data = input_stream.read(1)
        except (OSError, ValueError) as exc:
            raise self._error(InputOutputError, positioned, str(exc)) from exc
        if not data:
            raise self._error(InputOutputError, positioned, "end of input")
        self.tape.cell(self.head).set_byte(data[0])

    def _write(self, positioned: PositionedInstruction, output_stream: BinaryIO) -> None:
        value = self.tape.cell(self.head).get_byte()
        try:
            output_stream.write(bytes((value,)))
            output_stream.flush()
        except (OSError, ValueError) as exc:
            raise self._error(InputOutputError, positioned, str(exc)) from exc

    def _error(
        self,
        error_type: type,
        positioned: PositionedInstruction,
        detail: Optional[str] = None,
    ) -> ExecutionError:
        return error_type(positioned.line, positioned.column, self.program.source_name, detail)


def execute(
    source_text: SourceText,
    input_data: bytes = b"",
    *,
    config: Optional[MachineConfig] = None,
    max_steps: Optional[int] = None,
    source_name: str = "<string>",
) -> bytes:
    """Load, validate and run ``source_text``; return everything it wrote."""
    program = load(source_text, source_name)
    output = io.BytesIO()
    machine: VirtualMachine[ByteCell] = VirtualMachine(program, config, max_steps=max_steps)
    machine.run(io.BytesIO(input_data), output)
    return output.getvalue()


__all__ = [
    "ExecutionState",
    "MachineConfig",
    "StepLimitExceeded",
    "VirtualMachine",
    "execute",
]
