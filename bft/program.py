from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import LoaderError, UnmatchedCloseBracket, UnmatchedOpenBracket

logger = logging.getLogger(__name__)

SourceText = Union[str, bytes]


class Instruction(Enum):
    MOVE_RIGHT = ">"
    MOVE_LEFT = "<"
    INCREMENT = "+"
    DECREMENT = "-"
    OUTPUT = "."
    INPUT = ","
    JUMP_IF_ZERO = "["
    JUMP_IF_NON_ZERO = "]"

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @classmethod
    def from_symbol(cls, symbol: str) -> Optional["Instruction"]:
        return _BY_SYMBOL.get(symbol)


_BY_SYMBOL: Dict[str, Instruction] = {member.value: member for member in Instruction}

_DESCRIPTIONS: Dict[Instruction, str] = {
    Instruction.MOVE_RIGHT: "Increment data pointer",
    Instruction.MOVE_LEFT: "Decrement data pointer",
    Instruction.INCREMENT: "Increment byte",
    Instruction.DECREMENT: "Decrement byte",
    Instruction.OUTPUT: "Output byte",
    Instruction.INPUT: "Accept byte",
    Instruction.JUMP_IF_ZERO: "Zero jump",
    Instruction.JUMP_IF_NON_ZERO: "Non zero jump",
}


@dataclass(frozen=True)
class PositionedInstruction:
    instruction: Instruction
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}] {self.instruction.description}"


@dataclass(frozen=True)
class Program:
    """Parsed instruction stream of one source.

    ``bracket_map`` stays ``None`` until :meth:`validated` has checked the
    loops; the virtual machine refuses to jump without it.
    """

    source_name: str
    instructions: Tuple[PositionedInstruction, ...]
    bracket_map: Optional[Mapping[int, int]] = None

    def __len__(self) -> int:
        return len(self.instructions)

    def __hash__(self) -> int:
        # bracket_map is derived from instructions and not hashable
        return hash((self.source_name, self.instructions))

    @property
    def is_validated(self) -> bool:
        return self.bracket_map is not None

    @property
    def code(self) -> str:
        return "".join(item.instruction.symbol for item in self.instructions)

    def validate_brackets(self) -> Dict[int, int]:
        bracket_map: Dict[int, int] = {}
        opened: List[int] = []
        for index, positioned in enumerate(self.instructions):
            if positioned.instruction is Instruction.JUMP_IF_ZERO:
                opened.append(index)
            elif positioned.instruction is Instruction.JUMP_IF_NON_ZERO:
                if not opened:
                    raise UnmatchedCloseBracket(
                        positioned.line, positioned.column, self.source_name
                    )
                start = opened.pop()
                bracket_map[start] = index
                bracket_map[index] = start
        if opened:
            # innermost bracket still open
            dangling = self.instructions[opened[-1]]
            raise UnmatchedOpenBracket(dangling.line, dangling.column, self.source_name)
        return bracket_map

    def validated(self) -> "Program":
        try:
            bracket_map = self.validate_brackets()
        except LoaderError as exc:
            logger.debug("bracket validation failed: %s", exc)
            raise
        logger.debug("%s: %d bracket pairs", self.source_name, len(bracket_map) // 2)
        return replace(self, bracket_map=MappingProxyType(bracket_map))

    def listing(self) -> Iterator[Tuple[Tuple[int, int], Instruction]]:
        for positioned in self.instructions:
            yield (positioned.line, positioned.column), positioned.instruction


def parse(source_text: SourceText, source_name: str = "<string>") -> Program:
    if isinstance(source_text, bytes):
        source_text = source_text.decode("utf-8", errors="replace")
    instructions: List[PositionedInstruction] = []
    line = 1
    column = 1
    for char in source_text:
        if char == "\n":
            line += 1
            column = 1
            continue
        instruction = Instruction.from_symbol(char)
        if instruction is not None:
            instructions.append(PositionedInstruction(instruction, line, column))
        column += 1
    logger.debug("%s: parsed %d instructions", source_name, len(instructions))
    return Program(source_name=source_name, instructions=tuple(instructions))


def validate_brackets(program: Program) -> Dict[int, int]:
    return program.validate_brackets()


def load(source_text: SourceText, source_name: str = "<string>") -> Program:
    """Parse ``source_text`` and return the validated program."""
    return parse(source_text, source_name).validated()


def load_file(path: Union[str, Path]) -> Program:
    source_path = Path(path)
    return load(source_path.read_bytes(), str(source_path))


def format_listing(program: Program) -> Iterator[str]:
    for positioned in program.instructions:
        yield f"[{program.source_name}:{positioned}"


__all__ = [
    "Instruction",
    "PositionedInstruction",
    "Program",
    "format_listing",
    "load",
    "load_file",
    "parse",
    "validate_brackets",
]
