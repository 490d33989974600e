from .cells import ByteCell, CellKind, wrapping_add, wrapping_sub
from .errors import (
    BftError,
    ExecutionError,
    InputOutputError,
    LoaderError,
    MalformedProgram,
    TapeOverflow,
    TapeUnderflow,
    UnmatchedCloseBracket,
    UnmatchedOpenBracket,
)
from .program import (
    Instruction,
    PositionedInstruction,
    Program,
    format_listing,
    load,
    load_file,
    parse,
    validate_brackets,
)
from .tape import DEFAULT_TAPE_SIZE, Tape
from .visualizer import VisualizerSession
from .vm import ExecutionState, MachineConfig, StepLimitExceeded, VirtualMachine, execute

__all__ = [
    "BftError",
    "ByteCell",
    "CellKind",
    "DEFAULT_TAPE_SIZE",
    "ExecutionError",
    "ExecutionState",
    "InputOutputError",
    "Instruction",
    "LoaderError",
    "MachineConfig",
    "MalformedProgram",
    "PositionedInstruction",
    "Program",
    "StepLimitExceeded",
    "Tape",
    "TapeOverflow",
    "TapeUnderflow",
    "UnmatchedCloseBracket",
    "UnmatchedOpenBracket",
    "VirtualMachine",
    "VisualizerSession",
    "execute",
    "format_listing",
    "load",
    "load_file",
    "parse",
    "validate_brackets",
    "wrapping_add",
    "wrapping_sub",
]
