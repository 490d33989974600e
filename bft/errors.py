from __future__ import annotations

from typing import Optional, Tuple


class BftError(Exception):
    """Base class for failures raised while loading or running a program.

    Every error points at the instruction that caused it through a 1-based
    ``line`` and ``column``.
    """

    kind = "Error"
    description = "program failed"

    def __init__(
        self,
        line: int,
        column: int,
        source_name: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.line = line
        self.column = column
        self.source_name = source_name
        self.detail = detail
        super().__init__(self._render())

    @property
    def position(self) -> Tuple[int, int]:
        return self.line, self.column

    def _render(self) -> str:
        message = f"{self.line}:{self.column}: {self.kind}: {self.description}"
        if self.source_name:
            message = f"{self.source_name}:{message}"
        if self.detail:
            message = f"{message} ({self.detail})"
        return message


class LoaderError(BftError):
    """Structural problem found before execution starts."""


class UnmatchedOpenBracket(LoaderError):
    kind = "UnmatchedOpenBracket"
    description = "no close bracket found matching bracket"


class UnmatchedCloseBracket(LoaderError):
    kind = "UnmatchedCloseBracket"
    description = "no open bracket found matching bracket"


class ExecutionError(BftError):
    """Failure that halts the virtual machine mid-program."""


class TapeOverflow(ExecutionError):
    kind = "TapeOverflow"
    description = "head moved beyond the end of the tape"


class TapeUnderflow(ExecutionError):
    kind = "TapeUnderflow"
    description = "head moved before the start of the tape"


class InputOutputError(ExecutionError):
    kind = "IOError"
    description = "byte transfer failed"


class MalformedProgram(ExecutionError):
    kind = "MalformedProgram"
    description = "loop instruction has no matching bracket; was the program validated?"


__all__ = [
    "BftError",
    "ExecutionError",
    "InputOutputError",
    "LoaderError",
    "MalformedProgram",
    "TapeOverflow",
    "TapeUnderflow",
    "UnmatchedCloseBracket",
    "UnmatchedOpenBracket",
]
