from __future__ import annotations

from typing import Callable, Generic, List, Optional, TypeVar

from .cells import ByteCell, CellKind

DEFAULT_TAPE_SIZE = 3000

C = TypeVar("C", bound=CellKind)


class Tape(Generic[C]):
    """Linear memory of cells.

    A fixed tape is pre-allocated to ``size`` zero cells. A growable tape
    starts empty, appends zero cells on demand and ignores ``size``.
    """

    def __init__(
        self,
        size: int = DEFAULT_TAPE_SIZE,
        growable: bool = False,
        cell_factory: Callable[[], C] = ByteCell,  # type: ignore[assignment]
    ) -> None:
        if size < 1:
            raise ValueError("tape size must be a positive integer")
        self.size = size
        self.growable = growable
        self._cell_factory = cell_factory
        self.cells: List[C] = [] if growable else [cell_factory() for _ in range(size)]

    def __len__(self) -> int:
        return len(self.cells)

    def can_reach(self, index: int) -> bool:
        if index < 0:
            return False
        return self.growable or index < self.size

    def extend_to(self, index: int) -> None:
        while len(self.cells) <= index:
            self.cells.append(self._cell_factory())

    def cell(self, index: int) -> C:
        if self.growable:
            self.extend_to(index)
        return self.cells[index]

    def values(self, start: int = 0, end: Optional[int] = None) -> List[int]:
        return [cell.get_byte() for cell in self.cells[start:end]]


__all__ = ["DEFAULT_TAPE_SIZE", "Tape"]
