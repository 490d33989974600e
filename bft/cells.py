from __future__ import annotations

from typing import Protocol, runtime_checkable

CELL_MODULUS = 256


def wrapping_add(value: int, amount: int = 1) -> int:
    return (value + amount) % CELL_MODULUS


def wrapping_sub(value: int, amount: int = 1) -> int:
    return (value - amount) % CELL_MODULUS


@runtime_checkable
class CellKind(Protocol):
    """Capability a tape cell must provide to the virtual machine."""

    def wrapping_increment(self) -> None:
        ...

    def wrapping_decrement(self) -> None:
        ...

    def set_byte(self, value: int) -> None:
        ...

    def get_byte(self) -> int:
        ...


class ByteCell:
    """Unsigned 8-bit cell; arithmetic wraps modulo 256."""

    __slots__ = ("value",)

    def __init__(self, value: int = 0) -> None:
        self.value = value % CELL_MODULUS

    def wrapping_increment(self) -> None:
        self.value = wrapping_add(self.value)

    def wrapping_decrement(self) -> None:
        self.value = wrapping_sub(self.value)

    def set_byte(self, value: int) -> None:
        if not 0 <= value < CELL_MODULUS:
            raise ValueError(f"byte value out of range: {value}")
        self.value = value

    def get_byte(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"ByteCell({self.value})"


__all__ = ["ByteCell", "CELL_MODULUS", "CellKind", "wrapping_add", "wrapping_sub"]
