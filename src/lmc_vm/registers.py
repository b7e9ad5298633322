"""LMC Virtual Machine Registers

Accumulator, program counter and status flags.
"""

from dataclasses import dataclass

from .memory import wrap_signed

ACCUMULATOR_WIDTHS = (8, 16, 32, 64)
DEFAULT_ACCUMULATOR_WIDTH = 64


@dataclass(frozen=True)
class RegisterSnapshot:
    """Read-only copy of the register file."""
    accumulator: int
    program_counter: int
    overflow: bool
    negative: bool
    width: int


class RegisterFile:
    """Accumulator register file with configurable width.

    The accumulator holds a signed two's complement value of `width` bits.
    Every store wraps modulo 2**width; the negative flag always reflects the
    sign of the stored value.
    """

    def __init__(self, width: int = DEFAULT_ACCUMULATOR_WIDTH):
        if width not in ACCUMULATOR_WIDTHS:
            raise ValueError(f"Accumulator width must be one of {ACCUMULATOR_WIDTHS}, got {width}")

        self.width = width
        self.min_value = -(1 << (width - 1))
        self.max_value = (1 << (width - 1)) - 1

        self.accumulator = 0
        self.program_counter = 0
        self.overflow = False
        self.negative = False

    def reset(self) -> None:
        """Reset registers to initial state."""
        self.accumulator = 0
        self.program_counter = 0
        self.overflow = False
        self.negative = False

    def wrap(self, value: int) -> int:
        """Wrap `value` into the accumulator range."""
        return wrap_signed(value, self.width)

    def apply_arithmetic(self, result: int) -> int:
        """Store the result of ADD/SUB.

        Args:
            result: The true mathematical result

        Returns:
            The wrapped value now held in the accumulator
        """
        self.accumulator = self.wrap(result)
        self.overflow = not (self.min_value <= result <= self.max_value)
        self.negative = self.accumulator < 0
        return self.accumulator

    def apply_value(self, value: int) -> int:
        """Store a non-arithmetic result (load, input, bitwise op).

        The overflow flag is left as it was.
        """
        self.accumulator = self.wrap(value)
        self.negative = self.accumulator < 0
        return self.accumulator

    def refresh_flags(self) -> None:
        """Recompute the negative flag from the accumulator."""
        self.negative = self.accumulator < 0

    def advance(self) -> int:
        """Move the program counter to the next cell and return the old value."""
        pc = self.program_counter
        self.program_counter += 1
        return pc

    def to_unsigned(self, value: int) -> int:
        """Two's complement bit pattern of `value` at accumulator width."""
        return value & ((1 << self.width) - 1)

    def snapshot(self) -> RegisterSnapshot:
        return RegisterSnapshot(
            accumulator=self.accumulator,
            program_counter=self.program_counter,
            overflow=self.overflow,
            negative=self.negative,
            width=self.width,
        )
