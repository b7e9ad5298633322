"""LMC Virtual Machine Memory

Flat, bounds-checked array of signed numeric cells.
"""

from typing import Dict, Iterable, Set, Tuple

# Largest number of cells a 3-digit address can reach
MAX_MEMORY_SIZE = 999
DEFAULT_MEMORY_SIZE = 512

CELL_WIDTHS = (16, 32, 64)
DEFAULT_CELL_WIDTH = 64


class MemoryException(Exception):
    """Base exception for memory-related errors."""
    pass


class OutOfBoundsException(MemoryException):
    """Exception for addresses outside the configured memory size."""

    def __init__(self, address: int, size: int):
        super().__init__(f"Address {address} out of bounds (memory size {size})")
        self.address = address
        self.size = size


def wrap_signed(value: int, width: int) -> int:
    """Wrap an integer into the two's complement range of `width` bits."""
    half = 1 << (width - 1)
    return ((value + half) % (1 << width)) - half


class Memory:
    """LMC Virtual Machine memory unit."""

    def __init__(self, size: int = DEFAULT_MEMORY_SIZE, cell_width: int = DEFAULT_CELL_WIDTH):
        """Initialize memory.

        Args:
            size: Number of cells (1 to 999)
            cell_width: Bits per cell, one of 16, 32 or 64
        """
        if not 1 <= size <= MAX_MEMORY_SIZE:
            raise ValueError(f"Memory size must be between 1 and {MAX_MEMORY_SIZE}, got {size}")
        if cell_width not in CELL_WIDTHS:
            raise ValueError(f"Cell width must be one of {CELL_WIDTHS}, got {cell_width}")

        self.cell_width = cell_width
        self.max_value = (1 << (cell_width - 1)) - 1
        self.cells = [0] * size

        # Addresses reserved as data by the loader
        self.data_addresses: Set[int] = set()

        # Memory access statistics
        self.read_count = 0
        self.write_count = 0

    @property
    def size(self) -> int:
        return len(self.cells)

    def __len__(self) -> int:
        return len(self.cells)

    def encode(self, value: int) -> int:
        """Narrow a value to what a cell stores.

        Only the low `cell_width` bits are kept and reinterpreted as a signed
        value. STA relies on this when the accumulator is wider than a cell.
        """
        return wrap_signed(value, self.cell_width)

    def check_address(self, address: int) -> int:
        """Return `address` if it lies in memory, else raise OutOfBoundsException."""
        if not 0 <= address < len(self.cells):
            raise OutOfBoundsException(address, len(self.cells))
        return address

    def read(self, address: int) -> int:
        """Read the cell at `address`."""
        self.check_address(address)
        self.read_count += 1
        return self.cells[address]

    def write(self, address: int, value: int) -> None:
        """Write `value` (narrowed to the cell width) to `address`.

        A write replaces the loader's data value, so the cell loses its data
        reservation and is decoded like any other cell from then on.
        """
        self.check_address(address)
        self.write_count += 1
        self.cells[address] = self.encode(value)
        self.data_addresses.discard(address)

    def is_data(self, address: int) -> bool:
        """True if the loader reserved `address` as a data cell."""
        return address in self.data_addresses

    def load(self, cells: Iterable[int], data_addresses: Iterable[int] = ()) -> None:
        """Replace the whole memory with an image.

        Cells past the end of the image are zeroed. Callers validate the
        image length first.
        """
        image = [self.encode(value) for value in cells]
        if len(image) > len(self.cells):
            raise MemoryException(f"Image too large: {len(image)} > {len(self.cells)}")
        reserved = {self.check_address(addr) for addr in data_addresses}

        self.cells = image + [0] * (len(self.cells) - len(image))
        self.data_addresses = reserved
        self.read_count = 0
        self.write_count = 0

    def clear(self) -> None:
        """Zero all cells and drop data reservations."""
        self.cells = [0] * len(self.cells)
        self.data_addresses = set()
        self.read_count = 0
        self.write_count = 0

    def snapshot(self) -> Tuple[int, ...]:
        """Copy of all cell values."""
        return tuple(self.cells)

    def dump(self, start: int = 0, count: int = 16) -> Dict[int, int]:
        """Dump memory contents for debugging.

        Args:
            start: First address
            count: Number of cells

        Returns:
            Dictionary mapping addresses to values
        """
        end = min(start + count, len(self.cells))
        return {addr: self.cells[addr] for addr in range(max(0, start), end)}

    def get_usage(self) -> float:
        """Percentage of non-zero cells."""
        non_zero = sum(1 for x in self.cells if x != 0)
        return (non_zero / len(self.cells)) * 100.0

    def get_memory_map(self) -> Dict[str, object]:
        """Get memory layout information for debugging."""
        return {
            'size': len(self.cells),
            'cell_width': self.cell_width,
            'data_cells': sorted(self.data_addresses),
            'usage': self.get_usage(),
            'statistics': {
                'reads': self.read_count,
                'writes': self.write_count
            }
        }
