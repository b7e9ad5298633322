"""LMC Virtual Machine

Main virtual machine that owns memory, registers and CPU, and exposes the
control surface a front end drives.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .cpu import CPU, CPUState, Fault, RunReport
from .decoder import disassemble
from .image_loader import ImageLoaderError, ProgramImage, load_image_file, parse_image, parse_number
from .memory import DEFAULT_CELL_WIDTH, DEFAULT_MEMORY_SIZE, Memory
from .registers import DEFAULT_ACCUMULATOR_WIDTH, RegisterFile, RegisterSnapshot

logger = logging.getLogger(__name__)

# Steps per run_until_halt_or_break() call before control returns to the host
DEFAULT_RUN_BUDGET = 10_000


class VMException(Exception):
    """Base exception for virtual machine errors."""
    pass


class ImageTooLargeException(VMException):
    """Exception for images longer than the configured memory."""

    def __init__(self, length: int, capacity: int):
        super().__init__(f"Program image too large: {length} cells > memory size {capacity}")
        self.length = length
        self.capacity = capacity


class InvalidImageException(VMException):
    """Exception for images with cells the loader cannot accept."""
    pass


@dataclass(frozen=True)
class VMSnapshot:
    """Copy of everything a renderer needs between steps."""
    state: CPUState
    registers: RegisterSnapshot
    memory: Tuple[int, ...]
    data_addresses: FrozenSet[int]
    breakpoints: FrozenSet[int]
    outputs: Tuple[int, ...]
    fault: Optional[Fault]
    instruction_count: int


class VirtualMachine:
    """LMC Virtual Machine - coordinates all components."""

    def __init__(self,
                 memory_size: int = DEFAULT_MEMORY_SIZE,
                 accumulator_width: int = DEFAULT_ACCUMULATOR_WIDTH,
                 cell_width: int = DEFAULT_CELL_WIDTH):
        """Initialize virtual machine.

        Args:
            memory_size: Number of memory cells (1 to 999)
            accumulator_width: Accumulator bits, one of 8, 16, 32, 64
            cell_width: Memory cell bits, one of 16, 32, 64
        """
        self.memory = Memory(memory_size, cell_width)
        self.registers = RegisterFile(accumulator_width)
        self.cpu = CPU(self.memory, self.registers)

        # Debugging
        self.breakpoints: Set[int] = set()

    # Loading

    def load(self, image: Union[ProgramImage, Sequence[int]], data_addresses: Iterable[int] = ()) -> None:
        """Load a program image, replacing memory and resetting registers.

        The image is validated before anything changes, so a rejected image
        leaves the previous program and registers intact.

        Args:
            image: Cell values, or a ProgramImage carrying its own data cells
            data_addresses: Cells reserved as data (ignored for ProgramImage)

        Raises:
            ImageTooLargeException: If the image has more cells than memory
            InvalidImageException: If a cell or data address is unusable
        """
        if isinstance(image, ProgramImage):
            data_addresses = image.data_addresses
            image = image.cells

        cells = list(image)
        data_addresses = set(data_addresses)

        if len(cells) > self.memory.size:
            raise ImageTooLargeException(len(cells), self.memory.size)

        for addr, value in enumerate(cells):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidImageException(f"Cell {addr} is not an integer: {value!r}")
            if value < 0:
                raise InvalidImageException(f"Cell {addr} is negative: {value}")
            if value > self.memory.max_value:
                raise InvalidImageException(
                    f"Cell {addr} does not fit a {self.memory.cell_width}-bit cell: {value}"
                )

        for addr in data_addresses:
            if not 0 <= addr < len(cells):
                raise InvalidImageException(f"Data address {addr} is outside the image")

        self.memory.load(cells, data_addresses)
        self.cpu.reset()
        logger.info("Loaded %d cells (%d data)", len(cells), len(data_addresses))

    def load_text(self, text: str) -> None:
        """Load a program image from its text form."""
        self.load(parse_image(text))

    def load_file(self, filename: Union[str, Path]) -> None:
        """Load a program image from a file."""
        self.load(load_image_file(filename))

    def reset(self) -> None:
        """Zero memory and registers."""
        self.memory.clear()
        self.cpu.reset()
        logger.info("Virtual machine reset")

    # Execution

    def step(self) -> CPUState:
        """Execute one instruction and return the resulting state."""
        return self.cpu.step()

    def run_until_halt_or_break(self, max_steps: Optional[int] = DEFAULT_RUN_BUDGET,
                                time_slice: Optional[float] = None) -> RunReport:
        """Run a bounded burst of instructions.

        Stops on HLT, a fault, an INP with no queued input, a breakpoint, the
        step budget or the wall-clock slice, whichever comes first. Call
        again to continue.
        """
        return self.cpu.run(max_steps, time_slice, self.breakpoints)

    def provide_input(self, value: int) -> None:
        """Queue a value for INP."""
        self.cpu.provide_input(value)

    def take_output(self) -> Optional[int]:
        """Pop the oldest output value, or None."""
        return self.cpu.take_output()

    # Breakpoints

    def set_breakpoint(self, address: int) -> None:
        """Set a breakpoint at the given address."""
        self.breakpoints.add(self.memory.check_address(address))

    def clear_breakpoint(self, address: int) -> None:
        """Clear a breakpoint at the given address."""
        self.breakpoints.discard(address)

    def clear_all_breakpoints(self) -> None:
        """Clear all breakpoints."""
        self.breakpoints.clear()

    # Read-only state

    @property
    def state(self) -> CPUState:
        return self.cpu.state

    @property
    def fault(self) -> Optional[Fault]:
        return self.cpu.fault

    @property
    def halted(self) -> bool:
        return self.cpu.state in (CPUState.HALTED, CPUState.FAULTED)

    def get_registers(self) -> RegisterSnapshot:
        return self.registers.snapshot()

    def memory_snapshot(self) -> Tuple[int, ...]:
        return self.memory.snapshot()

    def snapshot(self) -> VMSnapshot:
        """Copy of the full machine state."""
        return VMSnapshot(
            state=self.cpu.state,
            registers=self.registers.snapshot(),
            memory=self.memory.snapshot(),
            data_addresses=frozenset(self.memory.data_addresses),
            breakpoints=frozenset(self.breakpoints),
            outputs=tuple(self.cpu.outputs),
            fault=self.cpu.fault,
            instruction_count=self.cpu.instruction_count,
        )

    def get_state(self) -> Dict[str, Any]:
        """Get complete VM state for debugging."""
        return {
            'vm': {
                'breakpoints': sorted(self.breakpoints)
            },
            'cpu': self.cpu.get_state(),
            'memory': self.memory.get_memory_map()
        }

    def read_memory(self, address: int) -> int:
        """Read memory value."""
        return self.memory.read(address)

    def write_memory(self, address: int, value: int) -> None:
        """Write memory value."""
        self.memory.write(address, value)

    def get_memory_dump(self, start: int = 0, count: int = 16) -> Dict[int, int]:
        """Get memory dump for debugging."""
        return self.memory.dump(start, count)

    def get_program_dump(self, start: int = 0, count: int = 10) -> List[str]:
        """Get a disassembly listing for debugging."""
        result = []
        for addr, value in self.memory.dump(start, count).items():
            text = f"DAT {value}" if self.memory.is_data(addr) else disassemble(value)
            result.append(f"{addr:03d}: {text}")
        return result


def create_vm(config: Optional[Dict[str, Any]] = None) -> VirtualMachine:
    """Create a virtual machine with optional configuration.

    Args:
        config: Optional configuration dictionary

    Returns:
        Configured VirtualMachine instance
    """
    if config is None:
        config = {}

    return VirtualMachine(
        memory_size=config.get('memory_size', DEFAULT_MEMORY_SIZE),
        accumulator_width=config.get('accumulator_width', DEFAULT_ACCUMULATOR_WIDTH),
        cell_width=config.get('cell_width', DEFAULT_CELL_WIDTH)
    )


def _read_stdin_value() -> int:
    """Prompt for an integer in headless mode."""
    while True:
        text = input("Input: ")
        try:
            return parse_number(text)
        except ValueError:
            print(f"Not an integer: {text!r}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for VM when run as script."""
    import argparse

    parser = argparse.ArgumentParser(description='LMC Virtual Machine')
    parser.add_argument('file', type=str, help='Program image to load and run')
    parser.add_argument('--input', '-i', type=int, action='append', default=[],
                        help='Queue an input value (repeatable)')
    parser.add_argument('--max-steps', type=int, default=1_000_000,
                        help='Give up after this many instructions')
    parser.add_argument('--memory-size', type=int, default=DEFAULT_MEMORY_SIZE, help='Memory cells')
    parser.add_argument('--width', type=int, default=DEFAULT_ACCUMULATOR_WIDTH, help='Accumulator bits')
    parser.add_argument('--cell-width', type=int, default=DEFAULT_CELL_WIDTH, help='Memory cell bits')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log every instruction')

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        vm = create_vm({
            'memory_size': args.memory_size,
            'accumulator_width': args.width,
            'cell_width': args.cell_width,
        })
        vm.load_file(args.file)
        for value in args.input:
            vm.provide_input(value)

        steps = 0
        while steps < args.max_steps:
            report = vm.run_until_halt_or_break(min(DEFAULT_RUN_BUDGET, args.max_steps - steps))
            steps += report.steps

            output = vm.take_output()
            while output is not None:
                print(output)
                output = vm.take_output()

            if report.state == CPUState.AWAITING_INPUT:
                vm.provide_input(_read_stdin_value())
            elif vm.halted:
                break

        if vm.state == CPUState.FAULTED:
            print(f"Fault: {vm.fault.message}", file=sys.stderr)
            return 1
        if vm.state != CPUState.HALTED:
            print(f"Stopped after {steps} steps without halting", file=sys.stderr)
            return 1

    except FileNotFoundError as e:
        print(f"Error: File not found - {e}", file=sys.stderr)
        return 1
    except (VMException, ImageLoaderError, ValueError, EOFError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
