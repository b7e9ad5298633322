"""LMC Virtual Machine CPU

Fetch-decode-execute engine for the extended Little Man Computer.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, Optional

from .decoder import DecoderException, InvalidOpcodeException, Instruction, Opcode, decode
from .memory import Memory, MemoryException, OutOfBoundsException
from .registers import RegisterFile

logger = logging.getLogger(__name__)


class CPUException(Exception):
    """Base exception for CPU-related errors."""
    pass


class ProgramCounterOverflowException(CPUException):
    """Exception for control running off the end of memory."""

    def __init__(self, address: int):
        super().__init__(f"Program counter ran past the end of memory at {address}")
        self.address = address


class CPUState(Enum):
    """CPU execution states."""
    READY = "ready"
    RUNNING = "running"
    AWAITING_INPUT = "awaiting_input"
    HALTED = "halted"
    FAULTED = "faulted"


class FaultKind(Enum):
    OUT_OF_BOUNDS = "OutOfBounds"
    INVALID_OPCODE = "InvalidOpcode"
    PROGRAM_COUNTER_OVERFLOW = "ProgramCounterOverflow"


@dataclass(frozen=True)
class Fault:
    """Why the CPU faulted.

    `address` is the cell the faulting instruction was fetched from and
    `value` its raw contents (None when the fetch itself failed).
    """
    kind: FaultKind
    address: int
    value: Optional[int]
    message: str


class StopReason(Enum):
    HALTED = "halted"
    FAULTED = "faulted"
    AWAITING_INPUT = "awaiting_input"
    BREAKPOINT = "breakpoint"
    STEP_BUDGET = "step_budget"
    TIME_SLICE = "time_slice"


@dataclass(frozen=True)
class RunReport:
    """Outcome of one burst of execution."""
    state: CPUState
    steps: int
    reason: StopReason


_STATE_REASONS = {
    CPUState.HALTED: StopReason.HALTED,
    CPUState.FAULTED: StopReason.FAULTED,
    CPUState.AWAITING_INPUT: StopReason.AWAITING_INPUT,
}


class CPU:
    """LMC Virtual Machine CPU."""

    def __init__(self, memory: Memory, registers: RegisterFile):
        """Initialize CPU with the memory and register file it owns.

        Args:
            memory: Memory unit
            registers: Register file
        """
        self.memory = memory
        self.registers = registers

        self.state = CPUState.READY
        self.fault: Optional[Fault] = None

        # I/O queues bridging INP/OUT to the host
        self.inputs: Deque[int] = deque()
        self.outputs: Deque[int] = deque()

        # Execution statistics
        self.instruction_count = 0

        # Instruction set
        self.instruction_handlers: Dict[Opcode, Callable[[Instruction], None]] = {
            Opcode.HLT: self._exec_hlt,
            Opcode.ADD: self._exec_add,
            Opcode.SUB: self._exec_sub,
            Opcode.STA: self._exec_sta,
            Opcode.LDA: self._exec_lda,
            Opcode.LDR: self._exec_lda,
            Opcode.BRA: self._exec_bra,
            Opcode.BRZ: self._exec_brz,
            Opcode.BRP: self._exec_brp,
            Opcode.INP: self._exec_inp,
            Opcode.OUT: self._exec_out,
            Opcode.BWN: self._exec_bwn,
            Opcode.BWA: self._exec_bwa,
            Opcode.BWO: self._exec_bwo,
            Opcode.BWX: self._exec_bwx,
            Opcode.BSL: self._exec_bsl,
            Opcode.BSR: self._exec_bsr,
        }

    def reset(self) -> None:
        """Reset CPU to initial state."""
        self.registers.reset()
        self.state = CPUState.READY
        self.fault = None
        self.inputs.clear()
        self.outputs.clear()
        self.instruction_count = 0

    def provide_input(self, value: int) -> None:
        """Queue a value for the next INP."""
        self.inputs.append(value)
        if self.state == CPUState.AWAITING_INPUT:
            self.state = CPUState.RUNNING

    def take_output(self) -> Optional[int]:
        """Pop the oldest OUT value, or None if nothing is pending."""
        if self.outputs:
            return self.outputs.popleft()
        return None

    def step(self) -> CPUState:
        """Execute one instruction.

        Returns:
            The state after the step. AWAITING_INPUT means an INP found no
            queued input; the program counter still points at the INP.
        """
        if self.state in (CPUState.HALTED, CPUState.FAULTED):
            return self.state

        if self.state == CPUState.AWAITING_INPUT and not self.inputs:
            return self.state

        self.state = CPUState.RUNNING
        pc = self.registers.program_counter
        raw = None

        try:
            if pc >= self.memory.size:
                raise ProgramCounterOverflowException(pc)

            raw = self.memory.read(pc)
            self.registers.advance()

            if self.memory.is_data(pc):
                # Reserved data cell reached as code: skip it
                logger.debug("PC=%03d DAT %d skipped", pc, raw)
                self.instruction_count += 1
                return self.state

            instruction = decode(raw)
            logger.debug("PC=%03d %s ACC=%d", pc, instruction, self.registers.accumulator)

            self.instruction_handlers[instruction.opcode](instruction)

            if self.state == CPUState.AWAITING_INPUT:
                self.registers.program_counter = pc
            else:
                self.instruction_count += 1

        except (MemoryException, DecoderException, CPUException) as e:
            self._set_fault(e, pc, raw)

        return self.state

    def run(self, max_steps: Optional[int] = None, time_slice: Optional[float] = None,
            breakpoints: Iterable[int] = ()) -> RunReport:
        """Run until halted, faulted, waiting for input or interrupted.

        Args:
            max_steps: Step budget for this burst (None for unlimited)
            time_slice: Wall-clock seconds for this burst (None for unlimited)
            breakpoints: Addresses to stop in front of. Not checked before
                the first step, so a run can continue past a breakpoint.
        """
        breakpoints = frozenset(breakpoints)
        deadline = time.monotonic() + time_slice if time_slice is not None else None
        steps = 0

        while True:
            reason = _STATE_REASONS.get(self.state)
            if reason is not None and not (self.state == CPUState.AWAITING_INPUT and self.inputs):
                break

            if max_steps is not None and steps >= max_steps:
                reason = StopReason.STEP_BUDGET
                break

            if steps and self.registers.program_counter in breakpoints:
                reason = StopReason.BREAKPOINT
                break

            if deadline is not None and steps and time.monotonic() >= deadline:
                reason = StopReason.TIME_SLICE
                break

            self.step()
            steps += 1

        return RunReport(self.state, steps, reason)

    def _set_fault(self, error: Exception, pc: int, raw: Optional[int]) -> None:
        if isinstance(error, OutOfBoundsException):
            kind = FaultKind.OUT_OF_BOUNDS
        elif isinstance(error, InvalidOpcodeException):
            kind = FaultKind.INVALID_OPCODE
        elif isinstance(error, ProgramCounterOverflowException):
            kind = FaultKind.PROGRAM_COUNTER_OVERFLOW
        else:
            raise error

        self.fault = Fault(kind, pc, raw, str(error))
        self.state = CPUState.FAULTED
        logger.warning("CPU faulted at %03d: %s", pc, error)

    def _operand_value(self, instr: Instruction) -> int:
        return self.memory.read(instr.operand)

    # Instruction implementations

    def _exec_hlt(self, instr: Instruction) -> None:
        """HLT - Stop execution"""
        self.state = CPUState.HALTED
        logger.info("Halted after %d instructions", self.instruction_count + 1)

    def _exec_add(self, instr: Instruction) -> None:
        """ADD a - Accumulator plus Memory[a]"""
        self.registers.apply_arithmetic(self.registers.accumulator + self._operand_value(instr))

    def _exec_sub(self, instr: Instruction) -> None:
        """SUB a - Accumulator minus Memory[a]"""
        self.registers.apply_arithmetic(self.registers.accumulator - self._operand_value(instr))

    def _exec_sta(self, instr: Instruction) -> None:
        """STA a - Store the accumulator, keeping only the bits a cell holds"""
        self.memory.write(instr.operand, self.registers.accumulator)

    def _exec_lda(self, instr: Instruction) -> None:
        """LDA a - Load Memory[a]; LDR a - Load Memory[Memory[a]]"""
        address = instr.operand
        if instr.indirect:
            address = self.memory.read(address)
        self.registers.apply_value(self.memory.read(address))

    def _branch(self, target: int) -> None:
        self.registers.program_counter = self.memory.check_address(target)

    def _exec_bra(self, instr: Instruction) -> None:
        """BRA a - Branch always"""
        self._branch(instr.operand)
        self.registers.refresh_flags()

    def _exec_brz(self, instr: Instruction) -> None:
        """BRZ a - Branch if the accumulator is zero"""
        if self.registers.accumulator == 0:
            self._branch(instr.operand)
        self.registers.refresh_flags()

    def _exec_brp(self, instr: Instruction) -> None:
        """BRP a - Branch if the accumulator is zero or positive"""
        if self.registers.accumulator >= 0:
            self._branch(instr.operand)
        self.registers.refresh_flags()

    def _exec_inp(self, instr: Instruction) -> None:
        """INP - Load the next input, or suspend until one is provided"""
        if not self.inputs:
            self.state = CPUState.AWAITING_INPUT
            return
        self.registers.apply_value(self.inputs.popleft())

    def _exec_out(self, instr: Instruction) -> None:
        """OUT - Emit the accumulator"""
        self.outputs.append(self.registers.accumulator)
        logger.info("OUTPUT: %d", self.registers.accumulator)

    def _exec_bwn(self, instr: Instruction) -> None:
        """BWN - Bitwise NOT of the accumulator"""
        self.registers.apply_value(~self.registers.accumulator)

    def _exec_bwa(self, instr: Instruction) -> None:
        """BWA a - Bitwise AND with Memory[a]"""
        self.registers.apply_value(self.registers.accumulator & self._operand_value(instr))

    def _exec_bwo(self, instr: Instruction) -> None:
        """BWO a - Bitwise OR with Memory[a]"""
        self.registers.apply_value(self.registers.accumulator | self._operand_value(instr))

    def _exec_bwx(self, instr: Instruction) -> None:
        """BWX a - Bitwise XOR with Memory[a]"""
        self.registers.apply_value(self.registers.accumulator ^ self._operand_value(instr))

    def _shift(self, count: int) -> int:
        acc = self.registers.accumulator
        width = self.registers.width
        if count >= 0:
            # Bits shifted past the top are dropped by the wrap
            return acc << min(count, width)
        return acc >> min(-count, width)

    def _exec_bsl(self, instr: Instruction) -> None:
        """BSL a - Shift left by Memory[a] bits"""
        self.registers.apply_value(self._shift(self._operand_value(instr)))

    def _exec_bsr(self, instr: Instruction) -> None:
        """BSR a - Arithmetic shift right by Memory[a] bits"""
        self.registers.apply_value(self._shift(-self._operand_value(instr)))

    def get_state(self) -> Dict[str, Any]:
        """Get CPU state for debugging."""
        regs = self.registers
        return {
            'state': self.state.value,
            'pc': regs.program_counter,
            'accumulator': regs.accumulator,
            'width': regs.width,
            'overflow': regs.overflow,
            'negative': regs.negative,
            'instruction_count': self.instruction_count,
            'pending_inputs': list(self.inputs),
            'pending_outputs': list(self.outputs),
            'fault': self.fault.message if self.fault else None,
        }
