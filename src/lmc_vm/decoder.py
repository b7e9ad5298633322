"""LMC Virtual Machine Instruction Decoder

Maps raw cell values to instructions and back.

Two numeric ranges share the cell space:

* Classic, 0..999: ``opcode * 100 + address`` as on the original Little Man
  Computer (0xx HLT, 1xx ADD, 2xx SUB, 3xx STA, 5xx LDA, 6xx BRA, 7xx BRZ,
  8xx BRP, 901 INP, 902 OUT). Addresses reach 0..99.
* Extended, 1000..15999: ``opcode * 1000 + address`` with addresses 0..999,
  adding indirect load (4xxx) and the bitwise family (10000 and up).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

CLASSIC_LIMIT = 1000
HALT_LIMIT = 100
EXTENDED_LIMIT = 16000


class DecoderException(Exception):
    """Base exception for decoding errors."""
    pass


class InvalidOpcodeException(DecoderException):
    """Exception for cell values that match no instruction."""

    def __init__(self, value: int):
        super().__init__(f"Invalid opcode: {value}")
        self.value = value


class Opcode(Enum):
    """Instruction mnemonics."""
    HLT = "HLT"
    ADD = "ADD"
    SUB = "SUB"
    STA = "STA"
    LDA = "LDA"
    LDR = "LDR"
    BRA = "BRA"
    BRZ = "BRZ"
    BRP = "BRP"
    INP = "INP"
    OUT = "OUT"
    DAT = "DAT"
    BWN = "BWN"
    BWA = "BWA"
    BWO = "BWO"
    BWX = "BWX"
    BSL = "BSL"
    BSR = "BSR"

    @property
    def takes_address(self) -> bool:
        return self not in (Opcode.HLT, Opcode.INP, Opcode.OUT, Opcode.BWN, Opcode.DAT)


# Hundreds digit -> opcode, classic range
CLASSIC_OPCODES: Dict[int, Opcode] = {
    1: Opcode.ADD,
    2: Opcode.SUB,
    3: Opcode.STA,
    5: Opcode.LDA,
    6: Opcode.BRA,
    7: Opcode.BRZ,
    8: Opcode.BRP,
}

# Thousands -> opcode, extended range
EXTENDED_OPCODES: Dict[int, Opcode] = {
    1: Opcode.ADD,
    2: Opcode.SUB,
    3: Opcode.STA,
    4: Opcode.LDR,
    5: Opcode.LDA,
    6: Opcode.BRA,
    7: Opcode.BRZ,
    8: Opcode.BRP,
    11: Opcode.BWA,
    12: Opcode.BWO,
    13: Opcode.BWX,
    14: Opcode.BSL,
    15: Opcode.BSR,
}

FIXED_VALUES: Dict[int, Opcode] = {
    0: Opcode.HLT,
    901: Opcode.INP,
    902: Opcode.OUT,
    10000: Opcode.BWN,
}

_CLASSIC_CODES = {opcode: digit for digit, opcode in CLASSIC_OPCODES.items()}
_EXTENDED_CODES = {opcode: code for code, opcode in EXTENDED_OPCODES.items()}
_FIXED_CODES = {opcode: value for value, opcode in FIXED_VALUES.items()}


@dataclass(frozen=True)
class Instruction:
    """Represents a decoded instruction."""
    opcode: Opcode
    operand: Optional[int] = None
    # Operand names a cell holding the effective address (LDR)
    indirect: bool = False
    raw: Optional[int] = field(default=None, compare=False)

    def __str__(self) -> str:
        if self.operand is None:
            return self.opcode.value
        return f"{self.opcode.value} {self.operand}"


def decode(value: int) -> Instruction:
    """Decode a raw cell value.

    Args:
        value: Cell contents

    Returns:
        The decoded instruction

    Raises:
        InvalidOpcodeException: If the value matches no instruction
    """
    if value in FIXED_VALUES:
        return Instruction(FIXED_VALUES[value], raw=value)

    # Any value below 100 halts; 001 is the halt some assemblers emit
    if 0 < value < HALT_LIMIT:
        return Instruction(Opcode.HLT, raw=value)

    if 0 < value < CLASSIC_LIMIT:
        opcode = CLASSIC_OPCODES.get(value // 100)
        if opcode is not None:
            return Instruction(opcode, value % 100, raw=value)

    elif CLASSIC_LIMIT <= value < EXTENDED_LIMIT:
        opcode = EXTENDED_OPCODES.get(value // 1000)
        if opcode is not None:
            return Instruction(opcode, value % 1000, indirect=opcode is Opcode.LDR, raw=value)

    raise InvalidOpcodeException(value)


def encode(instruction: Instruction) -> int:
    """Encode an instruction as a cell value.

    The classic form is used whenever the instruction has one and its
    operand fits in two digits, so legacy programs keep their encoding.
    HLT always encodes as 000, though 001..099 also decode as HLT.
    """
    opcode = instruction.opcode

    if opcode is Opcode.DAT:
        return instruction.operand or 0

    if opcode in _FIXED_CODES:
        return _FIXED_CODES[opcode]

    address = instruction.operand
    if address is None or not 0 <= address < CLASSIC_LIMIT:
        raise ValueError(f"{opcode.value} needs an address in 0..999, got {address}")

    if opcode in _CLASSIC_CODES and address < 100:
        return _CLASSIC_CODES[opcode] * 100 + address

    return _EXTENDED_CODES[opcode] * 1000 + address


def disassemble(value: int) -> str:
    """Mnemonic for a cell value; undecodable values show as data."""
    try:
        return str(decode(value))
    except InvalidOpcodeException:
        return str(Instruction(Opcode.DAT, value))
