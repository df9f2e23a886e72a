"""Packed eBPF opcodes, their fields, and registers."""

from __future__ import annotations

from enum import IntEnum
from typing import Union

_CLASS_MASK = 0x07
_SOURCE_MASK = 0x08
_ENDIAN_MASK = _SOURCE_MASK
_ALU_MASK = 0xF0
_JUMP_MASK = _ALU_MASK
_MODE_MASK = 0xE0
_SIZE_MASK = 0x18

_LOAD_STORE = "load_store"
_JUMP_OR_ALU = "jump_or_alu"


class _LabelledEnum(IntEnum):
    """IntEnum whose str() is a short human-readable label."""

    @property
    def label(self) -> str:
        return _LABELS[type(self)][self.name]

    def __str__(self) -> str:
        return self.label

    def __format__(self, spec: str) -> str:
        return format(self.label, spec)


class OpClass(_LabelledEnum):
    """Class of an operation, stored in the lowest three bits."""

    LD = 0x00
    LDX = 0x01
    ST = 0x02
    STX = 0x03
    ALU = 0x04
    JUMP = 0x05
    ALU64 = 0x07


class Source(_LabelledEnum):
    """Source operand of ALU and branch operations."""

    INVALID = 0xFF
    IMM = 0x00
    REG = 0x08


class Endianness(_LabelledEnum):
    """Target endianness of a byte swap instruction."""

    INVALID = 0xFF
    LE = 0x00
    BE = 0x08


class ALUOp(_LabelledEnum):
    """ALU and ALU64 operations."""

    INVALID = 0xFF
    ADD = 0x00
    SUB = 0x10
    MUL = 0x20
    DIV = 0x30
    OR = 0x40
    AND = 0x50
    LSH = 0x60
    RSH = 0x70
    NEG = 0x80
    MOD = 0x90
    XOR = 0xA0
    MOV = 0xB0
    ARSH = 0xC0
    SWAP = 0xD0

    def op(self, source: Union[Source, int]) -> "OpCode":
        """Return the 64-bit opcode for this operation with the given source."""
        return OpCode(OpClass.ALU64).set_alu_op(self).set_source(source)

    def op32(self, source: Union[Source, int]) -> "OpCode":
        """Return the 32-bit opcode for this operation with the given source."""
        return OpCode(OpClass.ALU).set_alu_op(self).set_source(source)


class JumpOp(_LabelledEnum):
    """Operations that affect control flow."""

    INVALID = 0xFF
    JA = 0x00
    JEQ = 0x10
    JGT = 0x20
    JGE = 0x30
    JSET = 0x40
    JNE = 0x50
    JSGT = 0x60
    JSGE = 0x70
    CALL = 0x80
    EXIT = 0x90
    JLT = 0xA0
    JLE = 0xB0
    JSLT = 0xC0
    JSLE = 0xD0

    def op(self, source: Union[Source, int]) -> "OpCode":
        """Return the opcode for this jump with the given source."""
        return OpCode(OpClass.JUMP).set_jump_op(self).set_source(source)


class Mode(_LabelledEnum):
    """Addressing mode of load and store operations."""

    INVALID = 0xFF
    IMM = 0x00
    ABS = 0x20
    IND = 0x40
    MEM = 0x60
    XADD = 0xC0


class Size(_LabelledEnum):
    """Operand size of load and store operations."""

    INVALID = 0xFF
    DWORD = 0x18
    WORD = 0x00
    HALF = 0x08
    BYTE = 0x10

    def sizeof(self) -> int:
        """Return the size in bytes, or -1 for an invalid size."""
        return _SIZE_BYTES.get(self, -1)


_SIZE_BYTES = {Size.DWORD: 8, Size.WORD: 4, Size.HALF: 2, Size.BYTE: 1}

_LABELS = {
    OpClass: {
        "LD": "LdClass",
        "LDX": "LdXClass",
        "ST": "StClass",
        "STX": "StXClass",
        "ALU": "ALUClass",
        "JUMP": "JumpClass",
        "ALU64": "ALU64Class",
    },
    Source: {"INVALID": "InvalidSource", "IMM": "ImmSource", "REG": "RegSource"},
    Endianness: {"INVALID": "InvalidEndian", "LE": "LE", "BE": "BE"},
    ALUOp: {
        "INVALID": "InvalidALUOp",
        "ADD": "Add",
        "SUB": "Sub",
        "MUL": "Mul",
        "DIV": "Div",
        "OR": "Or",
        "AND": "And",
        "LSH": "LSh",
        "RSH": "RSh",
        "NEG": "Neg",
        "MOD": "Mod",
        "XOR": "Xor",
        "MOV": "Mov",
        "ARSH": "ArSh",
        "SWAP": "Swap",
    },
    JumpOp: {
        "INVALID": "InvalidJumpOp",
        "JA": "Ja",
        "JEQ": "JEq",
        "JGT": "JGT",
        "JGE": "JGE",
        "JSET": "JSet",
        "JNE": "JNE",
        "JSGT": "JSGT",
        "JSGE": "JSGE",
        "CALL": "Call",
        "EXIT": "Exit",
        "JLT": "JLT",
        "JLE": "JLE",
        "JSLT": "JSLT",
        "JSLE": "JSLE",
    },
    Mode: {
        "INVALID": "InvalidMode",
        "IMM": "ImmMode",
        "ABS": "AbsMode",
        "IND": "IndMode",
        "MEM": "MemMode",
        "XADD": "XAddMode",
    },
    Size: {
        "INVALID": "InvalidSize",
        "DWORD": "DWord",
        "WORD": "Word",
        "HALF": "Half",
        "BYTE": "Byte",
    },
}

_ENCODINGS = {
    OpClass.LD: _LOAD_STORE,
    OpClass.LDX: _LOAD_STORE,
    OpClass.ST: _LOAD_STORE,
    OpClass.STX: _LOAD_STORE,
    OpClass.ALU64: _JUMP_OR_ALU,
    OpClass.ALU: _JUMP_OR_ALU,
    OpClass.JUMP: _JUMP_OR_ALU,
}

_SIZE_SUFFIX = {Size.DWORD: "DW", Size.WORD: "W", Size.HALF: "H", Size.BYTE: "B"}


def _coerce(enum_cls, value: int):
    """Return the enum member for value, or the plain int if there is none."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _label(enum_cls, value) -> str:
    if isinstance(value, enum_cls):
        return str(value)
    return f"{enum_cls.__name__}({int(value)})"


def _valid(value: int, mask: int) -> bool:
    """True if every bit of value is covered by mask."""
    return value & ~mask & 0xFF == 0 and 0 <= value <= 0xFF


class OpCode(int):
    """A packed eBPF opcode; its layout depends on its class."""

    __slots__ = ()

    def __new__(cls, value: int = 0) -> "OpCode":
        value = int(value)
        if not 0 <= value <= 0xFF:
            raise ValueError(f"opcode {value} does not fit in a byte")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"OpCode({int(self):#04x})"

    def __format__(self, spec: str) -> str:
        if spec:
            return int.__format__(self, spec)
        return str(self)

    def _encoding(self):
        return _ENCODINGS.get(int(self) & _CLASS_MASK)

    def raw_instructions(self) -> int:
        """Number of raw BPF instructions needed to encode this opcode."""
        return 2 if self.is_dword_load() else 1

    def is_dword_load(self) -> bool:
        return self == load_imm_op(Size.DWORD)

    def op_class(self):
        """Return the class of operation."""
        return _coerce(OpClass, int(self) & _CLASS_MASK)

    def mode(self):
        """Return the mode of a load or store operation."""
        if self._encoding() != _LOAD_STORE:
            return Mode.INVALID
        return _coerce(Mode, int(self) & _MODE_MASK)

    def size(self):
        """Return the size of a load or store operation."""
        if self._encoding() != _LOAD_STORE:
            return Size.INVALID
        return _coerce(Size, int(self) & _SIZE_MASK)

    def source(self):
        """Return the source of a branch or ALU operation."""
        if self._encoding() != _JUMP_OR_ALU or self.alu_op() == ALUOp.SWAP:
            return Source.INVALID
        return _coerce(Source, int(self) & _SOURCE_MASK)

    def alu_op(self):
        """Return the ALU operation."""
        if self._encoding() != _JUMP_OR_ALU:
            return ALUOp.INVALID
        return _coerce(ALUOp, int(self) & _ALU_MASK)

    def endianness(self):
        """Return the endianness of a byte swap instruction."""
        if self.alu_op() != ALUOp.SWAP:
            return Endianness.INVALID
        return _coerce(Endianness, int(self) & _ENDIAN_MASK)

    def jump_op(self):
        """Return the jump operation."""
        if self._encoding() != _JUMP_OR_ALU:
            return JumpOp.INVALID
        return _coerce(JumpOp, int(self) & _JUMP_MASK)

    def _replace(self, mask: int, value: int) -> "OpCode":
        return OpCode((int(self) & ~mask & 0xFF) | value)

    def set_mode(self, mode) -> "OpCode":
        """Set the mode; INVALID_OPCODE if the class or mode is wrong."""
        if self._encoding() != _LOAD_STORE or not _valid(int(mode), _MODE_MASK):
            return INVALID_OPCODE
        return self._replace(_MODE_MASK, int(mode))

    def set_size(self, size) -> "OpCode":
        """Set the size; INVALID_OPCODE if the class or size is wrong."""
        if self._encoding() != _LOAD_STORE or not _valid(int(size), _SIZE_MASK):
            return INVALID_OPCODE
        return self._replace(_SIZE_MASK, int(size))

    def set_source(self, source) -> "OpCode":
        """Set the source; INVALID_OPCODE if the class or source is wrong."""
        if self._encoding() != _JUMP_OR_ALU or not _valid(int(source), _SOURCE_MASK):
            return INVALID_OPCODE
        return self._replace(_SOURCE_MASK, int(source))

    def set_alu_op(self, alu) -> "OpCode":
        """Set the ALU operation; INVALID_OPCODE if the class or op is wrong."""
        if self.op_class() not in (OpClass.ALU, OpClass.ALU64) or not _valid(
            int(alu), _ALU_MASK
        ):
            return INVALID_OPCODE
        return self._replace(_ALU_MASK, int(alu))

    def set_jump_op(self, jump) -> "OpCode":
        """Set the jump operation; INVALID_OPCODE if the class or op is wrong."""
        if self.op_class() != OpClass.JUMP or not _valid(int(jump), _JUMP_MASK):
            return INVALID_OPCODE
        return self._replace(_JUMP_MASK, int(jump))

    def __str__(self) -> str:
        cls = self.op_class()
        if self._encoding() == _LOAD_STORE:
            parts = [
                str(cls).removesuffix("Class"),
                _label(Mode, self.mode()).removesuffix("Mode"),
                _SIZE_SUFFIX.get(self.size(), ""),
            ]
            return "".join(parts)

        if cls in (OpClass.ALU64, OpClass.ALU):
            alu = self.alu_op()
            text = _label(ALUOp, alu)
            if alu == ALUOp.SWAP:
                return text + _label(Endianness, self.endianness())
            if cls == OpClass.ALU:
                text += "32"
            return text + _label(Source, self.source()).removesuffix("Source")

        if cls == OpClass.JUMP:
            jop = self.jump_op()
            text = _label(JumpOp, jop)
            if jop not in (JumpOp.EXIT, JumpOp.CALL):
                text += _label(Source, self.source()).removesuffix("Source")
            return text

        return f"OpCode({int(self):#x})"


INVALID_OPCODE = OpCode(0xFF)


class Register(int):
    """Source or destination register of an instruction."""

    __slots__ = ()

    def __new__(cls, value: int) -> "Register":
        value = int(value)
        if not 0 <= value <= 0xFF:
            raise ValueError(f"register {value} does not fit in a byte")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"Register({int(self)})"

    def __format__(self, spec: str) -> str:
        if spec:
            return int.__format__(self, spec)
        return str(self)

    def __str__(self) -> str:
        if int(self) == 10:
            return "rfp"
        return f"r{int(self)}"


R0 = Register(0)
R1 = Register(1)
R2 = Register(2)
R3 = Register(3)
R4 = Register(4)
R5 = Register(5)
R6 = Register(6)
R7 = Register(7)
R8 = Register(8)
R9 = Register(9)
R10 = Register(10)
RFP = R10

PSEUDO_MAP_FD = R1
PSEUDO_MAP_VALUE = R2
PSEUDO_CALL = R1


def load_mem_op(size) -> OpCode:
    """Opcode to load a value of the given size from memory."""
    return OpCode(OpClass.LDX).set_mode(Mode.MEM).set_size(size)


def load_imm_op(size) -> OpCode:
    """Opcode to load an immediate of the given size."""
    return OpCode(OpClass.LD).set_mode(Mode.IMM).set_size(size)


def load_ind_op(size) -> OpCode:
    """Opcode to load a value of the given size indirectly from an sk_buff."""
    return OpCode(OpClass.LD).set_mode(Mode.IND).set_size(size)


def load_abs_op(size) -> OpCode:
    """Opcode to load a value of the given size at an absolute sk_buff offset."""
    return OpCode(OpClass.LD).set_mode(Mode.ABS).set_size(size)


def store_mem_op(size) -> OpCode:
    """Opcode to store a register of the given size in memory."""
    return OpCode(OpClass.STX).set_mode(Mode.MEM).set_size(size)


def store_imm_op(size) -> OpCode:
    """Opcode to store an immediate of the given size in memory."""
    return OpCode(OpClass.ST).set_mode(Mode.MEM).set_size(size)


def store_xadd_op(size) -> OpCode:
    """Opcode to atomically add a register to a value in memory."""
    return OpCode(OpClass.STX).set_mode(Mode.XADD).set_size(size)