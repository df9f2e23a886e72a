"""eBPF instructions, programs made of them, and helpers to build them."""

from __future__ import annotations

import dataclasses
import hashlib
import io
import math
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

from .functions import BuiltinFunc
from .opcode import (
    INVALID_OPCODE,
    PSEUDO_CALL,
    PSEUDO_MAP_FD,
    PSEUDO_MAP_VALUE,
    R0,
    ALUOp,
    Endianness,
    JumpOp,
    Mode,
    OpClass,
    OpCode,
    Register,
    Size,
    Source,
    load_abs_op,
    load_imm_op,
    load_ind_op,
    load_mem_op,
    store_imm_op,
    store_mem_op,
    store_xadd_op,
)

INSTRUCTION_SIZE = 8
"""Size of a raw BPF instruction in bytes."""

TAG_SIZE = 8

_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF
_HIGH32 = _U32 << 32


def _signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _check_range(value: int, bits: int, what: str) -> int:
    value = int(value)
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= value <= high:
        raise ValueError(f"{what} {value} does not fit in a signed {bits}-bit integer")
    return value


def _struct_format(byteorder: str) -> str:
    if byteorder == "little":
        return "<BBHI"
    if byteorder == "big":
        return ">BBHI"
    raise ValueError(f"unrecognized byte order {byteorder!r}")


def _pack_registers(dst: int, src: int, byteorder: str) -> int:
    if byteorder == "little":
        return ((src << 4) | (dst & 0xF)) & 0xFF
    if byteorder == "big":
        return ((dst << 4) | (src & 0xF)) & 0xFF
    raise ValueError(f"unrecognized byte order {byteorder!r}")


def _unpack_registers(regs: int, byteorder: str) -> tuple[Register, Register]:
    if byteorder == "little":
        return Register(regs & 0xF), Register(regs >> 4)
    if byteorder == "big":
        return Register(regs >> 4), Register(regs & 0xF)
    raise ValueError(f"unrecognized byte order {byteorder!r}")


def raw_offset_bytes(offset: int) -> int:
    """Return an offset counted in raw BPF instructions as a byte offset."""
    return int(offset) * INSTRUCTION_SIZE


class UnreferencedSymbolError(LookupError):
    """Raised when a symbol is not referenced by any instruction."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"unreferenced symbol {symbol}")
        self.symbol = symbol


def is_unreferenced_symbol(err: BaseException) -> bool:
    """True if err was caused by an unreferenced symbol."""
    return isinstance(err, UnreferencedSymbolError)


@dataclass
class Instruction:
    """A single eBPF instruction."""

    op_code: OpCode = OpCode(0)
    dst: Register = R0
    src: Register = R0
    offset: int = 0
    constant: int = 0
    reference: str = ""
    symbol: str = ""

    def __post_init__(self) -> None:
        self.op_code = OpCode(self.op_code)
        self.dst = Register(self.dst)
        self.src = Register(self.src)

    def sym(self, name: str) -> "Instruction":
        """Return a copy of the instruction carrying the given symbol."""
        return dataclasses.replace(self, symbol=name)

    def marshal(self, byteorder: str) -> bytes:
        """Encode the instruction in the kernel format."""
        fmt = _struct_format(byteorder)
        if self.op_code == INVALID_OPCODE:
            raise ValueError("invalid opcode")
        _check_range(self.offset, 16, "offset")

        regs = _pack_registers(self.dst, self.src, byteorder)
        data = struct.pack(
            fmt, int(self.op_code), regs, self.offset & 0xFFFF, self.constant & _U32
        )
        if not self.op_code.is_dword_load():
            return data
        return data + struct.pack(fmt, 0, 0, 0, (self.constant >> 32) & _U32)

    def _require_dword_load(self) -> None:
        if not self.op_code.is_dword_load():
            raise ValueError(f"{self.op_code} is not a 64 bit load")

    def rewrite_map_ptr(self, fd: int) -> None:
        """Make the instruction use a new map fd, keeping any value offset."""
        self._require_dword_load()
        if self.src not in (PSEUDO_MAP_FD, PSEUDO_MAP_VALUE):
            raise ValueError("not a load from a map")
        offset = (self.constant & _U64) & _HIGH32
        self.constant = _signed(offset | (int(fd) & _U32), 64)

    def map_ptr(self) -> int:
        """Return the map fd this instruction loads."""
        return _signed(self.constant & _U32, 32)

    def rewrite_map_offset(self, offset: int) -> None:
        """Change the offset of a direct load from a map."""
        self._require_dword_load()
        if self.src != PSEUDO_MAP_VALUE:
            raise ValueError("not a direct load from a map")
        fd = self.constant & _U32
        self.constant = _signed(((int(offset) & _U32) << 32) | fd, 64)

    def map_offset(self) -> int:
        """Return the value offset of a direct map load."""
        return (self.constant & _U64) >> 32

    def is_load_from_map(self) -> bool:
        """True for loads of a map pointer or of a map value."""
        return self.op_code == load_imm_op(Size.DWORD) and self.src in (
            PSEUDO_MAP_FD,
            PSEUDO_MAP_VALUE,
        )

    def is_function_call(self) -> bool:
        """True for a call of another BPF function (not a helper)."""
        return self.op_code.jump_op() == JumpOp.CALL and self.src == PSEUDO_CALL

    def is_builtin_call(self) -> bool:
        """True for a call of a built-in helper."""
        return (
            self.op_code.jump_op() == JumpOp.CALL and self.src == R0 and self.dst == R0
        )

    def is_constant_load(self, size) -> bool:
        """True if the instruction loads a constant of the given size."""
        return (
            self.op_code == load_imm_op(size) and self.src == R0 and self.offset == 0
        )

    def _body(self) -> str:
        op = self.op_code
        if self.is_load_from_map():
            fd = self.map_ptr()
            if self.src == PSEUDO_MAP_FD:
                return f"LoadMapPtr dst: {self.dst} fd: {fd}"
            return (
                f"LoadMapValue dst: {self.dst}, fd: {fd} off: {self.map_offset()}"
            )

        text = f"{op} "
        cls = op.op_class()
        if cls in (OpClass.LD, OpClass.LDX, OpClass.ST, OpClass.STX):
            mode = op.mode()
            if mode == Mode.IMM:
                text += f"dst: {self.dst} imm: {self.constant}"
            elif mode == Mode.ABS:
                text += f"imm: {self.constant}"
            elif mode == Mode.IND:
                text += f"dst: {self.dst} src: {self.src} imm: {self.constant}"
            elif mode == Mode.MEM:
                text += (
                    f"dst: {self.dst} src: {self.src} off: {self.offset} "
                    f"imm: {self.constant}"
                )
            elif mode == Mode.XADD:
                text += f"dst: {self.dst} src: {self.src}"
        elif cls in (OpClass.ALU64, OpClass.ALU):
            text += f"dst: {self.dst} "
            if op.alu_op() == ALUOp.SWAP or op.source() == Source.IMM:
                text += f"imm: {self.constant}"
            else:
                text += f"src: {self.src}"
        elif cls == OpClass.JUMP:
            if op.jump_op() == JumpOp.CALL:
                if self.src == PSEUDO_CALL:
                    text += str(self.constant)
                else:
                    try:
                        text += str(BuiltinFunc(self.constant))
                    except ValueError:
                        text += f"BuiltinFunc({self.constant})"
            else:
                text += f"dst: {self.dst} off: {self.offset} "
                if op.source() == Source.IMM:
                    text += f"imm: {self.constant}"
                else:
                    text += f"src: {self.src}"
        return text

    def __str__(self) -> str:
        op = self.op_code
        if op == INVALID_OPCODE:
            return "INVALID"
        if op.jump_op() == JumpOp.EXIT:
            return str(op)
        text = self._body()
        if self.reference:
            text += f" <{self.reference}>"
        return text


def decode_instruction(stream: BinaryIO, byteorder: str) -> tuple[Instruction, int]:
    """Read one instruction from stream; return it and the bytes consumed.

    Raises EOFError if the stream is exhausted before the instruction starts.
    """
    fmt = _struct_format(byteorder)
    raw = stream.read(INSTRUCTION_SIZE)
    if not raw:
        raise EOFError("no more instructions")
    if len(raw) < INSTRUCTION_SIZE:
        raise ValueError("unexpected end of data")

    op, regs, offset, constant = struct.unpack(fmt, raw)
    dst, src = _unpack_registers(regs, byteorder)
    ins = Instruction(
        op_code=OpCode(op),
        dst=dst,
        src=src,
        offset=_signed(offset, 16),
        constant=_signed(constant, 32),
    )
    if not ins.op_code.is_dword_load():
        return ins, INSTRUCTION_SIZE

    raw2 = stream.read(INSTRUCTION_SIZE)
    if len(raw2) < INSTRUCTION_SIZE:
        raise ValueError("64bit immediate is missing second half")
    op2, regs2, offset2, constant2 = struct.unpack(fmt, raw2)
    if op2 != 0 or offset2 != 0 or regs2 != 0:
        raise ValueError("64bit immediate has non-zero fields")
    ins.constant = _signed((constant2 << 32) | constant, 64)
    return ins, 2 * INSTRUCTION_SIZE


def decode_instructions(data: bytes, byteorder: str) -> "Instructions":
    """Decode a whole program from its raw bytes."""
    stream = io.BytesIO(data)
    insns = Instructions()
    offset = 0
    while True:
        try:
            ins, size = decode_instruction(stream, byteorder)
        except EOFError:
            return insns
        except ValueError as exc:
            raise ValueError(f"offset {offset}: {exc}") from exc
        insns.append(ins)
        offset += size


@dataclass(frozen=True)
class IteratedInstruction:
    """An instruction with its index and raw instruction offset."""

    ins: Instruction
    index: int
    offset: int


class Instructions(list):
    """An eBPF program: a list of instructions."""

    def rewrite_map_ptr(self, symbol: str, fd: int) -> None:
        """Rewrite all loads of the map referenced by symbol to use fd."""
        if not symbol:
            raise ValueError("empty symbol")
        found = False
        for ins in self:
            if ins.reference != symbol:
                continue
            ins.rewrite_map_ptr(fd)
            found = True
        if not found:
            raise UnreferencedSymbolError(symbol)

    def symbol_offsets(self) -> dict[str, int]:
        """Return each symbol with the index of the instruction carrying it."""
        offsets: dict[str, int] = {}
        for index, ins in enumerate(self):
            if not ins.symbol:
                continue
            if ins.symbol in offsets:
                raise ValueError(f"duplicate symbol {ins.symbol}")
            offsets[ins.symbol] = index
        return offsets

    def reference_offsets(self) -> dict[str, list[int]]:
        """Return each reference with the indices of the instructions using it."""
        offsets: dict[str, list[int]] = {}
        for index, ins in enumerate(self):
            if ins.reference:
                offsets.setdefault(ins.reference, []).append(index)
        return offsets

    def format(
        self, padding: int = 1, sym_padding: Optional[int] = None, spaces: bool = False
    ) -> str:
        """Render the program, one instruction per line.

        padding indents instructions, sym_padding indents symbols (default
        one less than padding); spaces indents with spaces instead of tabs.
        """
        char = " " if spaces else "\t"
        if sym_padding is None:
            sym_padding = padding - 1
        sym_padding = max(sym_padding, 0)
        indent = char * padding
        sym_indent = char * sym_padding

        if not self:
            return ""
        width = int(math.ceil(math.log10(len(self) * 2)))

        lines = []
        for item in self.iterate():
            if item.ins.symbol:
                lines.append(f"{sym_indent}{item.ins.symbol}:\n")
            lines.append(f"{indent}{item.offset:>{width}}: {item.ins}\n")
        return "".join(lines)

    def __str__(self) -> str:
        return self.format()

    def marshal(self, byteorder: str) -> bytes:
        """Encode the program in the kernel format."""
        chunks = []
        for index, ins in enumerate(self):
            try:
                chunks.append(ins.marshal(byteorder))
            except ValueError as exc:
                raise ValueError(f"instruction {index}: {exc}") from exc
        return b"".join(chunks)

    def tag(self, byteorder: str) -> str:
        """Compute the kernel tag of the program, ignoring map fds."""
        digest = hashlib.sha1()
        for index, ins in enumerate(self):
            if ins.is_load_from_map():
                ins = dataclasses.replace(ins, constant=0)
            try:
                digest.update(ins.marshal(byteorder))
            except ValueError as exc:
                raise ValueError(f"instruction {index}: {exc}") from exc
        return digest.digest()[:TAG_SIZE].hex()

    def iterate(self) -> Iterator[IteratedInstruction]:
        """Yield instructions with their index and raw instruction offset."""
        offset = 0
        for index, ins in enumerate(self):
            yield IteratedInstruction(ins, index, offset)
            offset += ins.op_code.raw_instructions()


def host_to(endian: Endianness, dst: Register, size: Size) -> Instruction:
    """Convert dst from host byte order to the given endianness."""
    widths = {Size.HALF: 16, Size.WORD: 32, Size.DWORD: 64}
    if size not in widths:
        return Instruction(op_code=INVALID_OPCODE)
    return Instruction(
        op_code=OpCode(OpClass.ALU).set_alu_op(ALUOp.SWAP).set_source(int(endian)),
        dst=dst,
        constant=widths[size],
    )


def alu_reg(op: ALUOp, dst: Register, src: Register) -> Instruction:
    """Emit `dst (op) src`."""
    return Instruction(op_code=op.op(Source.REG), dst=dst, src=src)


def alu_imm(op: ALUOp, dst: Register, value: int) -> Instruction:
    """Emit `dst (op) value`."""
    return Instruction(
        op_code=op.op(Source.IMM), dst=dst, constant=_check_range(value, 32, "value")
    )


def alu_reg32(op: ALUOp, dst: Register, src: Register) -> Instruction:
    """Emit `dst (op) src`, zeroing the upper 32 bits of dst."""
    return Instruction(op_code=op.op32(Source.REG), dst=dst, src=src)


def alu_imm32(op: ALUOp, dst: Register, value: int) -> Instruction:
    """Emit `dst (op) value`, zeroing the upper 32 bits of dst."""
    return Instruction(
        op_code=op.op32(Source.IMM),
        dst=dst,
        constant=_check_range(value, 32, "value"),
    )


def call(fn: BuiltinFunc) -> Instruction:
    """Emit a call of a built-in helper."""
    return Instruction(
        op_code=OpCode(OpClass.JUMP).set_jump_op(JumpOp.CALL), constant=int(fn)
    )


def ret() -> Instruction:
    """Emit an exit instruction; the return value must be in R0."""
    return Instruction(op_code=OpCode(OpClass.JUMP).set_jump_op(JumpOp.EXIT))


_NOT_CONDITIONAL = (JumpOp.EXIT, JumpOp.CALL, JumpOp.JA)


def jump_imm(op: JumpOp, dst: Register, value: int, label: str) -> Instruction:
    """Jump to label if dst compares to value."""
    if op in _NOT_CONDITIONAL:
        return Instruction(op_code=INVALID_OPCODE)
    return Instruction(
        op_code=OpCode(OpClass.JUMP).set_jump_op(op).set_source(Source.IMM),
        dst=dst,
        offset=-1,
        constant=_check_range(value, 32, "value"),
        reference=label,
    )


def jump_reg(op: JumpOp, dst: Register, src: Register, label: str) -> Instruction:
    """Jump to label if dst compares to src."""
    if op in _NOT_CONDITIONAL:
        return Instruction(op_code=INVALID_OPCODE)
    return Instruction(
        op_code=OpCode(OpClass.JUMP).set_jump_op(op).set_source(Source.REG),
        dst=dst,
        src=src,
        offset=-1,
        reference=label,
    )


def jump_label(op: JumpOp, label: str) -> Instruction:
    """Jump to, or call, the given label."""
    if op == JumpOp.CALL:
        return Instruction(
            op_code=OpCode(OpClass.JUMP).set_jump_op(JumpOp.CALL),
            src=PSEUDO_CALL,
            constant=-1,
            reference=label,
        )
    return Instruction(
        op_code=OpCode(OpClass.JUMP).set_jump_op(op), offset=-1, reference=label
    )


def load_mem(dst: Register, src: Register, offset: int, size: Size) -> Instruction:
    """Emit `dst = *(size *)(src + offset)`."""
    return Instruction(op_code=load_mem_op(size), dst=dst, src=src, offset=offset)


def load_imm(dst: Register, value: int, size: Size) -> Instruction:
    """Emit `dst = (size)value`."""
    return Instruction(
        op_code=load_imm_op(size), dst=dst, constant=_check_range(value, 64, "value")
    )


def load_map_ptr(dst: Register, fd: int) -> Instruction:
    """Store a pointer to the map with the given fd in dst."""
    if fd < 0:
        return Instruction(op_code=INVALID_OPCODE)
    return Instruction(
        op_code=load_imm_op(Size.DWORD),
        dst=dst,
        src=PSEUDO_MAP_FD,
        constant=fd & _U32,
    )


def load_map_value(dst: Register, fd: int, offset: int) -> Instruction:
    """Store a pointer to the value at offset in the map with fd in dst."""
    if fd < 0:
        return Instruction(op_code=INVALID_OPCODE)
    fd_and_offset = ((int(offset) & _U32) << 32) | (fd & _U32)
    return Instruction(
        op_code=load_imm_op(Size.DWORD),
        dst=dst,
        src=PSEUDO_MAP_VALUE,
        constant=_signed(fd_and_offset, 64),
    )


def load_ind(dst: Register, src: Register, offset: int, size: Size) -> Instruction:
    """Emit `dst = ntoh(*(size *)(((sk_buff *)R6)->data + src + offset))`."""
    return Instruction(
        op_code=load_ind_op(size),
        dst=dst,
        src=src,
        constant=_check_range(offset, 32, "offset"),
    )


def load_abs(offset: int, size: Size) -> Instruction:
    """Emit `r0 = ntoh(*(size *)(((sk_buff *)R6)->data + offset))`."""
    return Instruction(
        op_code=load_abs_op(size), dst=R0, constant=_check_range(offset, 32, "offset")
    )


def store_mem(dst: Register, offset: int, src: Register, size: Size) -> Instruction:
    """Emit `*(size *)(dst + offset) = src`."""
    return Instruction(op_code=store_mem_op(size), dst=dst, src=src, offset=offset)


def store_imm(dst: Register, offset: int, value: int, size: Size) -> Instruction:
    """Emit `*(size *)(dst + offset) = value`."""
    return Instruction(
        op_code=store_imm_op(size),
        dst=dst,
        offset=offset,
        constant=_check_range(value, 64, "value"),
    )


def store_xadd(dst: Register, src: Register, size: Size) -> Instruction:
    """Atomically add src to *dst."""
    return Instruction(op_code=store_xadd_op(size), dst=dst, src=src)