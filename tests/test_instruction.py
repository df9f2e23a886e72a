import io

import pytest

from ebpfkit.asm.functions import BuiltinFunc
from ebpfkit.asm.instruction import (
    Instruction,
    Instructions,
    UnreferencedSymbolError,
    alu_imm,
    alu_imm32,
    alu_reg,
    call,
    decode_instruction,
    decode_instructions,
    host_to,
    is_unreferenced_symbol,
    jump_imm,
    jump_label,
    load_abs,
    load_imm,
    load_map_ptr,
    load_map_value,
    load_mem,
    raw_offset_bytes,
    ret,
    store_imm,
    store_mem,
)
from ebpfkit.asm.opcode import (
    INVALID_OPCODE,
    R0,
    R1,
    R2,
    R10,
    RFP,
    ALUOp,
    Endianness,
    JumpOp,
    Size,
)

TEST_64BIT_IMM_PROG = bytes(
    [
        0x18, 0x00, 0x00, 0x00, 0xFF, 0xFF, 0xFF, 0x7F,
        0x00, 0x00, 0x00, 0x00, 0xFF, 0xFF, 0xFF, 0xFF,
    ]
)


@pytest.mark.parametrize(
    "have, want",
    [
        (call(BuiltinFunc.MAP_LOOKUP_ELEM), Instruction(op_code=0x85, constant=1)),
        (ret(), Instruction(op_code=0x95)),
        (load_abs(2, Size.BYTE), Instruction(op_code=0x30, constant=2)),
        (
            store_mem(RFP, -4, R0, Size.WORD),
            Instruction(op_code=0x63, dst=RFP, src=R0, offset=-4),
        ),
        (alu_imm(ALUOp.ADD, R1, 22), Instruction(op_code=0x07, dst=R1, constant=22)),
        (alu_reg(ALUOp.ADD, R1, R2), Instruction(op_code=0x0F, dst=R1, src=R2)),
        (alu_imm32(ALUOp.ADD, R1, 22), Instruction(op_code=0x04, dst=R1, constant=22)),
    ],
)
def test_dsl(have, want):
    assert have == want


def test_read_64bit_immediate():
    ins, n = decode_instruction(io.BytesIO(TEST_64BIT_IMM_PROG), "little")
    assert n == 16
    assert ins.constant == -(2**31) - 1


def test_write_64bit_immediate():
    insns = Instructions([load_imm(R0, -(2**31) - 1, Size.DWORD)])
    assert insns.marshal("little") == TEST_64BIT_IMM_PROG


def test_signed_jump():
    insns = Instructions([jump_imm(JumpOp.JSGT, R0, -1, "foo")])
    insns[0].offset = 1
    assert insns.marshal("little") == bytes(
        [0x65, 0x00, 0x01, 0x00, 0xFF, 0xFF, 0xFF, 0xFF]
    )


def test_instruction_rewrite_map_constant():
    ins = load_map_value(R0, 123, 321)
    assert ins.map_ptr() == 123
    assert ins.map_offset() == 321

    ins.rewrite_map_ptr(-1)
    assert ins.map_ptr() == -1

    ins.rewrite_map_ptr(1)
    assert ins.map_ptr() == 1
    assert ins.map_offset() == 321

    ins.rewrite_map_offset(123)
    assert ins.map_offset() == 123
    assert ins.map_ptr() == 1

    bogus = alu_imm(ALUOp.MOV, R1, 32)
    with pytest.raises(ValueError):
        bogus.rewrite_map_ptr(1)
    with pytest.raises(ValueError):
        bogus.rewrite_map_offset(1)


def test_instruction_load_map_value():
    ins = load_map_value(R0, 1, 123)
    assert ins.is_load_from_map()
    assert ins.map_ptr() == 1
    assert ins.map_offset() == 123


def test_instructions_rewrite_map_ptr():
    insns = Instructions([load_map_ptr(R1, 0), ret()])
    insns[0].reference = "good"

    insns.rewrite_map_ptr("good", 1)
    assert insns[0].constant == 1

    insns.rewrite_map_ptr("good", 2)
    assert insns[0].constant == 2

    with pytest.raises(UnreferencedSymbolError) as info:
        insns.rewrite_map_ptr("bad", 1)
    assert is_unreferenced_symbol(info.value)
    assert info.value.symbol == "bad"


def test_rewrite_map_ptr_empty_symbol():
    insns = Instructions([load_map_ptr(R1, 0)])
    with pytest.raises(ValueError, match="empty symbol"):
        insns.rewrite_map_ptr("", 1)


def _format_program():
    return Instructions(
        [
            call(BuiltinFunc.MAP_LOOKUP_ELEM).sym("my_func"),
            load_imm(R0, 42, Size.DWORD),
            ret(),
        ]
    )


def test_format_default():
    assert str(_format_program()) == (
        "my_func:\n"
        "\t0: Call FnMapLookupElem\n"
        "\t1: LdImmDW dst: r0 imm: 42\n"
        "\t3: Exit\n"
    )


def test_format_no_indent():
    assert _format_program().format(padding=0) == (
        "my_func:\n"
        "0: Call FnMapLookupElem\n"
        "1: LdImmDW dst: r0 imm: 42\n"
        "3: Exit\n"
    )


def test_format_spaces():
    assert _format_program().format(spaces=True) == (
        "my_func:\n"
        " 0: Call FnMapLookupElem\n"
        " 1: LdImmDW dst: r0 imm: 42\n"
        " 3: Exit\n"
    )


def test_format_symbol_indent():
    assert _format_program().format(sym_padding=2) == (
        "\t\tmy_func:\n"
        "\t0: Call FnMapLookupElem\n"
        "\t1: LdImmDW dst: r0 imm: 42\n"
        "\t3: Exit\n"
    )


@pytest.mark.parametrize(
    "byteorder, dst, src",
    [("big", R1, R0), ("little", R0, R1)],
)
def test_read_src_dst(byteorder, dst, src):
    data = bytes([0xBF, 0x10, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
    ins, n = decode_instruction(io.BytesIO(data), byteorder)
    assert n == 8
    assert ins.dst == dst
    assert ins.src == src


def test_instruction_iterator():
    insns = Instructions(
        [load_imm(R0, 0, Size.WORD), load_imm(R0, 0, Size.DWORD), ret()]
    )
    items = list(insns.iterate())
    assert [item.index for item in items] == [0, 1, 2]
    assert [item.offset for item in items] == [0, 1, 3]
    assert [item.ins for item in items] == list(insns)


def test_round_trip_decode():
    insns = Instructions(
        [
            load_map_value(R1, 7, 16),
            alu_imm(ALUOp.ADD, R2, -5),
            store_imm(R10, -8, 3, Size.WORD),
            load_mem(R0, R1, 4, Size.HALF),
            ret(),
        ]
    )
    for byteorder in ("little", "big"):
        assert decode_instructions(insns.marshal(byteorder), byteorder) == insns


def test_decode_truncated_second_half():
    with pytest.raises(ValueError, match="second half"):
        decode_instructions(TEST_64BIT_IMM_PROG[:12], "little")


def test_decode_nonzero_second_half():
    data = bytearray(TEST_64BIT_IMM_PROG)
    data[8] = 0x07
    with pytest.raises(ValueError, match="non-zero fields"):
        decode_instructions(bytes(data), "little")


def test_marshal_invalid_opcode():
    with pytest.raises(ValueError, match="invalid opcode"):
        Instruction(op_code=INVALID_OPCODE).marshal("little")


def test_unknown_byteorder():
    with pytest.raises(ValueError):
        ret().marshal("middle")


def test_tag_ignores_map_fd():
    first = Instructions([load_map_ptr(R1, 3), ret()])
    second = Instructions([load_map_ptr(R1, 9), ret()])
    tag = first.tag("little")
    assert len(tag) == 16
    assert tag == second.tag("little")
    assert first[0].constant == 3


def test_symbol_and_reference_offsets():
    insns = Instructions(
        [
            jump_imm(JumpOp.JEQ, R0, 0, "ret"),
            load_map_ptr(R1, 0),
            ret().sym("ret"),
        ]
    )
    insns[1].reference = "map"
    assert insns.symbol_offsets() == {"ret": 2}
    assert insns.reference_offsets() == {"ret": [0], "map": [1]}


def test_duplicate_symbol():
    insns = Instructions([ret().sym("a"), ret().sym("a")])
    with pytest.raises(ValueError, match="duplicate symbol a"):
        insns.symbol_offsets()


def test_str_map_loads():
    ins = load_map_ptr(R1, 3)
    ins.reference = "my_map"
    assert str(ins) == "LoadMapPtr dst: r1 fd: 3 <my_map>"
    assert str(load_map_value(R0, 1, 8)) == "LoadMapValue dst: r0, fd: 1 off: 8"


def test_str_jump_and_invalid():
    assert str(jump_imm(JumpOp.JEQ, R0, 0, "out")) == "JEqImm dst: r0 off: -1 imm: 0 <out>"
    assert str(Instruction(op_code=INVALID_OPCODE)) == "INVALID"
    assert str(jump_label(JumpOp.CALL, "fn")) == "Call -1 <fn>"


def test_predicates():
    assert jump_label(JumpOp.CALL, "fn").is_function_call()
    assert call(BuiltinFunc.KTIME_GET_NS).is_builtin_call()
    assert load_imm(R0, 1, Size.DWORD).is_constant_load(Size.DWORD)
    assert not load_map_ptr(R1, 0).is_constant_load(Size.DWORD)


def test_conditional_jump_rejects_unconditional_ops():
    assert jump_imm(JumpOp.JA, R0, 0, "x").op_code == INVALID_OPCODE
    assert load_map_ptr(R1, -1).op_code == INVALID_OPCODE


def test_host_to():
    ins = host_to(Endianness.BE, R1, Size.HALF)
    assert ins == Instruction(op_code=0xDC, dst=R1, constant=16)
    assert host_to(Endianness.LE, R1, Size.BYTE).op_code == INVALID_OPCODE


def test_raw_offset_bytes():
    assert raw_offset_bytes(3) == 24