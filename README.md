# ebpfkit

Tools for working with eBPF bytecode from Python:

- `ebpfkit.asm` — an assembler for eBPF instructions: opcodes and their
  fields (`ebpfkit.asm.opcode`), built-in helper numbers
  (`ebpfkit.asm.functions.BuiltinFunc`), and instructions with builders,
  encoding and decoding in either byte order, map pointer rewriting and the
  kernel program tag (`ebpfkit.asm.instruction`).
- `ebpfkit.bpf2go` — helpers for building eBPF objects with a C compiler:
  splitting compiler flags (`tools`), running the compiler and handling
  make-style dependency files (`compile`), choosing compile targets
  (`targets`) and naming generated identifiers (`naming`).

## Assembling a program

```python
from ebpfkit.asm.opcode import R0, Size
from ebpfkit.asm.instruction import Instructions, load_imm, ret

prog = Instructions([
    load_imm(R0, 42, Size.DWORD),
    ret(),
])

print(prog)                    # listing with raw instruction offsets
raw = prog.marshal("little")   # bytes in the kernel format
tag = prog.tag("little")       # the kernel's program tag, map fds ignored
```

Byte orders are given as `"little"` or `"big"`; anything else raises
`ValueError`.

Other builders include `alu_imm`, `alu_reg`, `alu_imm32`, `alu_reg32`,
`host_to`, `call`, `jump_imm`, `jump_reg`, `jump_label`, `load_mem`,
`load_map_ptr`, `load_map_value`, `load_ind`, `load_abs`, `store_mem`,
`store_imm` and `store_xadd`.

`Instructions.format(padding, sym_padding, spaces)` controls indentation of
the listing, and `Instructions.iterate()` yields `IteratedInstruction`
items carrying each instruction's index and raw offset (64-bit immediate
loads take two raw slots).

Instructions that load a map carry a symbolic `reference`;
`Instructions.rewrite_map_ptr(symbol, fd)` points them at a map fd, and
raises `UnreferencedSymbolError` if no instruction refers to the symbol.

Raw bytecode is read back with `decode_instructions(data, byteorder)`, or
one instruction at a time from a binary stream with `decode_instruction`.

## Build helpers

```python
from ebpfkit.bpf2go.tools import split_arguments
from ebpfkit.bpf2go.naming import identifier
from ebpfkit.bpf2go.targets import collect_targets

split_arguments('-I include "-DNAME=a b"')   # ['-I', 'include', '-DNAME=a b']
identifier("ipv6_test")                      # 'Ipv6Test'
collect_targets(["amd64", "386"])            # {Target('bpfel', 'x86'): ['386', 'amd64']}
```

`compile_source(CompileArgs(...))` runs the configured compiler with
`-O2 -mcpu=v1`, the caller's flags, the target (default `bpf`) and debug
info, and raises `CompileError` if it cannot be started or fails. When
`dep` is set to a text stream, dependency information is written to it;
`parse_dependencies` and `adjust_dependencies` turn that into
make-compatible rules relative to a chosen directory.

`print_targets` lists the supported targets, `output_stem` gives the file
name stem for an identifier and target, and `TemplateName` derives the
names of generated types and functions from a stem.

## What the package does not do

It provides no command-line program: nothing compiles a source file and
writes generated binding files in one step. It does not read ELF object
files, and it does not load programs or maps into the kernel.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.