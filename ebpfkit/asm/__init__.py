"""eBPF instruction set: opcodes, registers, helpers, instructions and encoding."""

__all__ = ["functions", "instruction", "opcode"]