"""Assembler and build helpers for eBPF bytecode."""

__version__ = "0.1.0"