"""Compilation targets and their mapping to Go architectures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, TextIO


@dataclass(frozen=True)
class Target:
    """A clang target and, optionally, the Linux architecture it implies."""

    clang: str
    linux: str = ""


class InvalidTargetError(ValueError):
    """Raised for a target name that cannot be compiled for."""


# Targets without a Linux name are only reachable through bpf, bpfel, bpfeb.
TARGET_BY_GOARCH: dict[str, Target] = {
    "386": Target("bpfel", "x86"),
    "amd64": Target("bpfel", "x86"),
    "amd64p32": Target("bpfel", ""),
    "arm": Target("bpfel", "arm"),
    "arm64": Target("bpfel", "arm64"),
    "mipsle": Target("bpfel", ""),
    "mips64le": Target("bpfel", ""),
    "mips64p32le": Target("bpfel", ""),
    "ppc64le": Target("bpfel", "powerpc"),
    "riscv64": Target("bpfel", ""),
    "armbe": Target("bpfeb", "arm"),
    "arm64be": Target("bpfeb", "arm64"),
    "mips": Target("bpfeb", ""),
    "mips64": Target("bpfeb", ""),
    "mips64p32": Target("bpfeb", ""),
    "ppc64": Target("bpfeb", "powerpc"),
    "s390": Target("bpfeb", "s390"),
    "s390x": Target("bpfeb", "s390"),
    "sparc": Target("bpfeb", "sparc"),
    "sparc64": Target("bpfeb", "sparc"),
}

_GENERIC = ("bpf", "bpfel", "bpfeb")


def print_targets(stream: TextIO) -> None:
    """Write the list of supported targets to stream."""
    arches = sorted(arch for arch, tgt in TARGET_BY_GOARCH.items() if tgt.linux)
    stream.write("Supported targets:\n")
    stream.write("".join(f"\t{name}\n" for name in (*_GENERIC, *arches)))


def collect_targets(targets: Iterable[str]) -> dict[Target, list[str]]:
    """Map each requested target to the sorted Go architectures it covers."""
    result: dict[Target, list[str]] = {}
    for name in targets:
        if name in _GENERIC:
            result[Target(name, "")] = sorted(
                arch for arch, tgt in TARGET_BY_GOARCH.items() if tgt.clang == name
            )
            continue

        arch_target = TARGET_BY_GOARCH.get(name)
        if arch_target is None or not arch_target.linux:
            raise InvalidTargetError(f'"{name}": unsupported target')
        result[arch_target] = sorted(
            arch for arch, tgt in TARGET_BY_GOARCH.items() if tgt == arch_target
        )
    return result


def output_stem(ident: str, target: Target) -> str:
    """Return the file name stem of the output for ident and target."""
    stem = f"{ident.lower()}_{target.clang}"
    if target.linux:
        stem += f"_{target.linux}"
    return stem