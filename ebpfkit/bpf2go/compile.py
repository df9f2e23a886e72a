"""Invoking the C compiler and handling make-style dependency files."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from typing import Iterable, Optional, TextIO

_MAX_LINE = 1024 * 1024

_TARGET_MISSING = (
    '-D__BPF_TARGET_MISSING="GCC error \\"The eBPF is using target specific '
    'macros, please provide -target\\""'
)


class CompileError(RuntimeError):
    """Raised when the compiler cannot be run or reports a failure."""


@dataclass
class CompileArgs:
    """Parameters of one compiler invocation."""

    cc: str
    dir: str
    source: str
    dest: str
    cflags: list[str] = field(default_factory=list)
    target: str = ""
    dep: Optional[TextIO] = None


@dataclass
class Dependency:
    """A make rule: a file and the files it depends on."""

    file: str
    prerequisites: list[str] = field(default_factory=list)


def _command(args: CompileArgs) -> list[str]:
    input_dir = os.path.dirname(args.source)
    rel_input_dir = os.path.relpath(input_dir, args.dir)
    return [
        args.cc,
        # Defaults that the caller's flags may override.
        "-O2",
        "-mcpu=v1",
        *args.cflags,
        "-target",
        args.target or "bpf",
        "-c",
        args.source,
        "-o",
        args.dest,
        "-fno-ident",
        f"-fdebug-prefix-map={input_dir}={rel_input_dir}",
        "-fdebug-compilation-dir",
        ".",
        "-g",
        _TARGET_MISSING,
    ]


def _start(cmd: list[str], cwd: str, pass_fds=()) -> subprocess.Popen:
    try:
        return subprocess.Popen(
            cmd, cwd=cwd, stdout=subprocess.DEVNULL, pass_fds=pass_fds
        )
    except OSError as exc:
        raise CompileError(f"can't execute {cmd[0]}: {exc}") from exc


def compile_source(args: CompileArgs) -> None:
    """Compile args.source into args.dest, writing dependency info to args.dep."""
    cmd = _command(args)

    if args.dep is None:
        proc = _start(cmd, args.dir)
        returncode = proc.wait()
    else:
        read_fd, write_fd = os.pipe()
        try:
            cmd += ["-MD", "-MP", f"-MF/dev/fd/{write_fd}"]
            try:
                proc = _start(cmd, args.dir, pass_fds=(write_fd,))
            finally:
                os.close(write_fd)
            with os.fdopen(read_fd, "rb") as reader:
                read_fd = -1
                data = reader.read()
        finally:
            if read_fd >= 0:
                os.close(read_fd)
        try:
            args.dep.write(data.decode("utf-8", errors="surrogateescape"))
        except OSError as exc:
            proc.wait()
            raise CompileError(f"error writing depfile: {exc}") from exc
        returncode = proc.wait()

    if returncode != 0:
        raise CompileError(f"{args.cc}: exit status {returncode}")


def adjust_dependencies(base_dir: str, deps: Iterable[Dependency]) -> str:
    """Render dependencies as make rules with paths relative to base_dir."""
    separator = " \\\n "
    chunks = []
    for dep in deps:
        relative_file = os.path.relpath(dep.file, base_dir)
        if not dep.prerequisites:
            chunks.append(f"{relative_file}:\n\n")
            continue
        prereqs = [os.path.relpath(p, base_dir) for p in dep.prerequisites]
        chunks.append(f"{relative_file}:{separator}{separator.join(prereqs)}\n\n")
    return "".join(chunks)


def parse_dependencies(base_dir: str, stream: Iterable[str]) -> list[Dependency]:
    """Parse make-style dependency rules, making relative paths absolute.

    Raises ValueError for malformed input or when no rule is present.
    """

    def absolute(path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(base_dir, path))

    deps: list[Dependency] = []
    line = ""
    for raw in stream:
        text = raw.rstrip("\n").rstrip("\r")
        if len(line) + len(text) > _MAX_LINE:
            raise ValueError("line too long")

        if text.endswith("\\"):
            line += text[:-1]
            continue

        line += text
        if not line:
            continue

        target, sep, rest = line.partition(":")
        if not sep:
            raise ValueError("invalid line without ':'")

        deps.append(Dependency(absolute(target), [absolute(p) for p in rest.split()]))
        line = ""

    if not deps:
        raise ValueError("empty dependency file")
    return deps