[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ebpfkit"
version = "0.1.0"
description = "An eBPF bytecode assembler and helpers for compiling eBPF objects with clang."
requires-python = ">=3.10"
dependencies = []
keywords = ["ebpf", "bpf", "bytecode", "assembler", "clang"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Assemblers",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ebpfkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
