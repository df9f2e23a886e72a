"""Command-line helpers: splitting compiler flags and quoted arguments."""

from __future__ import annotations

from typing import Sequence


def split_cflags_from_args(args: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split args at the first '--' into positional arguments and C flags."""
    args = list(args)
    try:
        index = args.index("--")
    except ValueError:
        return args, []
    return args[:index], args[index + 1 :]


def split_arguments(text: str) -> list[str]:
    """Split a string into arguments, honouring quotes and backslash escapes.

    Raises ValueError on an unterminated quote or a trailing backslash.
    """
    result: list[str] = []
    current: list[str] = []
    escaped = False
    delim = " "

    for ch in text.strip():
        if escaped:
            current.append(ch)
            escaped = False
            continue

        if ch == "\\":
            escaped = True
        elif ch == delim:
            word = "".join(current)
            current.clear()
            # Empty words only count when they were quoted.
            if word or delim != " ":
                result.append(word)
            delim = " "
        elif ch in "\"'" and delim == " ":
            delim = ch
        else:
            current.append(ch)

    if delim != " ":
        raise ValueError(f"missing `{delim}`")
    if escaped:
        raise ValueError("unfinished escape")

    if current:
        result.append("".join(current))
    return result


def to_upper_first(text: str) -> str:
    """Return text with its first character upper-cased."""
    return text[:1].upper() + text[1:]