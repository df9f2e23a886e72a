"""Names of the identifiers emitted into generated code."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .tools import to_upper_first


@dataclass(frozen=True)
class TemplateName:
    """Derives generated identifiers from a user-supplied stem."""

    name: str

    def __str__(self) -> str:
        return self.name

    def _exported(self) -> bool:
        return self.name[:1].isupper()

    def maybe_export(self, text: str) -> str:
        """Capitalise text if the stem itself is exported."""
        return to_upper_first(text) if self._exported() else text

    def bytes_name(self) -> str:
        return "_" + to_upper_first(self.name) + "Bytes"

    def specs(self) -> str:
        return self.maybe_export(self.name + "Specs")

    def program_specs(self) -> str:
        return self.maybe_export(self.name + "ProgramSpecs")

    def map_specs(self) -> str:
        return self.maybe_export(self.name + "MapSpecs")

    def load(self) -> str:
        return self.maybe_export("load" + to_upper_first(self.name))

    def load_objects(self) -> str:
        return self.maybe_export("load" + to_upper_first(self.name) + "Objects")

    def objects(self) -> str:
        return self.maybe_export(self.name + "Objects")

    def maps(self) -> str:
        return self.maybe_export(self.name + "Maps")

    def programs(self) -> str:
        return self.maybe_export(self.name + "Programs")

    def close_helper(self) -> str:
        return "_" + to_upper_first(self.name) + "Close"


def identifier(text: str) -> str:
    """Turn a map or program name into an exported identifier."""
    out = []
    # None marks the start of the string or a deleted underscore.
    prev: Optional[str] = None
    for ch in text:
        current: Optional[str] = ch
        if ch.isalpha():
            if prev is None:
                current = ch.upper()
        elif ch == "_":
            if prev is None or prev.isdecimal() or (prev.isalpha() and prev.islower()):
                current = None
        elif not ch.isdecimal():
            continue
        prev = current
        if current is not None:
            out.append(current)
    return "".join(out)


def tag(text: str) -> str:
    """Return the struct tag naming an object."""
    return '`ebpf:"' + text + '"`'