"""Machine versions: dotted numeric versions with 2 to 4 components.

Undefined trailing components compare below zero, so ``1.0 < 1.0.0``.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering

from fomodkit.core.errors import FormatError


@total_ordering
@dataclass(frozen=True)
class MachineVersion:
    parts: tuple[int, ...]

    def __post_init__(self) -> None:
        if not 2 <= len(self.parts) <= 4:
            raise FormatError(f"Version must have 2 to 4 components: {self.parts!r}")
        if any(p < 0 for p in self.parts):
            raise FormatError(f"Version components must be non-negative: {self.parts!r}")

    @classmethod
    def parse(cls, text: str) -> MachineVersion:
        raw = (text or "").strip()
        try:
            parts = tuple(int(p) for p in raw.split("."))
        except ValueError:
            raise FormatError(f"Invalid version string: {text!r}") from None
        return cls(parts)

    def _key(self) -> tuple[int, ...]:
        return self.parts + (-1,) * (4 - len(self.parts))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, MachineVersion):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)


DEFAULT_VERSION = MachineVersion((1, 0))
DEFAULT_MIN_TOOL_VERSION = MachineVersion((0, 0, 0, 0))
