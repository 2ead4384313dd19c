"""Grid bounds shared by both coordinate axes."""

from __future__ import annotations

from dataclasses import dataclass

from veilofplay.backend.errors import DomainUnsupported

GRID_MIN = 1
GRID_MAX = 10


@dataclass(frozen=True)
class CoordinateDomain:
    minimum: int = GRID_MIN
    maximum: int = GRID_MAX

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise DomainUnsupported(self.minimum, self.maximum)

    @property
    def width(self) -> int:
        return self.maximum - self.minimum + 1

    def bounds(self) -> tuple[int, int]:
        return self.minimum, self.maximum

    def contains(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum
