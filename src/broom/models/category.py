"""Category descriptor shared by scanners and results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

SafetyLevel = Literal["safe", "moderate", "risky"]

SAFETY_LEVELS: tuple[str, ...] = ("safe", "moderate", "risky")

CATEGORY_GROUPS: tuple[str, ...] = ("System Junk", "Development", "Storage", "Browsers", "Apps")


@dataclass(frozen=True, slots=True)
class Category:
    """Static description of one class of cleanup targets.

    The safety level is declared once by the scanner author and never
    computed at runtime.
    """

    id: str
    name: str
    group: str
    description: str
    safety_level: SafetyLevel = "safe"
    safety_note: str | None = None

    def __post_init__(self) -> None:
        if self.safety_level not in SAFETY_LEVELS:
            raise ValueError(f"Invalid safety level for '{self.id}': {self.safety_level!r}")
        if self.group not in CATEGORY_GROUPS:
            raise ValueError(f"Invalid group for '{self.id}': {self.group!r}")

    @property
    def is_risky(self) -> bool:
        return self.safety_level == "risky"
