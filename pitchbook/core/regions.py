"""Region codes accepted for pitch and user locations."""
from __future__ import annotations

from typing import Final

REGION_CODES: Final[tuple[str, ...]] = (
    "AMMAN",
    "IRBID",
    "ZARQA",
    "AQABA",
    "SALT",
    "MADABA",
    "KARAK",
    "TAFILAH",
    "MAAN",
    "JERASH",
    "AJLOUN",
    "MAFRAQ",
)


class RegionValidationError(ValueError):
    """Raised for a non-empty region value that is not a known code."""

    def __init__(self, value: str) -> None:
        self.value = value
        self.accepted = list(REGION_CODES)
        super().__init__(f"Invalid city. Must be one of: {', '.join(REGION_CODES)}")


def is_valid_region(value: str | None) -> bool:
    if not value:
        return False
    return value in REGION_CODES


def validate_region(value: str | None) -> str | None:
    """Return the region code, or ``None`` for an empty value.

    The field is optional, so ``None`` and blank strings pass. Anything else
    must match one of :data:`REGION_CODES` exactly (case-sensitive).
    """

    if value is None or value.strip() == "":
        return None
    if not is_valid_region(value):
        raise RegionValidationError(value)
    return value


__all__ = ["REGION_CODES", "RegionValidationError", "is_valid_region", "validate_region"]
