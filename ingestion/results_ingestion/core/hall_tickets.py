import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Pattern

from ingestion.results_ingestion.core.exceptions import InvalidHallTicket

# --- FORMAT FAMILIES ---
# Autonomous: YY CC BB RRRR  e.g. 23XZ1A0525 / 24XZ5A01B1
# Regular:    YY CCCC BBBNNN e.g. 160121733001
HALL_TICKET_FAMILIES: Dict[str, Pattern] = {
    "autonomous": re.compile(r"^\d{2}[A-Z0-9]{2}\d[A-Z](?:\d{4}|\d{2}[A-Z]\d)$"),
    "regular": re.compile(r"^\d{12}$"),
}


def normalize_hall_ticket(raw: str) -> str:
    return (raw or "").strip().upper()


def detect_family(hall_ticket: str) -> str:
    for family, pattern in HALL_TICKET_FAMILIES.items():
        if pattern.match(hall_ticket):
            return family
    raise InvalidHallTicket(f"Unrecognized hall ticket format: {hall_ticket!r}")


def validate_hall_ticket(raw: str) -> str:
    """Returns the normalized hall ticket or raises InvalidHallTicket."""
    hall_ticket = normalize_hall_ticket(raw)
    detect_family(hall_ticket)
    return hall_ticket


def is_valid_hall_ticket(raw: str) -> bool:
    try:
        validate_hall_ticket(raw)
        return True
    except InvalidHallTicket:
        return False


# Cohort year prefix -> regulation, for autonomous hall tickets
COHORT_REGULATIONS: Dict[str, str] = {"23": "R22", "24": "R23", "25": "R25"}


def infer_regulation(hall_ticket: str) -> Optional[str]:
    if HALL_TICKET_FAMILIES["autonomous"].match(hall_ticket):
        return COHORT_REGULATIONS.get(hall_ticket[:2])
    return None


# --- ROLL SUB-FORMATS ---

class RollFormat(ABC):
    """
    One roll-number sub-format (the trailing 4 characters of an autonomous hall ticket).
    Random access: roll_at(i) for 0 <= i < count, in ascending roll order.
    """

    @property
    @abstractmethod
    def count(self) -> int: pass

    @property
    @abstractmethod
    def label(self) -> str: pass

    @property
    @abstractmethod
    def pattern(self) -> Pattern: pass

    @abstractmethod
    def _format(self, index: int) -> str: pass

    def roll_at(self, index: int) -> str:
        if not 0 <= index < self.count:
            raise IndexError(f"Roll index {index} out of range for {self.label}")
        roll = self._format(index)
        # Width/charset violations are generator defects, not runtime input errors
        assert self.pattern.fullmatch(roll), f"{self.label} produced malformed roll {roll!r}"
        return roll


@dataclass(frozen=True)
class NumericRolls(RollFormat):
    """0001-0999 style rolls."""
    start: int = 1
    end: int = 999
    width: int = 4

    @property
    def count(self) -> int:
        return max(0, self.end - self.start + 1)

    @property
    def label(self) -> str:
        return f"Numeric ({self.start:0{self.width}d}-{self.end:0{self.width}d})"

    @property
    def pattern(self) -> Pattern:
        return re.compile(rf"\d{{{self.width}}}")

    def _format(self, index: int) -> str:
        return f"{self.start + index:0{self.width}d}"


@dataclass(frozen=True)
class LateralRolls(RollFormat):
    """
    Lateral-entry rolls: two digit serial, a letter, one digit suffix.
    e.g. B-format 01B1-99B9, A-format 05A1-99A9.
    """
    letter: str
    serial_start: int
    serial_end: int = 99
    suffix_start: int = 1
    suffix_end: int = 9

    @property
    def _suffixes(self) -> int:
        return max(0, self.suffix_end - self.suffix_start + 1)

    @property
    def count(self) -> int:
        return max(0, self.serial_end - self.serial_start + 1) * self._suffixes

    @property
    def label(self) -> str:
        first = f"{self.serial_start:02d}{self.letter}{self.suffix_start}"
        last = f"{self.serial_end:02d}{self.letter}{self.suffix_end}"
        return f"{self.letter}-format ({first}-{last})"

    @property
    def pattern(self) -> Pattern:
        return re.compile(rf"\d{{2}}{self.letter}\d")

    def _format(self, index: int) -> str:
        serial, suffix = divmod(index, self._suffixes)
        return f"{self.serial_start + serial:02d}{self.letter}{self.suffix_start + suffix}"


# Standard sub-formats shared by the profiles
REGULAR_ROLLS = NumericRolls(start=1, end=999, width=4)
B_FORMAT_ROLLS = LateralRolls(letter="B", serial_start=1)
A_FORMAT_ROLLS = LateralRolls(letter="A", serial_start=5)
