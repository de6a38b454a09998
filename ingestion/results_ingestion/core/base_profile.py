from dataclasses import dataclass, field
from typing import Tuple

from ingestion.results_ingestion.core.hall_tickets import RollFormat


@dataclass(frozen=True)
class Regulation:
    name: str   # e.g. "R22"
    year: str   # 2-digit cohort prefix, e.g. "23"


@dataclass(frozen=True)
class Branch:
    code: str   # 2-char branch token, e.g. "1A"
    name: str
    entry_type: str  # "regular" | "lateral"
    roll_formats: Tuple[RollFormat, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InstitutionProfile:
    """
    Static, read-only enumeration grammar for one institution.
    Order of enumeration: regulation -> branch -> sub-format -> roll index.
    """
    slug: str
    college_code: str
    regulations: Tuple[Regulation, ...]
    branches: Tuple[Branch, ...]

    def prefix(self, regulation: Regulation, branch: Branch) -> str:
        return f"{regulation.year}{self.college_code}{branch.code}"
