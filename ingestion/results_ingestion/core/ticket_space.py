import bisect
import math
import re
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from ingestion.results_ingestion.core.base_profile import Branch, InstitutionProfile, Regulation
from ingestion.results_ingestion.core.hall_tickets import HALL_TICKET_FAMILIES, RollFormat

logger = logging.getLogger(__name__)


class HallTicketSource(ABC):
    """
    A finite, ordered, deterministic sequence of hall tickets.
    Random access by index, so any chunk [start, stop) can be re-derived
    without enumerating the prefix. Uses 'total' rather than len():
    numeric ranges may exceed sys.maxsize.
    """

    @property
    @abstractmethod
    def total(self) -> int: pass

    @abstractmethod
    def identifier_at(self, index: int) -> str: pass

    @abstractmethod
    def iter_range(self, start: int, stop: int) -> Iterator[str]: pass

    def __iter__(self) -> Iterator[str]:
        return self.iter_range(0, self.total)

    def materialize(self) -> List[str]:
        """Only for small sources. Bulk runs should use iter_range per chunk."""
        return list(self)

    def _clamp(self, start: int, stop: int):
        start = max(0, start)
        stop = min(self.total, stop)
        return start, stop


@dataclass(frozen=True)
class _Segment:
    regulation: Regulation
    branch: Branch
    roll_format: RollFormat
    prefix: str
    offset: int

    @property
    def count(self) -> int:
        return self.roll_format.count


class HallTicketSpace(HallTicketSource):
    """
    Every syntactically valid hall ticket of one institution profile.
    Order: regulation -> branch -> sub-format -> roll index ascending.
    """

    GRAMMAR = HALL_TICKET_FAMILIES["autonomous"]

    def __init__(self, profile: InstitutionProfile):
        self.profile = profile
        self._segments: List[_Segment] = []
        offset = 0
        for regulation in profile.regulations:
            for branch in profile.branches:
                for roll_format in branch.roll_formats:
                    if roll_format.count == 0:
                        continue
                    self._segments.append(_Segment(
                        regulation=regulation,
                        branch=branch,
                        roll_format=roll_format,
                        prefix=profile.prefix(regulation, branch),
                        offset=offset,
                    ))
                    offset += roll_format.count
        self._offsets = [s.offset for s in self._segments]
        self._total = offset

    @property
    def total(self) -> int:
        return self._total

    def _emit(self, segment: _Segment, roll_index: int) -> str:
        hall_ticket = f"{segment.prefix}{segment.roll_format.roll_at(roll_index)}"
        assert self.GRAMMAR.match(hall_ticket), f"Generator emitted malformed hall ticket {hall_ticket!r}"
        return hall_ticket

    def _locate(self, index: int) -> int:
        return bisect.bisect_right(self._offsets, index) - 1

    def identifier_at(self, index: int) -> str:
        if not 0 <= index < self._total:
            raise IndexError(f"Index {index} out of range (total {self._total})")
        segment = self._segments[self._locate(index)]
        return self._emit(segment, index - segment.offset)

    def iter_range(self, start: int, stop: int) -> Iterator[str]:
        start, stop = self._clamp(start, stop)
        if start >= stop:
            return
        seg_idx = self._locate(start)
        position = start
        while position < stop and seg_idx < len(self._segments):
            segment = self._segments[seg_idx]
            seg_stop = min(stop, segment.offset + segment.count)
            for i in range(position - segment.offset, seg_stop - segment.offset):
                yield self._emit(segment, i)
            position = seg_stop
            seg_idx += 1

    def breakdown(self) -> List[Dict[str, Any]]:
        """
        Operational sanity check: one row per (regulation, branch) with the
        sub-format composition and a sample hall ticket per sub-format.
        """
        rows = []
        for regulation in self.profile.regulations:
            for branch in self.profile.branches:
                prefix = self.profile.prefix(regulation, branch)
                formats = [
                    {
                        "format": rf.label,
                        "count": rf.count,
                        "sample": f"{prefix}{rf.roll_at(0)}",
                    }
                    for rf in branch.roll_formats if rf.count
                ]
                rows.append({
                    "regulation": regulation.name,
                    "year": regulation.year,
                    "branch": branch.name,
                    "branch_code": branch.code,
                    "type": branch.entry_type,
                    "total_rolls": sum(f["count"] for f in formats),
                    "formats": formats,
                })
        return rows

    def estimate_scrape_time(self, delay_ms: int, avg_students_per_branch: int = 150) -> Dict[str, Any]:
        branches = len(self.profile.regulations) * len(self.profile.branches)
        realistic = branches * avg_students_per_branch
        return {
            "total_possible_tickets": self._total,
            "realistic_valid_tickets": realistic,
            "worst_case_minutes": math.ceil(self._total * delay_ms / 1000 / 60),
            "realistic_minutes": math.ceil(realistic * delay_ms / 1000 / 60),
            "delay_ms": delay_ms,
            "branches": branches,
        }


class NumericHallTicketRange(HallTicketSource):
    """
    Inclusive numeric range [start, end], zero-padded to a fixed width.
    Python ints are arbitrary precision: ranges wider than 2**53 stay exact.
    """

    def __init__(self, start: int, end: int, width: Optional[int] = None):
        if start < 0 or end < 0:
            raise ValueError("Hall ticket range bounds must be non-negative")
        self.start = start
        self.end = end
        self.width = width or len(str(end))
        self._grammar = re.compile(rf"^\d{{{self.width}}}$")

    @classmethod
    def from_strings(cls, start: str, end: str) -> "NumericHallTicketRange":
        start, end = start.strip(), end.strip()
        if not (start.isdigit() and end.isdigit()):
            raise ValueError(f"Numeric range bounds expected, got {start!r}..{end!r}")
        return cls(int(start), int(end), width=max(len(start), len(end)))

    @property
    def total(self) -> int:
        return max(0, self.end - self.start + 1)

    def _emit(self, value: int) -> str:
        hall_ticket = str(value).zfill(self.width)
        assert self._grammar.match(hall_ticket), f"Range emitted malformed hall ticket {hall_ticket!r}"
        return hall_ticket

    def identifier_at(self, index: int) -> str:
        if not 0 <= index < self.total:
            raise IndexError(f"Index {index} out of range (total {self.total})")
        return self._emit(self.start + index)

    def iter_range(self, start: int, stop: int) -> Iterator[str]:
        start, stop = self._clamp(start, stop)
        for i in range(start, stop):
            yield self._emit(self.start + i)
