from decimal import Decimal, InvalidOperation
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

# Grades that make the whole record a FAIL
FAIL_GRADES = {"F", "AB"}

ResultStatus = Literal["PASS", "FAIL"]


class SubjectCatalogEntry(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    credits: Optional[Decimal] = None


class SubjectMark(BaseModel):
    """One row of the marks table: the subject it belongs to plus the scores."""
    subject_code: str = Field(..., min_length=1)
    subject_name: str = Field(..., min_length=1)
    internal: Optional[str] = None
    external: Optional[str] = None
    total: Optional[str] = None
    grade: Optional[str] = None
    credits: Optional[Decimal] = None
    # No grading-scale table is published by the portal: always unknown
    grade_points: Optional[Decimal] = None

    @property
    def is_failing(self) -> bool:
        return (self.grade or "").strip().upper() in FAIL_GRADES


class ResultRecord(BaseModel):
    """
    One ingested outcome for one hall ticket.
    Identity fields are mandatory: a record that cannot fill them is never built.
    """
    hall_ticket: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    college_code: str = Field(..., min_length=1)
    regulation: Optional[str] = None
    year: Optional[str] = None
    semester: Optional[str] = None
    status: ResultStatus
    sgpa: Optional[Decimal] = None
    cgpa: Optional[Decimal] = None
    marks: List[SubjectMark] = Field(default_factory=list)

    @property
    def subjects(self) -> List[SubjectCatalogEntry]:
        return [
            SubjectCatalogEntry(code=m.subject_code, name=m.subject_name, credits=m.credits)
            for m in self.marks
        ]


def derive_status(marks: List[SubjectMark]) -> ResultStatus:
    return "FAIL" if any(m.is_failing for m in marks) else "PASS"


def parse_decimal(raw: Optional[str]) -> Optional[Decimal]:
    if raw is None:
        return None
    cleaned = str(raw).strip()
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None
