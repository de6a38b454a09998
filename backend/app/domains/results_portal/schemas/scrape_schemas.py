from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class StartScrapeRequest(BaseModel):
    """
    Either a profile (optionally with a college code) or a numeric range.
    With neither, the configured HALL_TICKET_START/END range is used.
    """
    profile: Optional[str] = None
    college_code: Optional[str] = Field(default=None, min_length=2, max_length=2)
    range_start: Optional[str] = Field(default=None, pattern=r"^\d+$")
    range_end: Optional[str] = Field(default=None, pattern=r"^\d+$")
    workers: Optional[int] = Field(default=None, ge=1, le=500)
    delay_ms: Optional[int] = Field(default=None, ge=0)
    exam_code: Optional[str] = None

    @model_validator(mode="after")
    def check_source(self):
        has_range = self.range_start is not None or self.range_end is not None
        if self.profile and has_range:
            raise ValueError("Provide either 'profile' or a numeric range, not both")
        if has_range and (self.range_start is None or self.range_end is None):
            raise ValueError("Both 'range_start' and 'range_end' are required")
        return self


class StartScrapeResponse(BaseModel):
    status: str
    message: str
    batch_id: str
    config: Dict[str, Any]
    plan: List[Dict[str, Any]]


class WorkerRequest(BaseModel):
    hall_tickets: List[str] = Field(..., min_length=1)
    exam_code: Optional[str] = None
    delay_ms: Optional[int] = Field(default=None, ge=0)


class WorkerStats(BaseModel):
    processed: int
    success: int
    not_found: int
    parse_incomplete: int
    rejected: int
    cache_failures: int = 0
    failed_count: int
    failed: List[str]


class WorkerResponse(BaseModel):
    status: str
    stats: WorkerStats
