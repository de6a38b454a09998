from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, Index, UniqueConstraint, BigInteger, ForeignKey, CheckConstraint, JSON, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base
import uuid

# JSONB on Postgres, plain JSON elsewhere (SQLite test databases)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# --- PILLAR 1: RESULT FACTS ---

class Student(Base):
    """
    Student summary row. One per hall ticket.
    Identity columns (name, college, regulation) are written once at first insert.
    """
    __tablename__ = "students"

    hall_ticket = Column(String(20), primary_key=True)
    name = Column(String(255), nullable=False)
    college_code = Column(String(10), nullable=True)
    regulation = Column(String(10), nullable=True)
    year = Column(String(10), nullable=True)
    semester = Column(String(10), nullable=True)

    status = Column(String(20), nullable=False)
    # Zero Fabrication: NULL means the portal did not expose the average
    sgpa = Column(Numeric(4, 2), nullable=True)
    cgpa = Column(Numeric(4, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    marks = relationship("Mark", back_populates="student", order_by="Mark.id")

    __table_args__ = (
        CheckConstraint("status IN ('PASS', 'FAIL')", name="ck_students_status"),
        Index('idx_students_college', 'college_code'),
    )


class Subject(Base):
    """Subject catalog. First writer wins for name/credits."""
    __tablename__ = "subjects"

    subject_code = Column(String(50), primary_key=True)
    subject_name = Column(String(255), nullable=False)
    credits = Column(Numeric(3, 1), nullable=True)


class Mark(Base):
    __tablename__ = "marks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hall_ticket = Column(String(20), ForeignKey("students.hall_ticket"), nullable=False)
    subject_code = Column(String(50), ForeignKey("subjects.subject_code"), nullable=False)

    # Raw strings: the portal prints values like "AB" or "-" in score cells
    internal = Column(String(10), nullable=True)
    external = Column(String(10), nullable=True)
    total = Column(String(10), nullable=True)
    grade = Column(String(5), nullable=True)
    grade_points = Column(Numeric(3, 1), nullable=True)
    credits = Column(Numeric(3, 1), nullable=True)

    student = relationship("Student", back_populates="marks")
    subject = relationship("Subject")

    __table_args__ = (
        UniqueConstraint('hall_ticket', 'subject_code', name='uq_marks_hall_ticket_subject'),
        Index('idx_marks_hall_ticket', 'hall_ticket'),
    )


# --- PILLAR 2: BATCH CONTROL PLANE ---

class ScrapeBatch(Base):
    """
    The Flight Recorder for one bulk scrape request.
    Range bounds and chunk indices are stored as text: numeric hall ticket
    ranges can exceed 64-bit integer columns.
    """
    __tablename__ = "scrape_batches"

    batch_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    source_kind = Column(String(16), nullable=False)        # PROFILE | RANGE
    profile_slug = Column(String(32), nullable=True)
    college_code = Column(String(4), nullable=True)
    range_start = Column(String(40), nullable=True)
    range_end = Column(String(40), nullable=True)

    exam_code = Column(String(16), nullable=False)
    delay_ms = Column(Integer, nullable=False)
    worker_count = Column(Integer, nullable=False)
    chunk_size = Column(String(40), nullable=False)
    total = Column(String(40), nullable=False)

    status = Column(String(16), nullable=False, server_default="QUEUED")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    chunks = relationship("ScrapeChunk", back_populates="batch", order_by="ScrapeChunk.chunk_index")

    __table_args__ = (
        CheckConstraint("source_kind IN ('PROFILE', 'RANGE')", name="ck_scrape_batches_source"),
    )


class ScrapeChunk(Base):
    __tablename__ = "scrape_chunks"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    batch_id = Column(Uuid(as_uuid=True), ForeignKey("scrape_batches.batch_id"), nullable=False)
    chunk_index = Column(Integer, nullable=False)

    # Half-open index range [start_index, stop_index) into the batch source
    start_index = Column(String(40), nullable=False)
    stop_index = Column(String(40), nullable=False)

    status = Column(String(16), nullable=False, server_default="PENDING")
    task_id = Column(String(64), nullable=True)
    stats = Column(JSONType, nullable=False, default=dict)
    failed_hall_tickets = Column(JSONType, nullable=False, default=list)
    error = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    batch = relationship("ScrapeBatch", back_populates="chunks")

    __table_args__ = (
        UniqueConstraint('batch_id', 'chunk_index', name='uq_scrape_chunk_index'),
        CheckConstraint(
            "status IN ('PENDING', 'RUNNING', 'COMPLETED', 'FAILED')",
            name="ck_scrape_chunks_status"
        ),
        Index('idx_chunks_batch', 'batch_id'),
    )
