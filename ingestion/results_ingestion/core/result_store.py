import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import func

from app.models import Mark, Student, Subject
from ingestion.results_ingestion.core.exceptions import PersistenceError, StoreUnavailable
from ingestion.results_ingestion.core.records import ResultRecord, SubjectCatalogEntry, SubjectMark
from ingestion.results_ingestion.core.result_cache import ResultCache

logger = logging.getLogger(__name__)


def _dialect_insert(db: Session):
    """ON CONFLICT support lives in the dialect-specific insert constructs."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


def _is_store_unreachable(error: SQLAlchemyError) -> bool:
    # No statement attached -> failure happened while acquiring a connection
    return isinstance(error, DBAPIError) and (error.connection_invalidated or error.statement is None)


class ResultStore:
    """
    The Persistence Upsert.
    One transaction per record:
    1. students  -> insert, or refresh status/averages/updated_at (identity is write-once)
    2. subjects  -> insert-or-ignore (first writer wins) unless refresh_subjects
    3. marks     -> insert-or-update keyed by (hall_ticket, subject_code)
    Then a best-effort cache write that can never undo the commit.
    """

    def __init__(self, session_factory: Callable[[], Session], cache: Optional[ResultCache] = None):
        self.session_factory = session_factory
        self.cache = cache

    def save(self, record: ResultRecord, refresh_subjects: bool = False) -> bool:
        """Returns False only when the commit succeeded but the cache write did not."""
        db = self.session_factory()
        try:
            insert = _dialect_insert(db)
            self._upsert_student(db, insert, record)
            self._upsert_subjects(db, insert, record.subjects, refresh_subjects)
            self._upsert_marks(db, insert, record)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Save failed for {record.hall_ticket}, rolled back: {e}")
            if _is_store_unreachable(e):
                raise StoreUnavailable(f"Database unreachable while saving {record.hall_ticket}") from e
            raise PersistenceError(f"Could not persist {record.hall_ticket}: {e}") from e
        finally:
            db.close()

        # Post-commit: cache is a derived view, its failures are logged inside ResultCache
        if self.cache is None or not self.cache.enabled:
            return True
        return self.cache.set(record)

    def load(self, hall_ticket: str) -> Optional[ResultRecord]:
        """Student summary plus its joined marks, or None when never ingested."""
        db = self.session_factory()
        try:
            student = db.execute(
                select(Student)
                .options(selectinload(Student.marks).selectinload(Mark.subject))
                .where(Student.hall_ticket == hall_ticket)
            ).scalar_one_or_none()
            if student is None:
                return None
            return self._to_record(student)
        except SQLAlchemyError as e:
            if _is_store_unreachable(e):
                raise StoreUnavailable(f"Database unreachable while loading {hall_ticket}") from e
            raise PersistenceError(f"Could not load {hall_ticket}: {e}") from e
        finally:
            db.close()

    # --- WRITES ---

    def _upsert_student(self, db: Session, insert, record: ResultRecord):
        stmt = insert(Student).values(
            hall_ticket=record.hall_ticket,
            name=record.name,
            college_code=record.college_code,
            regulation=record.regulation,
            year=record.year,
            semester=record.semester,
            status=record.status,
            sgpa=record.sgpa,
            cgpa=record.cgpa,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['hall_ticket'],
            set_={
                # Identity (name, college, regulation) is NOT overwritten
                "status": stmt.excluded.status,
                "sgpa": stmt.excluded.sgpa,
                "cgpa": stmt.excluded.cgpa,
                "updated_at": func.now(),
            }
        )
        db.execute(stmt)

    def _upsert_subjects(self, db: Session, insert, subjects: List[SubjectCatalogEntry], refresh: bool):
        seen: Dict[str, SubjectCatalogEntry] = {}
        for subject in subjects:
            seen.setdefault(subject.code, subject)

        for subject in seen.values():
            stmt = insert(Subject).values(
                subject_code=subject.code,
                subject_name=subject.name,
                credits=subject.credits,
            )
            if refresh:
                stmt = stmt.on_conflict_do_update(
                    index_elements=['subject_code'],
                    set_={"subject_name": stmt.excluded.subject_name, "credits": stmt.excluded.credits}
                )
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=['subject_code'])
            db.execute(stmt)

    def _upsert_marks(self, db: Session, insert, record: ResultRecord):
        for mark in record.marks:
            stmt = insert(Mark).values(
                hall_ticket=record.hall_ticket,
                subject_code=mark.subject_code,
                internal=mark.internal,
                external=mark.external,
                total=mark.total,
                grade=mark.grade,
                grade_points=mark.grade_points,
                credits=mark.credits,
            )
            # Revaluation / supplementary corrections overwrite scores in place
            stmt = stmt.on_conflict_do_update(
                index_elements=['hall_ticket', 'subject_code'],
                set_={
                    "internal": stmt.excluded.internal,
                    "external": stmt.excluded.external,
                    "total": stmt.excluded.total,
                    "grade": stmt.excluded.grade,
                }
            )
            db.execute(stmt)

    # --- READS ---

    def _to_record(self, student: Student) -> ResultRecord:
        marks = [
            SubjectMark(
                subject_code=m.subject_code,
                subject_name=m.subject.subject_name if m.subject else m.subject_code,
                internal=m.internal,
                external=m.external,
                total=m.total,
                grade=m.grade,
                credits=m.credits,
                grade_points=m.grade_points,
            )
            for m in student.marks
        ]
        return ResultRecord(
            hall_ticket=student.hall_ticket,
            name=student.name,
            college_code=student.college_code,
            regulation=student.regulation,
            year=student.year,
            semester=student.semester,
            status=student.status,
            sgpa=student.sgpa,
            cgpa=student.cgpa,
            marks=marks,
        )
