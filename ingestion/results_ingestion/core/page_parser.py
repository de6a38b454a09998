import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from ingestion.results_ingestion.core.exceptions import ParseIncomplete
from ingestion.results_ingestion.core.hall_tickets import infer_regulation
from ingestion.results_ingestion.core.records import (
    ResultRecord, SubjectMark, derive_status, parse_decimal
)

logger = logging.getLogger(__name__)


class ResultPageParser:
    """
    Parser for the portal's single-result HTML page.

    CONTRACT:
    1. The 'Name' label cell is the authoritative existence signal.
       No label -> None (invalid hall ticket pages are HTTP 200 without it).
    2. The marks table is the one whose header row carries both
       'Subject Code' and 'Subject Name'.
    3. Name found but identity fields or marks missing -> ParseIncomplete.
    4. Averages are never fabricated: SGPA/CGPA stay None unless printed.
    """

    PARSER_VERSION = "results_grade_v1.0"

    MIN_MARK_COLUMNS = 7
    CODE_HEADER = "Subject Code"
    NAME_HEADER = "Subject Name"

    def parse(self, html: str, hall_ticket: str) -> Optional[ResultRecord]:
        soup = BeautifulSoup(html, "html.parser")

        # 1. Existence Check
        name = self._labelled_value(soup, "Name")
        if not name:
            return None

        # 2. Student Info
        college_code = self._labelled_value(soup, "College Code")
        if not college_code:
            raise ParseIncomplete(hall_ticket, "College Code")

        # 3. Marks Table
        marks = self._extract_marks(soup)
        if not marks:
            raise ParseIncomplete(hall_ticket, "marks table")

        return ResultRecord(
            hall_ticket=hall_ticket,
            name=name,
            college_code=college_code,
            regulation=self._labelled_value(soup, "Regulation") or infer_regulation(hall_ticket),
            year=self._labelled_value(soup, "Year"),
            semester=self._labelled_value(soup, "Semester"),
            status=derive_status(marks),
            sgpa=parse_decimal(self._labelled_value(soup, "SGPA")),
            cgpa=parse_decimal(self._labelled_value(soup, "CGPA")),
            marks=marks,
        )

    def _labelled_value(self, soup: BeautifulSoup, label: str) -> Optional[str]:
        """Text of the cell right after the <td> whose text is exactly `label` (ignoring ':')."""
        for cell in soup.select("table td"):
            text = cell.get_text(" ", strip=True).rstrip(":").strip()
            if text.lower() != label.lower():
                continue
            sibling = cell.find_next_sibling("td")
            if sibling is None:
                continue
            value = sibling.get_text(" ", strip=True).lstrip(":").strip()
            if value:
                return value
        return None

    def _extract_marks(self, soup: BeautifulSoup) -> List[SubjectMark]:
        marks: List[SubjectMark] = []
        for table in soup.find_all("table"):
            headers = [th.get_text(" ", strip=True) for th in table.find_all("th")]
            if self.CODE_HEADER not in headers or self.NAME_HEADER not in headers:
                continue

            for row in table.find_all("tr"):
                mark = self._parse_mark_row(row)
                if mark:
                    marks.append(mark)
        return marks

    def _parse_mark_row(self, row: Tag) -> Optional[SubjectMark]:
        cols = [td.get_text(" ", strip=True) for td in row.find_all("td")]
        if len(cols) < self.MIN_MARK_COLUMNS:
            return None

        code, name, internal, external, total, grade, credits = cols[:self.MIN_MARK_COLUMNS]
        if not code or not name:
            return None

        return SubjectMark(
            subject_code=code,
            subject_name=name,
            internal=internal,
            external=external,
            total=total,
            grade=grade,
            credits=parse_decimal(credits),
            grade_points=None,
        )
