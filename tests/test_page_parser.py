"""Tests for status derivation and the result page parser."""

from decimal import Decimal

import pytest

from ingestion.results_ingestion.core.exceptions import ParseIncomplete
from ingestion.results_ingestion.core.page_parser import ResultPageParser
from ingestion.results_ingestion.core.records import SubjectMark, derive_status, parse_decimal


def _mark(grade):
    return SubjectMark(subject_code="CS101", subject_name="Programming", grade=grade)


class TestStatusDerivation:

    def test_fail_grade_fails_the_record(self):
        assert derive_status([_mark("A"), _mark("F")]) == "FAIL"

    def test_passing_grades(self):
        assert derive_status([_mark("A"), _mark("B")]) == "PASS"

    @pytest.mark.parametrize("grade", ["AB", "Ab", " f "])
    def test_absent_and_case_insensitive_markers(self, grade):
        assert derive_status([_mark("A"), _mark(grade)]) == "FAIL"

    def test_missing_grade_does_not_fail(self):
        assert derive_status([_mark(None)]) == "PASS"

    @pytest.mark.parametrize("raw,expected", [("8.50", Decimal("8.50")), (" 7 ", Decimal("7")), ("", None), ("-", None), (None, None)])
    def test_parse_decimal(self, raw, expected):
        assert parse_decimal(raw) == expected


class TestResultPageParser:

    @pytest.fixture
    def parser(self):
        return ResultPageParser()

    def test_full_page(self, parser, page):
        html = page(
            "23XZ1A0501",
            name="ADA LOVELACE",
            subjects=[
                ("CS101", "Programming", "28", "60", "88", "A", "3"),
                ("MA101", "Mathematics", "10", "12", "22", "F", "4"),
            ],
            extra_labels={"SGPA": "7.25", "Semester": "I"},
        )

        record = parser.parse(html, "23XZ1A0501")

        assert record.name == "ADA LOVELACE"
        assert record.college_code == "XZ"
        assert record.status == "FAIL"
        assert record.semester == "I"
        assert record.sgpa == Decimal("7.25")
        assert record.cgpa is None
        assert record.regulation == "R22"
        assert [m.subject_code for m in record.marks] == ["CS101", "MA101"]
        assert record.marks[0].credits == Decimal("3")
        assert all(m.grade_points is None for m in record.marks)

    def test_printed_regulation_wins_over_cohort(self, parser, page):
        html = page("23XZ1A0501", extra_labels={"Regulation": "R18"})
        assert parser.parse(html, "23XZ1A0501").regulation == "R18"

    def test_no_name_label_means_not_found(self, parser):
        html = "<html><body><table><tr><td>Invalid Hall Ticket</td></tr></table></body></html>"
        assert parser.parse(html, "23XZ1A0501") is None

    def test_father_name_is_not_the_name_label(self, parser, page):
        html = page("23XZ1A0501", name=None, extra_labels={"Father Name": "SOMEONE"})
        assert parser.parse(html, "23XZ1A0501") is None

    def test_missing_college_code_is_incomplete(self, parser, page):
        html = page("23XZ1A0501", college_code=None)

        with pytest.raises(ParseIncomplete) as exc:
            parser.parse(html, "23XZ1A0501")
        assert exc.value.missing == "College Code"

    def test_missing_marks_table_is_incomplete(self, parser, page):
        html = page("23XZ1A0501", subjects=[])

        with pytest.raises(ParseIncomplete):
            parser.parse(html, "23XZ1A0501")

    def test_short_rows_are_skipped(self, parser, page):
        html = page(
            "23XZ1A0501",
            subjects=[
                ("CS101", "Programming", "28", "60", "88", "A", "3"),
                ("TOTAL", "", "", "", "150"),
                ("", "Blank code", "1", "2", "3", "A", "1"),
            ],
        )

        record = parser.parse(html, "23XZ1A0501")

        assert [m.subject_code for m in record.marks] == ["CS101"]
