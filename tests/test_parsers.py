"""Unit tests for parsers module."""

import datetime as dt
from io import BytesIO

import pandas as pd
import pytest

from academic_engine.errors import InvalidInput
from academic_engine.models import AttendanceStatus
from academic_engine.parsers import (
    attendance_events_from_frame,
    exam_results_from_frame,
    grade_bands_from_frame,
    load_table,
    normalize_col_name,
    normalize_columns,
    parse_marks,
    parse_status,
)


def test_normalize_col_name():
    """Headers are lowercased with punctuation stripped."""
    assert normalize_col_name("  Marks Obtained. ") == "marks obtained"
    assert normalize_col_name("Max_Marks") == "max marks"
    assert normalize_col_name("Min %") == "min"
    assert normalize_col_name(None) == ""


def test_normalize_columns_renames_variations():
    df = pd.DataFrame(columns=['Student ID', 'Subject', 'Exam', 'Score', 'Out Of'])
    renamed = normalize_columns(df, 'exam_results')
    assert list(renamed.columns) == ['student_id', 'subject_id', 'exam_id', 'marks_obtained', 'max_marks']


def test_normalize_columns_missing_required():
    df = pd.DataFrame(columns=['Student ID', 'Score'])
    with pytest.raises(InvalidInput) as exc:
        normalize_columns(df, 'exam_results')
    assert 'subject_id' in str(exc.value)


def test_normalize_columns_unknown_kind():
    with pytest.raises(InvalidInput):
        normalize_columns(pd.DataFrame(), 'fees')


def test_parse_status():
    """Full names and single-letter codes are accepted."""
    assert parse_status('Present') == AttendanceStatus.PRESENT
    assert parse_status('L') == AttendanceStatus.LATE
    assert parse_status(' excused ') == AttendanceStatus.EXCUSED
    with pytest.raises(InvalidInput):
        parse_status('holiday')
    with pytest.raises(InvalidInput):
        parse_status(None)


def test_parse_marks():
    assert parse_marks('42') == 42.0
    assert parse_marks(37.5) == 37.5
    assert parse_marks('AB') is None
    assert parse_marks('') is None
    assert parse_marks(float('nan')) is None
    with pytest.raises(InvalidInput):
        parse_marks('forty')


def test_exam_results_from_frame():
    df = pd.DataFrame({
        'Roll No': [101.0, 102.0, 103.0],
        'Subject': ['math', 'math', 'math'],
        'Exam': ['mid', 'mid', 'mid'],
        'Marks Obtained': [45, 'AB', 30],
        'Max Marks': [50, 50, 50],
    })
    results = exam_results_from_frame(df)
    assert [r.student_id for r in results] == ['101', '102', '103']
    assert results[0].marks_obtained == 45.0
    assert results[1].is_absent is True
    assert results[1].marks_obtained is None
    assert results[2].is_absent is False


def test_exam_results_require_max_marks():
    df = pd.DataFrame({
        'student_id': ['s1'], 'subject_id': ['m'], 'exam_id': ['e'],
        'marks_obtained': [10], 'max_marks': [None],
    })
    with pytest.raises(InvalidInput):
        exam_results_from_frame(df)


def test_attendance_events_from_frame():
    df = pd.DataFrame({
        'Student': ['s1', 's1', 's2'],
        'Date': ['2024-01-10', '2024-01-11', '2024-01-10'],
        'Status': ['P', 'late', 'Absent'],
    })
    events = attendance_events_from_frame(df)
    assert events[0].date == dt.date(2024, 1, 10)
    assert [e.status for e in events] == [
        AttendanceStatus.PRESENT, AttendanceStatus.LATE, AttendanceStatus.ABSENT
    ]
    assert events[0].subject_id is None


def test_attendance_bad_status_reports_row():
    df = pd.DataFrame({'student_id': ['s1'], 'date': ['2024-01-10'], 'status': ['sick']})
    with pytest.raises(InvalidInput) as exc:
        attendance_events_from_frame(df)
    assert 'Row 2' in str(exc.value)


def test_grade_bands_from_frame(caplog):
    """Bands load and table gaps are logged as warnings."""
    df = pd.DataFrame({
        'Grade': ['A', 'B', None],
        'Min': [80, 50, 0],
        'Max': [100, 69.99, 10],
        'GP': [10, 8, None],
    })
    with caplog.at_level('WARNING'):
        bands = grade_bands_from_frame(df)
    assert [b.grade for b in bands] == ['A', 'B']
    assert bands[0].grade_point == 10.0
    assert 'Gap between B and A' in caplog.text


def test_load_table_csv():
    content = b"student_id,date,status\ns1,2024-01-10,present\n,,\n"
    df = load_table(content, 'attendance.csv')
    assert len(df) == 1
    assert list(df.columns) == ['student_id', 'date', 'status']


def test_load_table_excel():
    buffer = BytesIO()
    pd.DataFrame({'grade': ['A'], 'min_percentage': [90], 'max_percentage': [100]}).to_excel(
        buffer, index=False, engine='openpyxl'
    )
    df = load_table(buffer.getvalue(), 'bands.xlsx')
    bands = grade_bands_from_frame(df)
    assert bands[0].grade == 'A'
    assert bands[0].min_percentage == 90.0


def test_load_table_rejects_other_types():
    with pytest.raises(InvalidInput):
        load_table(b"{}", 'data.json')
