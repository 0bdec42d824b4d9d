"""Spreadsheet and CSV parsing into engine input records."""

import logging
import re
from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd

from academic_engine.attendance import coerce_status
from academic_engine.errors import InvalidInput
from academic_engine.grading import log_band_issues
from academic_engine.models import AttendanceEvent, AttendanceStatus, ExamResultInput, GradeBand

logger = logging.getLogger(__name__)

# canonical column -> accepted (normalized) header variations
COLUMN_MAPPINGS: Dict[str, Dict[str, List[str]]] = {
    'exam_results': {
        'student_id': ['student id', 'studentid', 'student', 'student number', 'roll number', 'roll no'],
        'subject_id': ['subject id', 'subjectid', 'subject'],
        'exam_id': ['exam id', 'examid', 'exam'],
        'marks_obtained': ['marks obtained', 'marks', 'score', 'obtained'],
        'max_marks': ['max marks', 'maximum marks', 'total marks', 'out of', 'total'],
        'is_absent': ['is absent', 'absent'],
    },
    'attendance': {
        'student_id': ['student id', 'studentid', 'student', 'student number', 'roll number', 'roll no'],
        'date': ['date', 'attendance date', 'day'],
        'status': ['status', 'attendance', 'attendance status', 'mark'],
        'subject_id': ['subject id', 'subjectid', 'subject'],
    },
    'grade_bands': {
        'grade': ['grade', 'letter grade', 'grade letter'],
        'min_percentage': ['min percentage', 'min', 'minimum', 'from'],
        'max_percentage': ['max percentage', 'max', 'maximum', 'to'],
        'grade_point': ['grade point', 'gp', 'points'],
        'description': ['description', 'remarks'],
    },
}

REQUIRED_COLUMNS = {
    'exam_results': ['student_id', 'subject_id', 'exam_id', 'marks_obtained', 'max_marks'],
    'attendance': ['student_id', 'date', 'status'],
    'grade_bands': ['grade', 'min_percentage', 'max_percentage'],
}

STATUS_CODES = {
    'p': AttendanceStatus.PRESENT,
    'a': AttendanceStatus.ABSENT,
    'l': AttendanceStatus.LATE,
    'e': AttendanceStatus.EXCUSED,
}

ABSENT_MARKERS = {'ab', 'abs', 'absent', 'a'}


def normalize_col_name(col_name) -> str:
    """Lowercase, strip punctuation and collapse whitespace in a header."""
    if pd.isna(col_name):
        return ""
    normalized = str(col_name).strip().lower()
    normalized = re.sub(r'[_\-]', ' ', normalized)
    normalized = re.sub(r'[.,%#()]', '', normalized)
    normalized = re.sub(r'\s+', ' ', normalized)
    return normalized.strip()


def normalize_columns(df: pd.DataFrame, kind: str) -> pd.DataFrame:
    """
    Rename header variations to canonical column names.

    Args:
        df: Raw sheet
        kind: "exam_results", "attendance" or "grade_bands"

    Returns:
        Copy of df with canonical column names

    Raises:
        InvalidInput: If kind is unknown or a required column is missing
    """
    if kind not in COLUMN_MAPPINGS:
        raise InvalidInput(f"Unknown sheet kind: {kind!r}", 'kind', kind)

    df = df.copy()
    target_mappings = COLUMN_MAPPINGS[kind]

    actual_rename = {}
    for orig_col in df.columns:
        normalized = normalize_col_name(orig_col)
        for target_name, variations in target_mappings.items():
            if normalized == normalize_col_name(target_name) or normalized in variations:
                if target_name not in actual_rename.values():
                    actual_rename[orig_col] = target_name
                break

    if actual_rename:
        df = df.rename(columns=actual_rename)
        logger.debug("Renamed columns in %s sheet: %s", kind, actual_rename)

    # Remove duplicate columns (keep first occurrence)
    if df.columns.duplicated().any():
        logger.warning("Duplicate columns in %s sheet: %s", kind, df.columns[df.columns.duplicated()].tolist())
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    missing = [c for c in REQUIRED_COLUMNS[kind] if c not in df.columns]
    if missing:
        raise InvalidInput(
            f"Missing required columns in {kind} sheet: {', '.join(missing)}. Found: {list(df.columns)}",
            'columns', list(df.columns)
        )
    return df


def _clean_id(value) -> str:
    if pd.isna(value):
        return ""
    text = str(value).strip()
    # Excel turns numeric ids into floats
    if re.fullmatch(r'\d+\.0', text):
        text = text[:-2]
    return text


def _optional_text(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _optional_float(value, field: str) -> Optional[float]:
    if value is None or pd.isna(value) or str(value).strip() == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a number, got {value!r}", field, value)


def parse_status(value) -> AttendanceStatus:
    """Parse a status cell; accepts full names or P/A/L/E codes."""
    if value is None or pd.isna(value):
        raise InvalidInput("Attendance status is empty", 'status', None)
    text = str(value).strip().lower()
    if text in STATUS_CODES:
        return STATUS_CODES[text]
    return coerce_status(text)


def parse_marks(value) -> Optional[float]:
    """Parse a marks cell. Blank or absent markers ("AB", "absent") give None."""
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    if text == "" or text.lower() in ABSENT_MARKERS:
        return None
    try:
        return float(text)
    except ValueError:
        raise InvalidInput(f"marks_obtained must be a number, got {value!r}", 'marks_obtained', value)


def parse_flag(value) -> bool:
    if value is None or pd.isna(value):
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'y', 'x')


def parse_date(value):
    try:
        parsed = pd.to_datetime(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid attendance date: {value!r}", 'date', value)
    if pd.isna(parsed):
        raise InvalidInput("Attendance date is empty", 'date', None)
    return parsed.date()


def exam_results_from_frame(df: pd.DataFrame) -> List[ExamResultInput]:
    """Build ExamResultInput records from a results sheet."""
    df = normalize_columns(df, 'exam_results')
    results = []
    for idx, row in df.iterrows():
        marks = parse_marks(row['marks_obtained'])
        max_marks = _optional_float(row['max_marks'], 'max_marks')
        if max_marks is None:
            raise InvalidInput(f"Row {idx + 2}: max_marks is empty", 'max_marks', None)
        is_absent = parse_flag(row.get('is_absent')) or marks is None
        results.append(ExamResultInput(
            student_id=_clean_id(row['student_id']),
            subject_id=_clean_id(row['subject_id']),
            exam_id=_clean_id(row['exam_id']),
            marks_obtained=marks,
            max_marks=max_marks,
            is_absent=is_absent,
        ))
    logger.info("Parsed %d exam results", len(results))
    return results


def attendance_events_from_frame(df: pd.DataFrame) -> List[AttendanceEvent]:
    """Build AttendanceEvent records from an attendance sheet."""
    df = normalize_columns(df, 'attendance')
    events = []
    for idx, row in df.iterrows():
        try:
            status = parse_status(row['status'])
        except InvalidInput as e:
            raise InvalidInput(f"Row {idx + 2}: {e.message}", e.field, e.value)
        events.append(AttendanceEvent(
            student_id=_clean_id(row['student_id']),
            date=parse_date(row['date']),
            status=status,
            subject_id=_optional_text(row.get('subject_id')),
        ))
    logger.info("Parsed %d attendance events", len(events))
    return events


def grade_bands_from_frame(df: pd.DataFrame) -> List[GradeBand]:
    """Build GradeBand records from a grading sheet and log table issues."""
    df = normalize_columns(df, 'grade_bands')
    bands = []
    for _, row in df.iterrows():
        grade = _optional_text(row['grade'])
        if grade is None:
            logger.warning("Skipping grading row without a grade: %s", row.to_dict())
            continue
        min_pct = _optional_float(row['min_percentage'], 'min_percentage')
        max_pct = _optional_float(row['max_percentage'], 'max_percentage')
        if min_pct is None or max_pct is None:
            raise InvalidInput(f"Grade {grade} needs both min and max percentage", 'grade', grade)
        bands.append(GradeBand(
            grade=grade,
            min_percentage=min_pct,
            max_percentage=max_pct,
            grade_point=_optional_float(row.get('grade_point'), 'grade_point'),
            description=_optional_text(row.get('description')),
        ))
    log_band_issues(bands)
    return bands


def load_table(file_bytes: bytes, filename: str, sheet_name: Optional[str] = None) -> pd.DataFrame:
    """
    Read an uploaded Excel or CSV file into a DataFrame.

    Args:
        file_bytes: Raw file content
        filename: Original file name, used to pick the reader
        sheet_name: Worksheet to read (first sheet when omitted)
    """
    name = (filename or "").lower()
    if name.endswith(('.xlsx', '.xls')):
        df = pd.read_excel(BytesIO(file_bytes), sheet_name=sheet_name or 0, engine='openpyxl', dtype=object)
    elif name.endswith('.csv'):
        df = pd.read_csv(BytesIO(file_bytes), dtype=object)
    else:
        raise InvalidInput(
            "Invalid file type. Please upload an Excel (.xlsx, .xls) or CSV file",
            'filename', filename
        )
    df = df.dropna(how='all')
    logger.debug("Loaded %s: %d rows, columns %s", filename, len(df), list(df.columns))
    return df.reset_index(drop=True)


PARSERS = {
    'exam_results': exam_results_from_frame,
    'attendance': attendance_events_from_frame,
    'grade_bands': grade_bands_from_frame,
}
