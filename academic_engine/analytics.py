"""Report analytics computed from enriched results and attendance events.

Everything here reads the percentage, grade and rank already derived by the
engine; nothing re-derives them.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from academic_engine import config
from academic_engine.attendance import as_event
from academic_engine.models import AttendanceEvent, AttendanceStatus, EnrichedExamResult
from academic_engine.utils import percentage_of, round_percentage

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    'student_id', 'subject_id', 'exam_id', 'marks_obtained', 'max_marks',
    'is_absent', 'percentage', 'grade', 'rank',
]


def _safe_float(value) -> Optional[float]:
    """Convert to a plain float, mapping NaN/inf to None."""
    if value is None or pd.isna(value):
        return None
    val = float(value)
    if np.isnan(val) or np.isinf(val):
        return None
    return val


def results_frame(enriched: Iterable[EnrichedExamResult]) -> pd.DataFrame:
    rows = [r.model_dump() for r in enriched]
    if not rows:
        return pd.DataFrame(columns=RESULT_COLUMNS)
    df = pd.DataFrame(rows)
    df['percentage'] = pd.to_numeric(df['percentage'], errors='coerce')
    df['marks_obtained'] = pd.to_numeric(df['marks_obtained'], errors='coerce')
    return df


def _scored(df: pd.DataFrame) -> pd.Series:
    return df['percentage'].dropna().astype(float)


def grade_distribution(enriched: Iterable[EnrichedExamResult]) -> Dict[str, int]:
    """Count of results per grade, ungraded rows excluded, ordered by grade."""
    df = results_frame(enriched)
    graded = df['grade'].dropna()
    if graded.empty:
        return {}
    counts = graded.value_counts().sort_index()
    return {str(grade): int(count) for grade, count in counts.items()}


def score_buckets(enriched: Iterable[EnrichedExamResult]) -> Dict[str, int]:
    """Results per performance band (excellent/good/average/below_average/failing)."""
    pct = _scored(results_frame(enriched))
    return {
        'excellent': int((pct >= 90).sum()),
        'good': int(((pct >= 75) & (pct < 90)).sum()),
        'average': int(((pct >= 60) & (pct < 75)).sum()),
        'below_average': int(((pct >= 33) & (pct < 60)).sum()),
        'failing': int((pct < 33).sum()),
    }


def pass_fail(
    enriched: Iterable[EnrichedExamResult],
    passing_percentage: Optional[float] = None
) -> Dict[str, int]:
    if passing_percentage is None:
        passing_percentage = config.PASSING_PERCENTAGE
    pct = _scored(results_frame(enriched))
    passed = int((pct >= passing_percentage).sum())
    return {'total': int(len(pct)), 'passed': passed, 'failed': int(len(pct)) - passed}


def score_histogram(enriched: Iterable[EnrichedExamResult]) -> List[Dict[str, Union[str, int]]]:
    """Counts in 10-point percentage buckets, lowest first."""
    pct = _scored(results_frame(enriched))
    if pct.empty:
        return []
    buckets = (np.floor(pct / 10.0) * 10).astype(int)
    counts = buckets.value_counts().sort_index()
    return [
        {'range': f"{bucket}-{bucket + 10}%", 'count': int(count)}
        for bucket, count in counts.items()
    ]


def exam_statistics(enriched: Iterable[EnrichedExamResult]) -> Dict[str, Optional[float]]:
    """
    Summary statistics over raw marks of students who sat the exam.

    std_dev is the sample standard deviation and is None below two marks.
    """
    df = results_frame(enriched)
    if not df.empty:
        df = df[~df['is_absent'].astype(bool)]
    marks = df['marks_obtained'].dropna().astype(float)
    if marks.empty:
        return {
            'total_students': 0, 'mean': None, 'median': None,
            'min_score': None, 'max_score': None, 'std_dev': None,
        }
    std = marks.std(ddof=1) if len(marks) > 1 else None
    return {
        'total_students': int(len(marks)),
        'mean': round_percentage(_safe_float(marks.mean()), 1),
        'median': _safe_float(marks.median()),
        'min_score': _safe_float(marks.min()),
        'max_score': _safe_float(marks.max()),
        'std_dev': round_percentage(_safe_float(std), 2) if std is not None else None,
    }


def top_performers(
    enriched: Iterable[EnrichedExamResult],
    limit: int = 10
) -> List[Dict[str, Union[str, float]]]:
    """Students by average percentage, highest first (ties by student id)."""
    df = results_frame(enriched).dropna(subset=['percentage'])
    if df.empty:
        return []
    averages = df.groupby('student_id')['percentage'].mean().reset_index()
    averages = averages.sort_values(['percentage', 'student_id'], ascending=[False, True])
    return [
        {'student_id': str(row.student_id), 'avg_percentage': round_percentage(float(row.percentage))}
        for row in averages.head(limit).itertuples(index=False)
    ]


def performance_trend(enriched: Iterable[EnrichedExamResult]) -> List[Dict[str, Optional[float]]]:
    """
    Per-exam average percentage for each subject plus an overall average.

    Exams appear in the order they are first seen in the input.
    """
    df = results_frame(enriched).dropna(subset=['percentage'])
    if df.empty:
        return []
    exam_order = list(dict.fromkeys(df['exam_id']))
    pivot = df.pivot_table(index='exam_id', columns='subject_id', values='percentage', aggfunc='mean')
    trend = []
    for exam_id in exam_order:
        row = pivot.loc[exam_id].dropna()
        entry: Dict[str, Optional[float]] = {'exam': exam_id}
        for subject_id, value in row.items():
            entry[str(subject_id)] = round_percentage(float(value))
        entry['average'] = round_percentage(float(row.mean())) if not row.empty else None
        trend.append(entry)
    return trend


def _events_frame(events: Iterable[Union[AttendanceEvent, dict]]) -> pd.DataFrame:
    rows = []
    for raw in events:
        event = as_event(raw)
        rows.append({'date': event.date, 'status': event.status.value})
    return pd.DataFrame(rows, columns=['date', 'status'])


def _attendance_counts(df: pd.DataFrame, key: pd.Series) -> List[Dict]:
    counts = pd.crosstab(key, df['status'])
    for status in AttendanceStatus:
        if status.value not in counts.columns:
            counts[status.value] = 0
    out = []
    for period, row in counts.sort_index().iterrows():
        present = int(row[AttendanceStatus.PRESENT.value])
        total = int(row.sum())
        out.append({
            'period': period,
            'present': present,
            'absent': int(row[AttendanceStatus.ABSENT.value]),
            'late': int(row[AttendanceStatus.LATE.value]),
            'excused': int(row[AttendanceStatus.EXCUSED.value]),
            'total': total,
            # present-only, same as the student summary percentage
            'attendance_rate': percentage_of(present, total),
        })
    return out


def monthly_attendance(events: Iterable[Union[AttendanceEvent, dict]]) -> List[Dict]:
    """Attendance counts and present-only rate per ``YYYY-MM``."""
    df = _events_frame(events)
    if df.empty:
        return []
    months = pd.to_datetime(df['date']).dt.strftime('%Y-%m').rename('month')
    rows = _attendance_counts(df, months)
    for row in rows:
        row['month'] = row.pop('period')
    return rows


def daily_attendance_trend(events: Iterable[Union[AttendanceEvent, dict]]) -> List[Dict]:
    """Attendance counts and present-only rate per day."""
    df = _events_frame(events)
    if df.empty:
        return []
    rows = _attendance_counts(df, df['date'].rename('day'))
    for row in rows:
        row['date'] = row.pop('period')
    return rows
