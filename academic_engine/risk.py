"""At-risk classification from attendance and exam performance."""

import logging
from typing import Dict, Iterable, List, Optional

from academic_engine import config
from academic_engine.models import (
    AttendanceSummary,
    ExamResultInput,
    RiskAssessment,
    RiskLevel,
    RiskSummary,
    RiskThresholds,
)
from academic_engine.ranking import validate_result
from academic_engine.utils import mean_percentage

logger = logging.getLogger(__name__)

SEVERITY = {RiskLevel.OK: 0, RiskLevel.WARNING: 1, RiskLevel.CRITICAL: 2}


def _below(value: Optional[float], threshold: float) -> bool:
    # A missing signal never counts as low.
    return value is not None and value < threshold


def classify_risk(
    attendance_pct: Optional[float],
    avg_score_pct: Optional[float],
    thresholds: Optional[RiskThresholds] = None
) -> RiskLevel:
    """
    Classify a student as critical, warning or ok.

    Rules, first match wins:
        critical: attendance < 60 AND average score < 40
        warning:  attendance < 75 OR average score < 50
        ok:       otherwise

    A None signal (no attendance records, no exam scores) makes its own
    comparison false, so a student with no exam history is never critical
    from attendance alone.

    Args:
        attendance_pct: Attendance percentage (0-100) or None
        avg_score_pct: Average exam percentage (0-100) or None
        thresholds: Cut-offs (defaults to RISK_THRESHOLDS from the environment)

    Returns:
        RiskLevel
    """
    t = thresholds or config.RISK_THRESHOLDS
    if _below(attendance_pct, t.critical_attendance) and _below(avg_score_pct, t.critical_score):
        return RiskLevel.CRITICAL
    if _below(attendance_pct, t.warning_attendance) or _below(avg_score_pct, t.warning_score):
        return RiskLevel.WARNING
    return RiskLevel.OK


def assess_risk(
    student_id: str,
    attendance_pct: Optional[float],
    avg_score_pct: Optional[float],
    thresholds: Optional[RiskThresholds] = None
) -> RiskAssessment:
    return RiskAssessment(
        student_id=student_id,
        attendance_percentage=attendance_pct,
        average_score_percentage=avg_score_pct,
        risk_level=classify_risk(attendance_pct, avg_score_pct, thresholds),
    )


def average_score_percentage(results: Iterable[ExamResultInput]) -> Optional[float]:
    """
    Mean exam percentage across a student's results.

    Each result contributes its unrounded ``marks_obtained / max_marks * 100``
    and the mean is rounded once. Absentees and results with max_marks == 0
    are skipped.
    """
    pairs = []
    for result in results:
        validate_result(result)
        if result.has_score:
            pairs.append((result.marks_obtained, result.max_marks))
    return mean_percentage(pairs)


def assess_students(
    results: Iterable[ExamResultInput],
    attendance: Dict[str, AttendanceSummary],
    thresholds: Optional[RiskThresholds] = None
) -> List[RiskAssessment]:
    """
    Assess every student found in either the exam results or attendance.

    Args:
        results: Exam results (raw or enriched) for the students in scope
        attendance: Attendance summaries keyed by student id

    Returns:
        One RiskAssessment per student, ordered by student id
    """
    by_student: Dict[str, List[ExamResultInput]] = {}
    for result in results:
        by_student.setdefault(result.student_id, []).append(result)

    assessments = []
    for student_id in sorted(set(by_student) | set(attendance)):
        summary = attendance.get(student_id)
        assessments.append(assess_risk(
            student_id,
            summary.percentage if summary is not None else None,
            average_score_percentage(by_student.get(student_id, [])),
            thresholds,
        ))
    logger.debug("Assessed %d students", len(assessments))
    return assessments


def at_risk_students(
    assessments: Iterable[RiskAssessment],
    limit: Optional[int] = None
) -> List[RiskAssessment]:
    """
    Keep warning and critical assessments.

    Ordered critical first, then by attendance ascending with missing
    attendance last, then by student id.
    """
    flagged = [a for a in assessments if a.risk_level != RiskLevel.OK]
    flagged.sort(key=lambda a: (
        -SEVERITY[a.risk_level],
        a.attendance_percentage is None,
        a.attendance_percentage if a.attendance_percentage is not None else 0.0,
        a.student_id,
    ))
    if limit is not None:
        flagged = flagged[:limit]
    return flagged


def summarize_risk(assessments: Iterable[RiskAssessment]) -> RiskSummary:
    counts = {level: 0 for level in RiskLevel}
    for a in assessments:
        counts[a.risk_level] += 1
    return RiskSummary(
        critical=counts[RiskLevel.CRITICAL],
        warning=counts[RiskLevel.WARNING],
        ok=counts[RiskLevel.OK],
        total=sum(counts.values()),
    )
