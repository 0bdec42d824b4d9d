"""Message drafts for exam-result, attendance and at-risk notifications.

Figures are formatted from the engine's own percentage so an alert always
shows the same number as the report it refers to.
"""

import datetime as dt
from typing import Dict, Optional, Union

from academic_engine import config
from academic_engine.attendance import coerce_status
from academic_engine.models import AttendanceStatus, MessageDraft, RiskAssessment, RiskLevel
from academic_engine.utils import percentage_of


def format_percentage(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    return f"{value:g}%"


def _format_marks(value: float) -> str:
    return f"{value:g}"


def exam_result_message(
    student_name: str,
    exam_name: str,
    marks: float,
    total: float,
    parent_name: Optional[str] = None
) -> str:
    """Exam result alert, e.g. "Asha scored 45/50 (90%) in Midterm"."""
    pct = percentage_of(marks, total)
    return (
        f"Dear {parent_name or 'Parent'},\n"
        f"{student_name} scored {_format_marks(marks)}/{_format_marks(total)} "
        f"({format_percentage(pct)}) in {exam_name}.\n\n"
        f"View full report: {config.APP_URL}/reports"
    )


def attendance_alert_message(
    student_name: str,
    date: Union[dt.date, str],
    status: Union[AttendanceStatus, str],
    parent_name: Optional[str] = None
) -> str:
    status = coerce_status(status)
    day = date.isoformat() if isinstance(date, dt.date) else str(date)
    return (
        f"Dear {parent_name or 'Parent'},\n"
        f"{student_name} was marked {status.value.upper()} on {day}.\n\n"
        f"View attendance: {config.APP_URL}/attendance"
    )


def risk_alert_draft(student_name: str, assessment: RiskAssessment) -> MessageDraft:
    """Generate an email draft tailored to the student's risk level."""
    advisor = config.get_advisor_info()
    attendance_str = format_percentage(assessment.attendance_percentage)
    score_str = format_percentage(assessment.average_score_percentage)

    if assessment.risk_level == RiskLevel.CRITICAL:
        draft = _critical_email(student_name, score_str, attendance_str, advisor)
    elif assessment.risk_level == RiskLevel.WARNING:
        draft = _warning_email(student_name, score_str, attendance_str, advisor)
    else:
        draft = _ok_email(student_name, score_str, attendance_str, advisor)
    return MessageDraft(**draft)


def _ok_email(student_name: str, score: str, attendance: str, advisor: Dict[str, str]) -> Dict[str, str]:
    subject = f"Great Work, {student_name}. Keep It Up!"
    body = f"""Hi {student_name},

You're maintaining a strong record with an average exam score of {score} and {attendance} attendance.

Keep up the consistency. If you'd like, I can share advanced study tips or enrichment activities.

{advisor['name']}
{advisor['email']}"""
    return {'subject': subject, 'body': body}


def _warning_email(student_name: str, score: str, attendance: str, advisor: Dict[str, str]) -> Dict[str, str]:
    subject = f"Let's Check In on Your Progress, {student_name}"
    body = f"""Hi {student_name},

Your average exam score is currently {score} and your attendance is {attendance}.

One of these is below where we'd like it to be. Regular attendance and steady revision make a real difference, so please reach out to your class teacher if something is getting in the way.

We want to help you stay on track.

{advisor['name']}
{advisor['email']}"""
    return {'subject': subject, 'body': body}


def _critical_email(student_name: str, score: str, attendance: str, advisor: Dict[str, str]) -> Dict[str, str]:
    subject = f"Let's Work Together to Get You Back on Track, {student_name}"
    body = f"""Hi {student_name},

I'm reaching out about your current progress. Your average exam score is {score} and your attendance is {attendance}.

Both indicators suggest you may be struggling with coursework and attendance at the same time.

Please contact your class teacher or the school office as soon as possible so we can agree on a recovery plan, including extra support sessions where needed.

You're not alone in this. We're here to help.

{advisor['name']}
{advisor['email']}"""
    return {'subject': subject, 'body': body}
