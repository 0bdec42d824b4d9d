"""Data models for the academic performance engine."""

import datetime as dt
from enum import Enum
from typing import Optional, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EngineModel(BaseModel):
    """Immutable value type; engine outputs are always built fresh."""
    model_config = ConfigDict(frozen=True)


class GradeBand(EngineModel):
    """One row of a tenant's grading table."""
    grade: str
    min_percentage: float
    max_percentage: float
    grade_point: Optional[float] = None
    description: Optional[str] = None


class ExamResultInput(EngineModel):
    """Raw mark for one student in one exam x subject."""
    student_id: str
    subject_id: str
    exam_id: str
    marks_obtained: Optional[float] = None
    max_marks: float
    is_absent: bool = False

    @property
    def has_score(self) -> bool:
        return not self.is_absent and self.marks_obtained is not None


class EnrichedExamResult(ExamResultInput):
    """Exam result with derived percentage, grade and rank."""
    percentage: Optional[float] = None
    grade: Optional[str] = None
    rank: Optional[int] = None


class ScoreEntry(EngineModel):
    id: str
    marks_obtained: Optional[float] = None


class RankedScore(EngineModel):
    id: str
    rank: int


class AttendanceStatus(str, Enum):
    PRESENT = 'present'
    ABSENT = 'absent'
    LATE = 'late'
    EXCUSED = 'excused'


class AttendanceEvent(EngineModel):
    """A single attendance mark. subject_id is set for subject-scoped marks."""
    student_id: str
    date: dt.date
    status: AttendanceStatus
    subject_id: Optional[str] = None


class AttendanceSummary(EngineModel):
    """Per-student attendance counts. percentage counts `present` only."""
    student_id: Optional[str] = None
    subject_id: Optional[str] = None
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    percentage: Optional[float] = None


class CalendarSummary(EngineModel):
    """Day-level calendar figures, where a late mark counts as present."""
    year: int
    month: int
    present_days: int
    absent_days: int
    total_days: int
    no_class_days: int
    percentage: Optional[float] = None
    days: Dict[dt.date, str] = Field(default_factory=dict)


class RiskLevel(str, Enum):
    CRITICAL = 'critical'
    WARNING = 'warning'
    OK = 'ok'


class RiskThresholds(EngineModel):
    """Cut-offs for the at-risk rule."""
    critical_attendance: float = 60.0
    critical_score: float = 40.0
    warning_attendance: float = 75.0
    warning_score: float = 50.0

    @model_validator(mode='after')
    def _critical_within_warning(self):
        if self.critical_attendance > self.warning_attendance:
            raise ValueError('critical_attendance must not exceed warning_attendance')
        if self.critical_score > self.warning_score:
            raise ValueError('critical_score must not exceed warning_score')
        return self


class RiskAssessment(EngineModel):
    student_id: str
    attendance_percentage: Optional[float] = None
    average_score_percentage: Optional[float] = None
    risk_level: RiskLevel


class AllTenant(EngineModel):
    kind: Literal['all_tenant'] = 'all_tenant'


class ByClass(EngineModel):
    kind: Literal['by_class'] = 'by_class'
    class_id: str


class ByStudent(EngineModel):
    kind: Literal['by_student'] = 'by_student'
    student_id: str


class ByTeacher(EngineModel):
    kind: Literal['by_teacher'] = 'by_teacher'
    teacher_id: str


# Resolved by the persistence layer before any records reach the engine.
Scope = Union[AllTenant, ByClass, ByStudent, ByTeacher]


class RiskSummary(EngineModel):
    critical: int = 0
    warning: int = 0
    ok: int = 0
    total: int = 0


class MessageDraft(EngineModel):
    subject: str
    body: str


class AtRiskResponse(BaseModel):
    at_risk_students: List[RiskAssessment]
    summary: RiskSummary


class ResolveGradeRequest(BaseModel):
    percentage: float
    bands: List[GradeBand]


class BandsRequest(BaseModel):
    bands: List[GradeBand]


class EnrichRequest(BaseModel):
    results: List[ExamResultInput]
    bands: List[GradeBand] = Field(default_factory=list)


class RankRequest(BaseModel):
    scores: List[ScoreEntry]


class AttendanceRequest(BaseModel):
    events: List[dict]
    student_id: Optional[str] = None
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None
    subject_id: Optional[str] = None


class CalendarRequest(BaseModel):
    events: List[dict]
    year: int
    month: int


class ClassifyRequest(BaseModel):
    attendance_percentage: Optional[float] = None
    average_score_percentage: Optional[float] = None


class AtRiskRequest(BaseModel):
    results: List[ExamResultInput] = Field(default_factory=list)
    bands: List[GradeBand] = Field(default_factory=list)
    events: List[dict] = Field(default_factory=list)
    limit: Optional[int] = None
