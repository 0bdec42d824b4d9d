"""FastAPI adapter exposing the performance engine as JSON endpoints.

The adapter is stateless: every request carries its own records and nothing
is cached between requests.
"""

import logging
import os
import traceback

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from academic_engine import analytics, config
from academic_engine.attendance import (
    aggregate_attendance,
    aggregate_by_student,
    aggregate_by_subject,
    calendar_summary,
)
from academic_engine.errors import InvalidInput
from academic_engine.grading import band_issues, resolve_band
from academic_engine.models import (
    AtRiskRequest,
    AtRiskResponse,
    AttendanceRequest,
    BandsRequest,
    CalendarRequest,
    ClassifyRequest,
    EnrichRequest,
    RankRequest,
    ResolveGradeRequest,
)
from academic_engine.parsers import PARSERS, load_table
from academic_engine.ranking import enrich_exam_results, rank_scores
from academic_engine.risk import assess_students, at_risk_students, classify_risk, summarize_risk

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Academic Performance Engine", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle validation errors and return JSON."""
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    logger.info("Rejected %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=400, content={"detail": exc.to_dict()})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    error_detail = str(exc)
    if os.getenv('DEBUG', 'False').lower() == 'true':
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


@app.get("/health")
async def health_check():
    return {"status": "ok", "message": "Engine is running"}


@app.post("/grades/resolve")
async def resolve_grade_endpoint(request: ResolveGradeRequest):
    band = resolve_band(request.percentage, request.bands)
    return {
        "percentage": request.percentage,
        "grade": band.grade if band else None,
        "grade_point": band.grade_point if band else None,
    }


@app.post("/grades/check")
async def check_bands_endpoint(request: BandsRequest):
    return {"issues": band_issues(request.bands)}


@app.post("/exams/enrich")
async def enrich_endpoint(request: EnrichRequest):
    enriched = enrich_exam_results(request.results, request.bands)
    return {"results": [r.model_dump() for r in enriched]}


@app.post("/exams/rank")
async def rank_endpoint(request: RankRequest):
    return {"ranks": [r.model_dump() for r in rank_scores(request.scores)]}


@app.post("/attendance/summary")
async def attendance_summary_endpoint(request: AttendanceRequest):
    summary = aggregate_attendance(
        request.events,
        student_id=request.student_id,
        start=request.start,
        end=request.end,
        subject_id=request.subject_id,
    )
    return summary.model_dump()


@app.post("/attendance/subjects")
async def attendance_subjects_endpoint(request: AttendanceRequest):
    by_subject = aggregate_by_subject(request.events, student_id=request.student_id)
    return {"subjects": [s.model_dump() for s in by_subject.values()]}


@app.post("/attendance/calendar")
async def attendance_calendar_endpoint(request: CalendarRequest):
    return calendar_summary(request.events, request.year, request.month).model_dump(mode='json')


@app.post("/risk/classify")
async def classify_endpoint(request: ClassifyRequest):
    level = classify_risk(request.attendance_percentage, request.average_score_percentage)
    return {"risk_level": level.value}


@app.post("/risk/at-risk", response_model=AtRiskResponse)
async def at_risk_endpoint(request: AtRiskRequest):
    """Assess every student in the payload and return those flagged."""
    enriched = enrich_exam_results(request.results, request.bands)
    attendance = aggregate_by_student(request.events)
    assessments = assess_students(enriched, attendance)
    limit = request.limit if request.limit is not None else config.AT_RISK_LIMIT
    flagged = at_risk_students(assessments, limit=limit)
    summary = summarize_risk(assessments)
    logger.info(
        "At-risk scan: %d students (%d critical, %d warning)",
        summary.total, summary.critical, summary.warning
    )
    return AtRiskResponse(at_risk_students=flagged, summary=summary)


@app.post("/analytics/performance")
async def performance_endpoint(request: EnrichRequest):
    enriched = enrich_exam_results(request.results, request.bands)
    return {
        "grade_distribution": analytics.grade_distribution(enriched),
        "score_buckets": analytics.score_buckets(enriched),
        "pass_fail": analytics.pass_fail(enriched),
        "histogram": analytics.score_histogram(enriched),
        "statistics": analytics.exam_statistics(enriched),
        "top_performers": analytics.top_performers(enriched),
        "performance_trend": analytics.performance_trend(enriched),
    }


@app.post("/upload")
async def upload_file(file: UploadFile = File(...), kind: str = Form(...)):
    """Parse an uploaded Excel/CSV sheet into engine records."""
    file_bytes = await file.read()
    if len(file_bytes) > config.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {config.MAX_UPLOAD_SIZE_MB}MB"
        )
    if kind not in PARSERS:
        raise HTTPException(status_code=400, detail=f"Unknown kind: {kind}")

    df = load_table(file_bytes, file.filename)
    if df.empty:
        raise HTTPException(status_code=400, detail="No records found in the uploaded file.")
    records = PARSERS[kind](df)
    logger.info("Parsed %d %s records from %s", len(records), kind, file.filename)
    return {
        "kind": kind,
        "count": len(records),
        "records": [r.model_dump(mode='json') for r in records],
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
