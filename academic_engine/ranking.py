"""Competition ranking of exam scores and enrichment of exam results."""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from academic_engine.errors import InvalidInput
from academic_engine.grading import resolve_grade, sort_bands
from academic_engine.models import (
    EnrichedExamResult,
    ExamResultInput,
    GradeBand,
    RankedScore,
    ScoreEntry,
)
from academic_engine.utils import check_number, percentage_of

logger = logging.getLogger(__name__)

GroupKey = Tuple[str, str]


def _as_entry(score: Union[ScoreEntry, dict]) -> ScoreEntry:
    if isinstance(score, ScoreEntry):
        return score
    try:
        return ScoreEntry(**score)
    except ValidationError as e:
        raise InvalidInput(f"Invalid score entry {score!r}: {e.errors()[0]['msg']}", 'score', score)


def rank_scores(scores: Iterable[Union[ScoreEntry, dict]]) -> List[RankedScore]:
    """
    Assign standard competition ranks to one exam x subject group.

    Equivalent to ``RANK() OVER (ORDER BY marks_obtained DESC)``: an entry's
    rank is one plus the number of entries with strictly higher marks, so
    ``[95, 95, 90, 80]`` ranks as ``[1, 1, 3, 4]``. Entries without marks
    (absentees) are left out rather than ranked last.

    Args:
        scores: ScoreEntry models or ``{id, marks_obtained}`` dicts

    Returns:
        RankedScore list ordered by rank, ties in input order

    Raises:
        InvalidInput: On duplicate ids or negative / non-finite marks
    """
    seen = set()
    present: List[Tuple[float, str]] = []
    for raw in scores:
        entry = _as_entry(raw)
        if entry.id in seen:
            raise InvalidInput(f"Duplicate id in ranking group: {entry.id}", 'id', entry.id)
        seen.add(entry.id)
        if entry.marks_obtained is None:
            continue
        marks = check_number(entry.marks_obtained, 'marks_obtained')
        present.append((marks, entry.id))

    # sorted() is stable, so tied entries stay in input order
    ordered = sorted(present, key=lambda item: item[0], reverse=True)

    ranked: List[RankedScore] = []
    current_rank = 0
    previous_marks: Optional[float] = None
    for position, (marks, entry_id) in enumerate(ordered):
        if previous_marks is None or marks < previous_marks:
            current_rank = position + 1
            previous_marks = marks
        ranked.append(RankedScore(id=entry_id, rank=current_rank))

    logger.debug("Ranked %d of %d entries", len(ranked), len(seen))
    return ranked


def rank_map(scores: Iterable[Union[ScoreEntry, dict]]) -> Dict[str, int]:
    return {r.id: r.rank for r in rank_scores(scores)}


def group_key(result: ExamResultInput) -> GroupKey:
    return (result.exam_id, result.subject_id)


def group_results(results: Iterable[ExamResultInput]) -> "OrderedDict[GroupKey, List[ExamResultInput]]":
    """Group results by (exam_id, subject_id), keeping first-seen group order."""
    groups: "OrderedDict[GroupKey, List[ExamResultInput]]" = OrderedDict()
    for result in results:
        groups.setdefault(group_key(result), []).append(result)
    return groups


def validate_result(result: ExamResultInput) -> None:
    """Raise InvalidInput for marks the engine must not silently correct."""
    check_number(result.max_marks, 'max_marks')
    if result.has_score:
        check_number(result.marks_obtained, 'marks_obtained')


def exam_percentage(result: ExamResultInput) -> Optional[float]:
    """Rounded percentage for one result; None for absentees or max_marks == 0."""
    if not result.has_score:
        return None
    return percentage_of(result.marks_obtained, result.max_marks)


def enrich_exam_results(
    results: Sequence[ExamResultInput],
    bands: Sequence[GradeBand]
) -> List[EnrichedExamResult]:
    """
    Compute percentage, grade and rank for every result.

    Ranks are recomputed from scratch for each (exam_id, subject_id) group in
    the input, so callers must pass whole groups. The grade is resolved from
    the same rounded percentage that is returned.

    Args:
        results: Raw exam results, possibly spanning several groups
        bands: The tenant's grade bands

    Returns:
        Enriched results in input order

    Raises:
        InvalidInput: On negative or non-finite marks, or a student appearing
            twice in one group
    """
    for result in results:
        validate_result(result)

    ordered_bands = sort_bands(bands)
    ranks: Dict[Tuple[GroupKey, str], int] = {}
    for key, members in group_results(results).items():
        entries = [
            ScoreEntry(
                id=m.student_id,
                marks_obtained=m.marks_obtained if m.has_score else None
            )
            for m in members
        ]
        for ranked in rank_scores(entries):
            ranks[(key, ranked.id)] = ranked.rank
        logger.debug("Group %s/%s: %d results", key[0], key[1], len(members))

    enriched: List[EnrichedExamResult] = []
    for result in results:
        percentage = exam_percentage(result)
        enriched.append(EnrichedExamResult(
            **result.model_dump(exclude={"percentage", "grade", "rank"}),
            percentage=percentage,
            grade=resolve_grade(percentage, ordered_bands),
            rank=ranks.get((group_key(result), result.student_id)),
        ))
    return enriched


def rank_list(
    enriched: Iterable[EnrichedExamResult],
    subject_id: Optional[str] = None
) -> List[EnrichedExamResult]:
    """Results ordered by rank (unranked last), optionally for one subject."""
    rows = [r for r in enriched if subject_id is None or r.subject_id == subject_id]
    return sorted(rows, key=lambda r: (r.rank is None, r.rank or 0))
