"""Grade resolution against a tenant's grade-band table."""

import logging
from typing import Iterable, List, Optional

from academic_engine.models import GradeBand

logger = logging.getLogger(__name__)


def sort_bands(bands: Iterable[GradeBand]) -> List[GradeBand]:
    """Order bands by min_percentage, highest first. Equal minimums keep input order."""
    return sorted(bands, key=lambda b: b.min_percentage, reverse=True)


def resolve_band(percentage: float, bands: Iterable[GradeBand]) -> Optional[GradeBand]:
    """
    Find the band covering a percentage.

    Bands are scanned highest min_percentage first, so when two bands overlap
    the one with the higher minimum wins. Percentages outside 0-100 are
    matched the same way.

    Args:
        percentage: Score percentage
        bands: The tenant's grade bands, in any order

    Returns:
        The first covering band, or None if the percentage is ungraded
    """
    if percentage is None:
        return None
    for band in sort_bands(bands):
        if band.min_percentage <= percentage <= band.max_percentage:
            return band
    return None


def resolve_grade(percentage: float, bands: Iterable[GradeBand]) -> Optional[str]:
    """Letter grade for a percentage, or None when no band covers it."""
    band = resolve_band(percentage, bands)
    return band.grade if band is not None else None


def resolve_grade_point(percentage: float, bands: Iterable[GradeBand]) -> Optional[float]:
    band = resolve_band(percentage, bands)
    return band.grade_point if band is not None else None


def band_issues(bands: Iterable[GradeBand], lower: float = 0.0, upper: float = 100.0) -> List[str]:
    """
    Describe overlaps, gaps and inverted bands in a grading table.

    Resolution tolerates all of these; the list is for administrators
    reviewing a table before a bulk replace.

    Args:
        bands: Grade bands to check
        lower: Start of the range the table should cover
        upper: End of the range the table should cover

    Returns:
        Human-readable issue descriptions, empty when the table is clean
    """
    issues: List[str] = []
    valid: List[GradeBand] = []
    for band in bands:
        if band.min_percentage > band.max_percentage:
            issues.append(
                f"Band {band.grade} is inverted ({band.min_percentage} > {band.max_percentage})"
            )
        else:
            valid.append(band)

    if not valid:
        if not issues:
            issues.append("No grade bands configured")
        return issues

    ordered = sorted(valid, key=lambda b: (b.min_percentage, b.max_percentage))

    if ordered[0].min_percentage > lower:
        issues.append(f"Nothing covers {lower} to {ordered[0].min_percentage}")

    reach = ordered[0]
    for band in ordered[1:]:
        if band.min_percentage <= reach.max_percentage:
            issues.append(f"Bands {reach.grade} and {band.grade} overlap")
        # Two-decimal tables (80-89.99, 90-100) leave a 0.01 seam that is not a gap.
        elif round(band.min_percentage - reach.max_percentage, 6) > 0.01:
            issues.append(f"Gap between {reach.grade} and {band.grade}")
        if band.max_percentage > reach.max_percentage:
            reach = band

    if reach.max_percentage < upper:
        issues.append(f"Nothing covers {reach.max_percentage} to {upper}")

    return issues


def log_band_issues(bands: Iterable[GradeBand]) -> List[str]:
    issues = band_issues(bands)
    for issue in issues:
        logger.warning("Grading table: %s", issue)
    return issues
