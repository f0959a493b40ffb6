"""
kudos.engine.scoring — Point Resolution
========================================

Pure helpers shared by the review processor and the score aggregator.
No DB I/O.
"""

from __future__ import annotations

from kudos.errors import InvalidSubmission

MAX_PAGE_SIZE = 100


def _is_whole_number(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def resolve_awarded_points(base_points: int, override: int | None) -> int:
    """``override`` when given, else the claimable's ``base_points``.

    Overrides must be non-negative; zero is a valid award.
    """
    if override is None:
        return base_points
    if not _is_whole_number(override):
        raise InvalidSubmission("Point override must be a whole number.")
    if override < 0:
        raise InvalidSubmission("Point override must be zero or more.")
    return override


def validate_bonus_points(points: int) -> int:
    if not _is_whole_number(points) or points <= 0:
        raise InvalidSubmission("Bonus points must be a positive whole number.")
    return points


def page_bounds(page: int, page_size: int) -> tuple[int, int]:
    """Return ``(offset, limit)`` for a 1-based *page*."""
    if page < 1 or page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise InvalidSubmission(
            f"page must be ≥ 1 and page_size between 1 and {MAX_PAGE_SIZE}."
        )
    return (page - 1) * page_size, page_size
