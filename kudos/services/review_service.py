"""
kudos.services.review_service — Review Decision Processor
==========================================================

**Why this file exists:**
This is the only code that changes a submission's status or touches the
score ledger.  Each decision is one transaction that writes, together:

    1. the status change, as a conditional UPDATE guarded by the status
       the transition table expects (``WHERE status = 'pending'``);
    2. the ledger effect (insert a ScoreEntry on approval, delete it on
       revocation);
    3. the feed announcement;
    4. the audit row.

If the guarded UPDATE matches zero rows, another reviewer got there first:
:class:`~kudos.errors.AlreadyDecided` is raised and nothing is written.
If a revocation does not delete exactly one ledger row the ledger has
drifted from the submission table; that is logged at CRITICAL and the
whole decision is rolled back.

Team (scavenger) decisions follow the same shape but have no per-user
ledger rows: a team's score is the sum of ``points_awarded`` over its
approved team submissions, and announcements go to the team feed only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from kudos.config import DEFAULT_CONFIG, KudosConfig
from kudos.constants import SCORE_EVENT_ACHIEVEMENT
from kudos.database.engine import ledger_session, read_session
from kudos.database.models import (
    Achievement,
    AuditAction,
    BonusGrant,
    FeedEventType,
    ReviewAction,
    ScavengerTask,
    ScoreEntry,
    Submission,
    SubmissionStatus,
    Team,
    TeamSubmission,
    User,
)
from kudos.engine.lifecycle import action_for_reject, next_status
from kudos.engine.scoring import resolve_awarded_points, validate_bonus_points
from kudos.errors import AlreadyDecided, LedgerConsistencyError, NotFound
from kudos.services.audit import log_audit, row_to_dict
from kudos.services.feed_service import write_post
from kudos.services.feed_templates import (
    build_approval_post,
    build_bonus_post,
    build_revocation_post,
    build_team_decision_post,
)
from kudos.services.identity_service import (
    Caller,
    display_name_for,
    require_reviewer,
    sync_caller,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOutcome:
    """What a decision did, for immediate confirmation in the UI."""

    submission_id: int
    status: str
    points_delta: int
    feed_post_id: int | None = None


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------
def _load(session: Session, model: type, pk: int) -> Any:
    obj = session.get(model, pk)
    if obj is None:
        raise NotFound(f"{model.__name__} {pk} not found.")
    return obj


def _guarded_update(
    session: Session,
    model: type,
    pk: int,
    expected_status: str,
    **values: Any,
) -> None:
    """UPDATE *model* row *pk* only while it still has *expected_status*.

    Raises :class:`AlreadyDecided` when no row matched.
    """
    result = session.execute(
        update(model)
        .where(model.id == pk, model.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "%s %d was decided concurrently (expected status %r)",
            model.__name__, pk, expected_status,
        )
        raise AlreadyDecided()


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Achievement submissions
# ---------------------------------------------------------------------------
def approve(
    engine: Engine,
    submission_id: int,
    caller: Caller,
    comment: str | None = None,
    point_override: int | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> ReviewOutcome:
    """Approve a pending submission, award its points and announce it.

    ``awarded = point_override if given else achievement.points``.
    """
    cfg = cfg or DEFAULT_CONFIG
    require_reviewer(caller)

    with ledger_session(engine) as session:
        sub = _load(session, Submission, submission_id)
        expected = sub.status
        target = next_status(expected, ReviewAction.APPROVE)
        achievement = _load(session, Achievement, sub.achievement_id)
        awarded = resolve_awarded_points(achievement.points, point_override)
        before = row_to_dict(sub)

        sync_caller(session, caller)
        _guarded_update(
            session, Submission, submission_id, expected,
            status=target.value,
            judge_comment=comment,
            points_override=point_override,
            reviewed_by=caller.user_id,
            reviewed_at=_now(),
        )
        session.refresh(sub)

        session.add(ScoreEntry(
            user_id=sub.user_id,
            points=awarded,
            event_type=SCORE_EVENT_ACHIEVEMENT,
            achievement_id=achievement.id,
            submission_id=sub.id,
        ))

        post = write_post(session, build_approval_post(
            user_id=sub.user_id,
            display_name=display_name_for(session, sub.user_id),
            title=achievement.title,
            points=awarded,
            submission_id=sub.id,
            submission_text=sub.submission_text,
            comment=comment,
            media_urls=sub.media_urls,
            cfg=cfg,
        ))

        log_audit(
            session,
            actor_id=caller.user_id,
            action=AuditAction.APPROVE,
            target_table="submissions",
            target_id=sub.id,
            before=before,
            after=row_to_dict(sub),
            reason=comment,
        )
        outcome = ReviewOutcome(
            submission_id=sub.id,
            status=sub.display_status,
            points_delta=awarded,
            feed_post_id=post.id,
        )

    logger.info(
        "Submission %d approved by %s: +%d to %s",
        submission_id, caller.user_id, awarded, sub.user_id,
    )
    return outcome


def reject(
    engine: Engine,
    submission_id: int,
    caller: Caller,
    comment: str | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> ReviewOutcome:
    """Reject a pending submission, or revoke an approved one.

    Pending → rejected is silent: no ledger change, no feed post.
    Approved → rejected is a revocation: the submission's ScoreEntry is
    deleted, ``revoked_at`` is stamped, and a revocation notice carrying
    the original proof is posted.  Rejected submissions raise
    :class:`AlreadyDecided`.
    """
    cfg = cfg or DEFAULT_CONFIG
    require_reviewer(caller)

    with ledger_session(engine) as session:
        sub = _load(session, Submission, submission_id)
        expected = sub.status
        action = action_for_reject(expected)
        target = next_status(expected, action)
        before = row_to_dict(sub)
        now = _now()

        sync_caller(session, caller)
        values: dict[str, Any] = {
            "status": target.value,
            "reviewed_by": caller.user_id,
            "reviewed_at": now,
        }
        if comment is not None:
            values["judge_comment"] = comment
        if action == ReviewAction.REVOKE:
            values["revoked_at"] = now
        _guarded_update(session, Submission, submission_id, expected, **values)
        session.refresh(sub)

        points_delta = 0
        post_id = None
        if action == ReviewAction.REVOKE:
            points_delta = -_remove_ledger_entry(session, sub.id)
            achievement = session.get(Achievement, sub.achievement_id)
            post = write_post(session, build_revocation_post(
                user_id=sub.user_id,
                display_name=display_name_for(session, sub.user_id),
                title=achievement.title if achievement else "an achievement",
                submission_id=sub.id,
                submission_text=sub.submission_text,
                comment=comment,
                media_urls=sub.media_urls,
                cfg=cfg,
            ))
            post_id = post.id

        log_audit(
            session,
            actor_id=caller.user_id,
            action=(
                AuditAction.REVOKE if action == ReviewAction.REVOKE
                else AuditAction.REJECT
            ),
            target_table="submissions",
            target_id=sub.id,
            before=before,
            after=row_to_dict(sub),
            reason=comment,
        )
        outcome = ReviewOutcome(
            submission_id=sub.id,
            status=sub.display_status,
            points_delta=points_delta,
            feed_post_id=post_id,
        )

    logger.info(
        "Submission %d %s by %s (delta %d)",
        submission_id, outcome.status, caller.user_id, points_delta,
    )
    return outcome


def revoke(
    engine: Engine,
    submission_id: int,
    caller: Caller,
    comment: str | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> ReviewOutcome:
    """Explicit revocation: like :func:`reject` but only valid when approved."""
    require_reviewer(caller)
    with read_session(engine) as session:
        status = session.scalar(
            select(Submission.status).where(Submission.id == submission_id)
        )
    if status is None:
        raise NotFound(f"Submission {submission_id} not found.")
    next_status(status, ReviewAction.REVOKE)
    return reject(engine, submission_id, caller, comment, cfg=cfg)


def _remove_ledger_entry(session: Session, submission_id: int) -> int:
    """Delete the ScoreEntry for *submission_id* and return its points.

    Exactly one row must go.  Anything else means the ledger and the
    submission table disagree, which raises :class:`LedgerConsistencyError`
    and rolls the decision back.
    """
    points = session.scalar(
        select(ScoreEntry.points).where(ScoreEntry.submission_id == submission_id)
    )
    result = session.execute(
        delete(ScoreEntry)
        .where(ScoreEntry.submission_id == submission_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.critical(
            "Ledger inconsistency: revoking submission %d deleted %d score "
            "entries (expected 1); rolling back",
            submission_id, result.rowcount,
        )
        raise LedgerConsistencyError(
            f"Submission {submission_id} had {result.rowcount} ledger entries."
        )
    return points


# ---------------------------------------------------------------------------
# Team (scavenger-hunt) submissions
# ---------------------------------------------------------------------------
def approve_team_submission(
    engine: Engine,
    submission_id: int,
    caller: Caller,
    comment: str | None = None,
    points: int | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> ReviewOutcome:
    """Approve a pending team submission, storing ``points_awarded``.

    *points* defaults to the task's base value.
    """
    cfg = cfg or DEFAULT_CONFIG
    require_reviewer(caller)

    with ledger_session(engine) as session:
        sub = _load(session, TeamSubmission, submission_id)
        expected = sub.status
        target = next_status(expected, ReviewAction.APPROVE)
        task = _load(session, ScavengerTask, sub.task_id)
        awarded = resolve_awarded_points(task.points, points)
        before = row_to_dict(sub)

        sync_caller(session, caller)
        _guarded_update(
            session, TeamSubmission, submission_id, expected,
            status=target.value,
            judge_comment=comment,
            points_awarded=awarded,
            reviewed_by=caller.user_id,
            reviewed_at=_now(),
        )
        session.refresh(sub)
        post = _post_team_decision(
            session, sub, task, FeedEventType.TASK_APPROVED, awarded, comment, cfg
        )
        log_audit(
            session,
            actor_id=caller.user_id,
            action=AuditAction.APPROVE,
            target_table="team_submissions",
            target_id=sub.id,
            before=before,
            after=row_to_dict(sub),
            reason=comment,
        )
        outcome = ReviewOutcome(sub.id, sub.display_status, awarded, post.id)

    logger.info(
        "Team submission %d approved by %s: +%d", submission_id, caller.user_id, awarded
    )
    return outcome


def reject_team_submission(
    engine: Engine,
    submission_id: int,
    caller: Caller,
    comment: str | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> ReviewOutcome:
    """Reject a pending team submission or revoke an approved one.

    Both outcomes are announced on the team's own feed.
    """
    cfg = cfg or DEFAULT_CONFIG
    require_reviewer(caller)

    with ledger_session(engine) as session:
        sub = _load(session, TeamSubmission, submission_id)
        expected = sub.status
        action = action_for_reject(expected)
        target = next_status(expected, action)
        task = _load(session, ScavengerTask, sub.task_id)
        before = row_to_dict(sub)
        now = _now()

        sync_caller(session, caller)
        values: dict[str, Any] = {
            "status": target.value,
            "reviewed_by": caller.user_id,
            "reviewed_at": now,
        }
        if comment is not None:
            values["judge_comment"] = comment
        revoking = action == ReviewAction.REVOKE
        if revoking:
            values["revoked_at"] = now
        _guarded_update(session, TeamSubmission, submission_id, expected, **values)
        session.refresh(sub)

        points_delta = -(sub.points_awarded or 0) if revoking else 0
        post = _post_team_decision(
            session,
            sub,
            task,
            FeedEventType.TASK_REVOKED if revoking else FeedEventType.TASK_REJECTED,
            sub.points_awarded or 0,
            comment,
            cfg,
        )
        log_audit(
            session,
            actor_id=caller.user_id,
            action=AuditAction.REVOKE if revoking else AuditAction.REJECT,
            target_table="team_submissions",
            target_id=sub.id,
            before=before,
            after=row_to_dict(sub),
            reason=comment,
        )
        outcome = ReviewOutcome(sub.id, sub.display_status, points_delta, post.id)

    logger.info(
        "Team submission %d %s by %s", submission_id, outcome.status, caller.user_id
    )
    return outcome


def _post_team_decision(
    session: Session,
    sub: TeamSubmission,
    task: ScavengerTask,
    event_type: FeedEventType,
    points: int,
    comment: str | None,
    cfg: KudosConfig,
):
    team = session.get(Team, sub.team_id)
    return write_post(session, build_team_decision_post(
        event_type=event_type,
        team_id=sub.team_id,
        team_name=team.name if team else f"Team {sub.team_id}",
        task_title=task.title,
        submission_id=sub.id,
        points=points,
        comment=comment,
        media_urls=sub.media_urls,
        cfg=cfg,
    ))


# ---------------------------------------------------------------------------
# Bonus grants
# ---------------------------------------------------------------------------
def grant_bonus(
    engine: Engine,
    caller: Caller,
    user_id: str,
    points: int,
    reason: str | None = None,
    proof_url: str | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> ReviewOutcome:
    """Award *points* (> 0) to *user_id* and announce it.

    The returned outcome's ``submission_id`` is the new grant's id.
    """
    cfg = cfg or DEFAULT_CONFIG
    require_reviewer(caller)
    points = validate_bonus_points(points)

    with ledger_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found.")
        sync_caller(session, caller)

        grant = BonusGrant(
            user_id=user_id,
            points=points,
            reason=reason,
            proof_url=proof_url,
            granted_by=caller.user_id,
        )
        session.add(grant)
        session.flush()
        session.refresh(grant)

        post = write_post(session, build_bonus_post(
            user_id=user_id,
            display_name=user.display_name,
            points=points,
            reason=reason,
            proof_url=proof_url,
            cfg=cfg,
        ))
        log_audit(
            session,
            actor_id=caller.user_id,
            action=AuditAction.BONUS_GRANT,
            target_table="bonus_grants",
            target_id=grant.id,
            before=None,
            after=row_to_dict(grant),
            reason=reason,
        )
        outcome = ReviewOutcome(grant.id, SubmissionStatus.APPROVED.value, points, post.id)

    logger.info("Bonus +%d granted to %s by %s", points, user_id, caller.user_id)
    return outcome
