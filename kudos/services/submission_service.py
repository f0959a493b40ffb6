"""
kudos.services.submission_service — Submission Lifecycle (create / list)
=========================================================================

Participants claim an achievement (or, as a team, a scavenger task) by
creating a ``pending`` submission.  Creation never scores and never posts;
both only happen when a reviewer decides.

One-active-claim rule: for a given (user, achievement) or (team, task)
there is at most one row that is ``pending`` or ``approved``.  The partial
unique index on the table is the real guard; the pre-check here only picks
the precise error.  An insert that loses a race trips the index under a
SAVEPOINT and is translated the same way.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from kudos.config import DEFAULT_CONFIG, KudosConfig
from kudos.database.engine import ledger_session, read_session
from kudos.database.models import (
    ACTIVE_STATUSES,
    Achievement,
    Event,
    ScavengerTask,
    Submission,
    SubmissionStatus,
    Team,
    TeamSubmission,
)
from kudos.engine.lifecycle import clean_submission_input
from kudos.errors import (
    AlreadyApproved,
    DuplicatePendingSubmission,
    InvalidSubmission,
    NotFound,
    Unauthorized,
)
from kudos.services.identity_service import Caller, require_reviewer, sync_caller
from kudos.services.team_service import is_team_member

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _conflict_for(status: str | None) -> None:
    """Raise the error matching an existing active row's *status*."""
    if status == SubmissionStatus.APPROVED:
        raise AlreadyApproved()
    if status == SubmissionStatus.PENDING:
        raise DuplicatePendingSubmission()


def _active_submission_status(session: Session, user_id: str, achievement_id: int) -> str | None:
    return session.scalar(
        select(Submission.status).where(
            Submission.user_id == user_id,
            Submission.achievement_id == achievement_id,
            Submission.status.in_(ACTIVE_STATUSES),
        )
    )


def _active_team_submission_status(session: Session, team_id: int, task_id: int) -> str | None:
    return session.scalar(
        select(TeamSubmission.status).where(
            TeamSubmission.team_id == team_id,
            TeamSubmission.task_id == task_id,
            TeamSubmission.status.in_(ACTIVE_STATUSES),
        )
    )


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
def create_submission(
    engine: Engine,
    caller: Caller,
    achievement_id: int,
    text: str | None = None,
    media_urls: list[str] | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> int:
    """Create a pending submission and return its id.

    Raises
    ------
    InvalidSubmission
        Text too long, too many media entries, or a blank media URL.
    NotFound
        Unknown or retired achievement.
    DuplicatePendingSubmission
        The caller already has a pending submission for this achievement.
    AlreadyApproved
        The caller already earned this achievement.
    """
    cfg = cfg or DEFAULT_CONFIG
    text, urls = clean_submission_input(text, media_urls, cfg)

    with ledger_session(engine) as session:
        achievement = session.get(Achievement, achievement_id)
        if achievement is None or not achievement.active:
            raise NotFound(f"Achievement {achievement_id} not found.")

        sync_caller(session, caller)
        _conflict_for(_active_submission_status(session, caller.user_id, achievement_id))

        sub = Submission(
            user_id=caller.user_id,
            achievement_id=achievement_id,
            submission_text=text,
            media_urls=urls,
            status=SubmissionStatus.PENDING.value,
        )
        try:
            with session.begin_nested():
                session.add(sub)
                session.flush()
        except IntegrityError:
            # Lost a race with a concurrent create for the same pair.
            logger.warning(
                "Concurrent submission for user=%s achievement=%d",
                caller.user_id, achievement_id,
            )
            _conflict_for(
                _active_submission_status(session, caller.user_id, achievement_id)
            )
            raise DuplicatePendingSubmission() from None
        submission_id = sub.id

    logger.info(
        "Submission %d created: user=%s achievement=%d",
        submission_id, caller.user_id, achievement_id,
    )
    return submission_id


def get_submission(engine: Engine, submission_id: int) -> Submission:
    with read_session(engine) as session:
        sub = session.scalar(
            select(Submission)
            .options(selectinload(Submission.achievement))
            .where(Submission.id == submission_id)
        )
        if sub is None:
            raise NotFound(f"Submission {submission_id} not found.")
        return sub


def list_user_submissions(engine: Engine, user_id: str) -> list[Submission]:
    """All of a user's submissions, newest first."""
    with read_session(engine) as session:
        return list(session.scalars(
            select(Submission)
            .options(selectinload(Submission.achievement))
            .where(Submission.user_id == user_id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
        ).all())


def list_pending(engine: Engine, caller: Caller) -> dict[str, list]:
    """Reviewer queue: pending achievement and task submissions, oldest first."""
    require_reviewer(caller)
    with read_session(engine) as session:
        achievements = session.scalars(
            select(Submission)
            .options(selectinload(Submission.achievement))
            .where(Submission.status == SubmissionStatus.PENDING.value)
            .order_by(Submission.created_at, Submission.id)
        ).all()
        tasks = session.scalars(
            select(TeamSubmission)
            .options(
                selectinload(TeamSubmission.task),
                selectinload(TeamSubmission.team),
            )
            .where(TeamSubmission.status == SubmissionStatus.PENDING.value)
            .order_by(TeamSubmission.created_at, TeamSubmission.id)
        ).all()
        return {"achievements": list(achievements), "tasks": list(tasks)}


# ---------------------------------------------------------------------------
# Scavenger-hunt tasks
# ---------------------------------------------------------------------------
def create_team_submission(
    engine: Engine,
    caller: Caller,
    team_id: int,
    task_id: int,
    text: str | None = None,
    media_urls: list[str] | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> int:
    """Create a pending team submission for a task and return its id.

    The caller must be on the team, the task must belong to the team's
    event, and that event must be live.
    """
    cfg = cfg or DEFAULT_CONFIG
    text, urls = clean_submission_input(text, media_urls, cfg)

    with ledger_session(engine) as session:
        team = session.get(Team, team_id)
        if team is None:
            raise NotFound(f"Team {team_id} not found.")
        task = session.get(ScavengerTask, task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found.")
        if task.event_id != team.event_id:
            raise InvalidSubmission("That task is not part of your team's event.")
        event = session.get(Event, task.event_id)
        if event is None or not event.active:
            raise InvalidSubmission("This event is not accepting submissions.")
        if not is_team_member(session, team_id, caller.user_id):
            raise Unauthorized("Only team members can submit for this team.")

        sync_caller(session, caller)
        _conflict_for(_active_team_submission_status(session, team_id, task_id))

        sub = TeamSubmission(
            team_id=team_id,
            task_id=task_id,
            submitted_by=caller.user_id,
            submission_text=text,
            media_urls=urls,
            status=SubmissionStatus.PENDING.value,
        )
        try:
            with session.begin_nested():
                session.add(sub)
                session.flush()
        except IntegrityError:
            logger.warning(
                "Concurrent team submission for team=%d task=%d", team_id, task_id
            )
            _conflict_for(_active_team_submission_status(session, team_id, task_id))
            raise DuplicatePendingSubmission() from None
        submission_id = sub.id

    logger.info(
        "Team submission %d created: team=%d task=%d by %s",
        submission_id, team_id, task_id, caller.user_id,
    )
    return submission_id


def list_team_submissions(engine: Engine, team_id: int) -> list[TeamSubmission]:
    """Every submission of a team, newest first: its per-task progress."""
    with read_session(engine) as session:
        return list(session.scalars(
            select(TeamSubmission)
            .options(selectinload(TeamSubmission.task))
            .where(TeamSubmission.team_id == team_id)
            .order_by(TeamSubmission.created_at.desc(), TeamSubmission.id.desc())
        ).all())
