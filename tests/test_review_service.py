"""
tests/test_review_service.py — Review Decision Processor Tests
===============================================================
Approve / reject / revoke for achievement and team submissions, bonus
grants, and the guarantees that keep status, ledger and feed in step:

- no double scoring, including when another reviewer wins the race
- revocation reverses scoring exactly
- terminal states refuse further decisions without side effects
- a ledger that disagrees with the submission rolls the decision back
"""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from conftest import add_user
from kudos.database.models import (
    Achievement,
    AuditLog,
    BonusGrant,
    Event,
    FeedPost,
    ScavengerTask,
    ScoreEntry,
    Submission,
    Team,
    TeamMember,
    TeamSubmission,
)
from kudos.errors import (
    AlreadyDecided,
    InvalidSubmission,
    LedgerConsistencyError,
    NotFound,
    Unauthorized,
)
from kudos.services import review_service, score_service, submission_service
from kudos.services.identity_service import sync_caller


@pytest.fixture
def engine(db_engine):
    """Re-use the shared conftest db_engine (SQLite, StaticPool)."""
    return db_engine


def _make_achievement(engine, title: str = "Run 5k", points: int = 100) -> int:
    with Session(engine) as session:
        ach = Achievement(title=title, points=points)
        session.add(ach)
        session.commit()
        return ach.id


def _submit(engine, caller, title: str = "Run 5k", points: int = 100, **kwargs) -> int:
    ach_id = _make_achievement(engine, title, points)
    return submission_service.create_submission(engine, caller, ach_id, **kwargs)


def _count(engine, model, *where) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(model).where(*where))


def _make_team_submission(engine, caller, *, task_points: int = 40) -> tuple[int, int]:
    """Live event, one task, one team containing *caller*; returns (team_id, submission_id)."""
    with Session(engine) as session:
        event = Event(name="Spring Hunt", active=True)
        session.add(event)
        session.flush()
        task = ScavengerTask(event_id=event.id, title="Find the statue", points=task_points)
        team = Team(event_id=event.id, name="Owls")
        session.add_all([task, team])
        session.flush()
        session.add(TeamMember(team_id=team.id, user_id=caller.user_id, event_id=event.id))
        session.commit()
        team_id, task_id = team.id, task.id
    sub_id = submission_service.create_team_submission(
        engine, caller, team_id, task_id, "Found it", ["https://cdn/statue.jpg"]
    )
    return team_id, sub_id


# ===========================================================================
# Approve
# ===========================================================================
class TestApprove:
    def test_writes_status_ledger_feed_and_audit(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice, text="Done it!", media_urls=["https://cdn/run.jpg"])
        outcome = review_service.approve(engine, sub_id, reviewer, comment="Nice")

        assert outcome.status == "approved"
        assert outcome.points_delta == 100
        assert outcome.submission_id == sub_id
        with Session(engine) as session:
            sub = session.get(Submission, sub_id)
            assert sub.status == "approved"
            assert sub.judge_comment == "Nice"
            assert sub.reviewed_by == reviewer.user_id
            assert sub.reviewed_at is not None

            entry = session.scalar(select(ScoreEntry).where(ScoreEntry.submission_id == sub_id))
            assert (entry.user_id, entry.points, entry.event_type) == (alice.user_id, 100, "achievement")

            post = session.get(FeedPost, outcome.feed_post_id)
            assert post.user_id == alice.user_id
            assert post.event_type == "achievement_approved"
            assert post.team_id is None
            assert post.image_urls == ["https://cdn/run.jpg"]

            audit = session.scalars(select(AuditLog)).all()
            assert [a.action for a in audit] == ["APPROVE"]
            assert audit[0].before_snapshot["status"] == "pending"
            assert audit[0].after_snapshot["status"] == "approved"

    def test_point_override(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        outcome = review_service.approve(engine, sub_id, reviewer, point_override=150)
        assert outcome.points_delta == 150
        assert score_service.total_points_for_user(engine, alice.user_id) == 150

    def test_zero_override(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        review_service.approve(engine, sub_id, reviewer, point_override=0)
        assert _count(engine, ScoreEntry) == 1
        assert score_service.total_points_for_user(engine, alice.user_id) == 0

    def test_negative_override_writes_nothing(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        with pytest.raises(InvalidSubmission):
            review_service.approve(engine, sub_id, reviewer, point_override=-5)
        with Session(engine) as session:
            assert session.get(Submission, sub_id).status == "pending"
        assert _count(engine, ScoreEntry) == 0
        assert _count(engine, FeedPost) == 0

    def test_requires_reviewer(self, engine, alice, bob):
        sub_id = _submit(engine, alice)
        with pytest.raises(Unauthorized):
            review_service.approve(engine, sub_id, bob)
        assert _count(engine, ScoreEntry) == 0

    def test_unknown_submission(self, engine, reviewer):
        with pytest.raises(NotFound):
            review_service.approve(engine, 404, reviewer)


# ===========================================================================
# No double scoring
# ===========================================================================
class TestNoDoubleScoring:
    def test_approve_twice(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        review_service.approve(engine, sub_id, reviewer)
        with pytest.raises(AlreadyDecided):
            review_service.approve(engine, sub_id, reviewer)
        assert _count(engine, ScoreEntry, ScoreEntry.submission_id == sub_id) == 1
        assert _count(engine, FeedPost) == 1

    def test_losing_a_race_writes_nothing(self, engine, alice, reviewer, monkeypatch):
        """Another reviewer approves between our read and our guarded write."""
        sub_id = _submit(engine, alice)
        real_sync = review_service.sync_caller

        def _sync_then_lose_race(session, caller):
            user = real_sync(session, caller)
            session.execute(
                update(Submission)
                .where(Submission.id == sub_id)
                .values(status="approved")
                .execution_options(synchronize_session=False)
            )
            return user

        monkeypatch.setattr(review_service, "sync_caller", _sync_then_lose_race)
        with pytest.raises(AlreadyDecided):
            review_service.approve(engine, sub_id, reviewer)

        assert _count(engine, ScoreEntry) == 0
        assert _count(engine, FeedPost) == 0
        assert _count(engine, AuditLog) == 0

    def test_approve_then_reject_race_on_revocation(self, engine, alice, reviewer, monkeypatch):
        """A concurrent revocation lands first; ours must not delete again."""
        sub_id = _submit(engine, alice)
        review_service.approve(engine, sub_id, reviewer)
        real_sync = review_service.sync_caller

        def _sync_then_lose_race(session, caller):
            user = real_sync(session, caller)
            session.execute(
                update(Submission)
                .where(Submission.id == sub_id)
                .values(status="rejected")
                .execution_options(synchronize_session=False)
            )
            return user

        monkeypatch.setattr(review_service, "sync_caller", _sync_then_lose_race)
        with pytest.raises(AlreadyDecided):
            review_service.reject(engine, sub_id, reviewer, "dup")

        assert _count(engine, ScoreEntry, ScoreEntry.submission_id == sub_id) == 1
        assert _count(engine, FeedPost) == 1


# ===========================================================================
# Reject / revoke
# ===========================================================================
class TestReject:
    def test_pending_rejection_is_silent(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        outcome = review_service.reject(engine, sub_id, reviewer, "Blurry")
        assert outcome.status == "rejected"
        assert outcome.points_delta == 0
        assert outcome.feed_post_id is None
        with Session(engine) as session:
            sub = session.get(Submission, sub_id)
            assert sub.judge_comment == "Blurry"
            assert sub.revoked_at is None
            assert sub.display_status == "rejected"
        assert _count(engine, FeedPost) == 0
        assert _count(engine, ScoreEntry) == 0
        assert _count(engine, AuditLog, AuditLog.action == "REJECT") == 1

    def test_reject_twice_is_refused_without_side_effects(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        review_service.reject(engine, sub_id, reviewer)
        posts_before = _count(engine, FeedPost)
        with pytest.raises(AlreadyDecided):
            review_service.reject(engine, sub_id, reviewer)
        assert _count(engine, FeedPost) == posts_before
        assert _count(engine, ScoreEntry) == 0

    def test_approve_after_reject_refused(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        review_service.reject(engine, sub_id, reviewer)
        with pytest.raises(AlreadyDecided):
            review_service.approve(engine, sub_id, reviewer)

    def test_requires_reviewer(self, engine, alice):
        sub_id = _submit(engine, alice)
        with pytest.raises(Unauthorized):
            review_service.reject(engine, sub_id, alice)


class TestRevocation:
    def test_revocation_reverses_exactly(self, engine, alice, reviewer):
        add_user(engine, alice)
        review_service.grant_bonus(engine, reviewer, alice.user_id, 7)
        before = score_service.total_points_for_user(engine, alice.user_id)

        sub_id = _submit(engine, alice, points=10)
        review_service.approve(engine, sub_id, reviewer)
        assert score_service.total_points_for_user(engine, alice.user_id) == before + 10

        outcome = review_service.reject(engine, sub_id, reviewer, "Fake proof")
        assert outcome.status == "revoked"
        assert outcome.points_delta == -10
        assert score_service.total_points_for_user(engine, alice.user_id) == before
        assert _count(engine, ScoreEntry, ScoreEntry.submission_id == sub_id) == 0

    def test_revocation_post_and_markers(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice, text="Done it!", media_urls=["https://cdn/run.mp4"])
        review_service.approve(engine, sub_id, reviewer, "Nice")
        outcome = review_service.reject(engine, sub_id, reviewer, "Fake proof")
        with Session(engine) as session:
            sub = session.get(Submission, sub_id)
            assert sub.status == "rejected"
            assert sub.revoked_at is not None
            assert sub.display_status == "revoked"
            assert sub.judge_comment == "Fake proof"

            post = session.get(FeedPost, outcome.feed_post_id)
            assert post.event_type == "achievement_revoked"
            assert "has been revoked" in post.content
            assert "Done it!" in post.content
            assert "Fake proof" in post.content
            assert post.video_urls == ["https://cdn/run.mp4"]
        assert _count(engine, AuditLog, AuditLog.action == "REVOKE") == 1

    def test_revoked_submission_is_terminal(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        review_service.approve(engine, sub_id, reviewer)
        review_service.reject(engine, sub_id, reviewer)
        with pytest.raises(AlreadyDecided):
            review_service.reject(engine, sub_id, reviewer)
        with pytest.raises(AlreadyDecided):
            review_service.approve(engine, sub_id, reviewer)

    def test_explicit_revoke_only_from_approved(self, engine, alice, reviewer):
        sub_id = _submit(engine, alice)
        with pytest.raises(AlreadyDecided):
            review_service.revoke(engine, sub_id, reviewer)
        review_service.approve(engine, sub_id, reviewer)
        outcome = review_service.revoke(engine, sub_id, reviewer, "Oops")
        assert outcome.status == "revoked"

    def test_missing_ledger_row_rolls_back(self, engine, alice, reviewer, caplog):
        sub_id = _submit(engine, alice)
        review_service.approve(engine, sub_id, reviewer)
        with Session(engine) as session:
            session.execute(
                ScoreEntry.__table__.delete().where(ScoreEntry.submission_id == sub_id)
            )
            session.commit()
        posts_before = _count(engine, FeedPost)

        with caplog.at_level(logging.CRITICAL, logger="kudos.services.review_service"):
            with pytest.raises(LedgerConsistencyError):
                review_service.reject(engine, sub_id, reviewer, "Fake proof")
        assert any(r.levelno == logging.CRITICAL for r in caplog.records)

        with Session(engine) as session:
            sub = session.get(Submission, sub_id)
            assert sub.status == "approved"
            assert sub.revoked_at is None
        assert _count(engine, FeedPost) == posts_before


# ===========================================================================
# Concrete scenario
# ===========================================================================
class TestRun5kScenario:
    def test_full_cycle(self, engine, alice, reviewer):
        ach_id = _make_achievement(engine, "Run 5k", 100)
        sub_id = submission_service.create_submission(
            engine, alice, ach_id, "Done it!", ["https://cdn/finish.jpg"]
        )
        with Session(engine) as session:
            assert session.get(Submission, sub_id).status == "pending"
        baseline = score_service.total_points_for_user(engine, alice.user_id)

        approval = review_service.approve(engine, sub_id, reviewer, comment="Nice")
        with Session(engine) as session:
            assert session.get(Submission, sub_id).status == "approved"
            entries = session.scalars(
                select(ScoreEntry).where(ScoreEntry.user_id == alice.user_id)
            ).all()
            assert [(e.user_id, e.points) for e in entries] == [(alice.user_id, 100)]
            post = session.get(FeedPost, approval.feed_post_id)
            assert "100" in post.content
            assert "Run 5k" in post.content
            assert "Nice" in post.content

        revocation = review_service.reject(engine, sub_id, reviewer, comment="Fake proof")
        assert _count(engine, ScoreEntry, ScoreEntry.user_id == alice.user_id) == 0
        assert score_service.total_points_for_user(engine, alice.user_id) == baseline
        with Session(engine) as session:
            post = session.get(FeedPost, revocation.feed_post_id)
            assert "Fake proof" in post.content


# ===========================================================================
# Team submissions
# ===========================================================================
class TestTeamDecisions:
    def test_approve_defaults_to_task_points(self, engine, alice, reviewer):
        team_id, sub_id = _make_team_submission(engine, alice, task_points=40)
        outcome = review_service.approve_team_submission(engine, sub_id, reviewer, "Great")
        assert outcome.points_delta == 40
        assert score_service.total_points_for_team(engine, team_id) == 40
        # team points never reach the per-user ledger
        assert _count(engine, ScoreEntry) == 0
        assert score_service.total_points_for_user(engine, alice.user_id) == 0

    def test_approve_with_adjusted_points(self, engine, alice, reviewer):
        team_id, sub_id = _make_team_submission(engine, alice)
        review_service.approve_team_submission(engine, sub_id, reviewer, points=55)
        with Session(engine) as session:
            assert session.get(TeamSubmission, sub_id).points_awarded == 55
        assert score_service.total_points_for_team(engine, team_id) == 55

    def test_negative_points_refused(self, engine, alice, reviewer):
        _, sub_id = _make_team_submission(engine, alice)
        with pytest.raises(InvalidSubmission):
            review_service.approve_team_submission(engine, sub_id, reviewer, points=-1)

    def test_decisions_post_to_team_feed_only(self, engine, alice, reviewer):
        team_id, sub_id = _make_team_submission(engine, alice)
        review_service.approve_team_submission(engine, sub_id, reviewer, "Great")
        review_service.reject_team_submission(engine, sub_id, reviewer, "Wrong statue")
        with Session(engine) as session:
            posts = session.scalars(select(FeedPost).order_by(FeedPost.id)).all()
            assert [p.event_type for p in posts] == ["task_approved", "task_revoked"]
            assert all(p.team_id == team_id for p in posts)
            assert all(p.author_name == "Judge" for p in posts)
            assert "Wrong statue" in posts[1].content

    def test_pending_rejection_posts_to_team(self, engine, alice, reviewer):
        team_id, sub_id = _make_team_submission(engine, alice)
        outcome = review_service.reject_team_submission(engine, sub_id, reviewer, "Blurry")
        assert outcome.status == "rejected"
        assert outcome.points_delta == 0
        with Session(engine) as session:
            post = session.get(FeedPost, outcome.feed_post_id)
            assert post.event_type == "task_rejected"
            assert post.team_id == team_id

    def test_revocation_removes_team_points(self, engine, alice, reviewer):
        team_id, sub_id = _make_team_submission(engine, alice, task_points=40)
        review_service.approve_team_submission(engine, sub_id, reviewer)
        outcome = review_service.reject_team_submission(engine, sub_id, reviewer)
        assert outcome.status == "revoked"
        assert outcome.points_delta == -40
        assert score_service.total_points_for_team(engine, team_id) == 0

    def test_team_decisions_are_guarded(self, engine, alice, reviewer):
        _, sub_id = _make_team_submission(engine, alice)
        review_service.approve_team_submission(engine, sub_id, reviewer)
        with pytest.raises(AlreadyDecided):
            review_service.approve_team_submission(engine, sub_id, reviewer)
        review_service.reject_team_submission(engine, sub_id, reviewer)
        with pytest.raises(AlreadyDecided):
            review_service.reject_team_submission(engine, sub_id, reviewer)

    def test_team_decisions_require_reviewer(self, engine, alice):
        _, sub_id = _make_team_submission(engine, alice)
        with pytest.raises(Unauthorized):
            review_service.approve_team_submission(engine, sub_id, alice)


# ===========================================================================
# Bonus grants
# ===========================================================================
class TestBonusGrant:
    def test_grant_writes_grant_post_and_audit(self, engine, alice, reviewer):
        add_user(engine, alice)
        outcome = review_service.grant_bonus(
            engine, reviewer, alice.user_id, 25, "Helped set up", "https://cdn/setup.png"
        )
        assert outcome.points_delta == 25
        assert score_service.total_points_for_user(engine, alice.user_id) == 25
        with Session(engine) as session:
            grant = session.scalar(select(BonusGrant))
            assert grant.granted_by == reviewer.user_id
            post = session.get(FeedPost, outcome.feed_post_id)
            assert post.event_type == "bonus_points"
            assert "Alice just received +25 bonus points!" in post.content
            assert post.image_urls == ["https://cdn/setup.png"]
        assert _count(engine, AuditLog, AuditLog.action == "BONUS_GRANT") == 1

    @pytest.mark.parametrize("points", [0, -10])
    def test_points_must_be_positive(self, engine, alice, reviewer, points):
        add_user(engine, alice)
        with pytest.raises(InvalidSubmission):
            review_service.grant_bonus(engine, reviewer, alice.user_id, points)
        assert _count(engine, BonusGrant) == 0

    def test_unknown_user(self, engine, reviewer):
        with pytest.raises(NotFound):
            review_service.grant_bonus(engine, reviewer, "ghost", 5)

    def test_requires_reviewer(self, engine, alice, bob):
        add_user(engine, alice)
        with pytest.raises(Unauthorized):
            review_service.grant_bonus(engine, bob, alice.user_id, 5)


class TestSyncCaller:
    def test_reviewer_row_is_mirrored(self, engine, reviewer):
        with Session(engine) as session:
            user = sync_caller(session, reviewer)
            session.commit()
            assert user.is_reviewer is True
            assert user.display_name == "Rita Reviewer"
