"""
tests/test_score_service.py — Score Aggregator Tests
=====================================================
Totals, leaderboard ordering and pagination, team totals, profile
history, and a randomized check that totals always equal the raw sum of
ledger rows and bonus grants after any sequence of decisions.
"""

from __future__ import annotations

import random

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import add_user
from kudos.database.models import (
    Achievement,
    BonusGrant,
    Event,
    ScavengerTask,
    ScoreEntry,
    Submission,
    Team,
    TeamMember,
)
from kudos.errors import AlreadyDecided, AlreadyApproved, DuplicatePendingSubmission, NotFound
from kudos.services import review_service, score_service, submission_service
from kudos.services.identity_service import Caller


@pytest.fixture
def engine(db_engine):
    """Re-use the shared conftest db_engine (SQLite, StaticPool)."""
    return db_engine


def _make_achievement(engine, title: str, points: int) -> int:
    with Session(engine) as session:
        ach = Achievement(title=title, points=points)
        session.add(ach)
        session.commit()
        return ach.id


def _raw_total(engine, user_id: str) -> int:
    with Session(engine) as session:
        ledger = session.scalar(
            select(func.coalesce(func.sum(ScoreEntry.points), 0))
            .where(ScoreEntry.user_id == user_id)
        )
        bonus = session.scalar(
            select(func.coalesce(func.sum(BonusGrant.points), 0))
            .where(BonusGrant.user_id == user_id)
        )
        return ledger + bonus


def _award(engine, caller, reviewer, title: str, points: int) -> int:
    ach_id = _make_achievement(engine, title, points)
    sub_id = submission_service.create_submission(engine, caller, ach_id)
    review_service.approve(engine, sub_id, reviewer)
    return sub_id


# ===========================================================================
# User totals
# ===========================================================================
class TestUserTotals:
    def test_unknown_user_is_zero(self, engine):
        assert score_service.total_points_for_user(engine, "nobody") == 0

    def test_known_user_without_entries_is_zero(self, engine, alice):
        add_user(engine, alice)
        assert score_service.total_points_for_user(engine, alice.user_id) == 0

    def test_ledger_plus_bonus(self, engine, alice, reviewer):
        _award(engine, alice, reviewer, "Run 5k", 100)
        _award(engine, alice, reviewer, "Swim 1k", 30)
        review_service.grant_bonus(engine, reviewer, alice.user_id, 5)
        assert score_service.total_points_for_user(engine, alice.user_id) == 135

    def test_pending_and_rejected_do_not_count(self, engine, alice, reviewer):
        a1 = _make_achievement(engine, "Run 5k", 100)
        a2 = _make_achievement(engine, "Swim 1k", 30)
        submission_service.create_submission(engine, alice, a1)
        s2 = submission_service.create_submission(engine, alice, a2)
        review_service.reject(engine, s2, reviewer)
        assert score_service.total_points_for_user(engine, alice.user_id) == 0


# ===========================================================================
# Leaderboard
# ===========================================================================
class TestLeaderboard:
    def test_sorted_by_total_then_user_id(self, engine, reviewer):
        callers = [Caller(user_id=uid, display_name=uid.upper()) for uid in ("u3", "u1", "u2")]
        for c in callers:
            add_user(engine, c)
        review_service.grant_bonus(engine, reviewer, "u3", 50)
        review_service.grant_bonus(engine, reviewer, "u1", 50)
        review_service.grant_bonus(engine, reviewer, "u2", 80)

        rows = score_service.leaderboard(engine, page=1, page_size=10)
        ranked = [(r.rank, r.user_id, r.total) for r in rows]
        # the reviewer is a known user too, with zero points
        assert ranked == [
            (1, "u2", 80),
            (2, "u1", 50),
            (3, "u3", 50),
            (4, reviewer.user_id, 0),
        ]
        assert rows[0].display_name == "U2"

    def test_includes_users_with_zero(self, engine, alice, bob):
        add_user(engine, alice)
        add_user(engine, bob)
        rows = score_service.leaderboard(engine)
        assert [r.user_id for r in rows] == [alice.user_id, bob.user_id]
        assert all(r.total == 0 for r in rows)

    def test_pages_do_not_overlap(self, engine, reviewer):
        for i in range(7):
            add_user(engine, Caller(user_id=f"p{i}", display_name=f"P{i}"))
            if i % 2:
                review_service.grant_bonus(engine, reviewer, f"p{i}", 10)
        full = score_service.leaderboard(engine, page=1, page_size=50)
        pages = [
            score_service.leaderboard(engine, page=p, page_size=3) for p in (1, 2, 3)
        ]
        stitched = [r for page in pages for r in page]
        assert [r.user_id for r in stitched] == [r.user_id for r in full]
        assert [r.rank for r in stitched] == list(range(1, len(full) + 1))

    def test_revocation_moves_user_down(self, engine, alice, bob, reviewer):
        sub_a = _award(engine, alice, reviewer, "Run 5k", 100)
        _award(engine, bob, reviewer, "Swim 1k", 50)
        assert score_service.leaderboard(engine)[0].user_id == alice.user_id
        review_service.reject(engine, sub_a, reviewer, "Fake")
        assert score_service.leaderboard(engine)[0].user_id == bob.user_id


# ===========================================================================
# Teams
# ===========================================================================
class TestTeamTotals:
    def _setup(self, engine):
        with Session(engine) as session:
            event = Event(name="Spring Hunt", active=True)
            session.add(event)
            session.flush()
            tasks = [
                ScavengerTask(event_id=event.id, title=f"Task {i}", points=10 * (i + 1))
                for i in range(3)
            ]
            owls = Team(event_id=event.id, name="Owls")
            foxes = Team(event_id=event.id, name="Foxes")
            session.add_all([*tasks, owls, foxes])
            session.flush()
            session.add_all([
                TeamMember(team_id=owls.id, user_id="user-a", event_id=event.id),
                TeamMember(team_id=foxes.id, user_id="user-b", event_id=event.id),
            ])
            session.commit()
            return event.id, [t.id for t in tasks], owls.id, foxes.id

    def test_sum_of_approved_points_awarded(self, engine, alice, reviewer):
        event_id, task_ids, owls, _ = self._setup(engine)
        subs = [
            submission_service.create_team_submission(engine, alice, owls, t)
            for t in task_ids
        ]
        review_service.approve_team_submission(engine, subs[0], reviewer)            # 10
        review_service.approve_team_submission(engine, subs[1], reviewer, points=5)  # 5
        review_service.reject_team_submission(engine, subs[2], reviewer)              # 0
        assert score_service.total_points_for_team(engine, owls) == 15

    def test_unknown_team_is_zero(self, engine):
        assert score_service.total_points_for_team(engine, 999) == 0

    def test_team_leaderboard(self, engine, alice, bob, reviewer):
        event_id, task_ids, owls, foxes = self._setup(engine)
        s_owl = submission_service.create_team_submission(engine, alice, owls, task_ids[0])
        s_fox = submission_service.create_team_submission(engine, bob, foxes, task_ids[2])
        review_service.approve_team_submission(engine, s_owl, reviewer)
        review_service.approve_team_submission(engine, s_fox, reviewer)

        rows = score_service.team_leaderboard(engine, event_id)
        assert [(r.rank, r.name, r.total) for r in rows] == [
            (1, "Foxes", 30),
            (2, "Owls", 10),
        ]

    def test_team_leaderboard_ties_by_team_id(self, engine):
        event_id, _, owls, foxes = self._setup(engine)
        rows = score_service.team_leaderboard(engine, event_id)
        assert [r.team_id for r in rows] == sorted([owls, foxes])


# ===========================================================================
# Profile history
# ===========================================================================
class TestUserHistory:
    def test_history_shows_decisions_and_bonuses(self, engine, alice, reviewer):
        kept = _award(engine, alice, reviewer, "Run 5k", 100)
        revoked = _award(engine, alice, reviewer, "Swim 1k", 30)
        review_service.reject(engine, revoked, reviewer, "Fake")
        a3 = _make_achievement(engine, "Bike 20k", 60)
        rejected = submission_service.create_submission(engine, alice, a3)
        review_service.reject(engine, rejected, reviewer, "Blurry")
        a4 = _make_achievement(engine, "Hike", 20)
        submission_service.create_submission(engine, alice, a4)  # still pending
        review_service.grant_bonus(engine, reviewer, alice.user_id, 5, "Volunteer")

        profile = score_service.user_history(engine, alice.user_id)
        assert profile["total"] == 105
        by_id = {(i.kind, i.id): i for i in profile["history"]}
        assert by_id[("achievement", kept)].status == "approved"
        assert by_id[("achievement", kept)].points == 100
        assert by_id[("achievement", revoked)].status == "revoked"
        assert by_id[("achievement", revoked)].points == 0
        assert by_id[("achievement", rejected)].status == "rejected"
        assert len([i for i in profile["history"] if i.kind == "achievement"]) == 3
        assert [i.title for i in profile["history"] if i.kind == "bonus"] == ["Volunteer"]

    def test_unknown_user(self, engine):
        with pytest.raises(NotFound):
            score_service.user_history(engine, "ghost")


# ===========================================================================
# Randomized: totals always equal the raw sum
# ===========================================================================
class TestTotalsMatchLedger:
    @pytest.mark.parametrize("seed", range(8))
    def test_random_operation_sequences(self, engine, reviewer, seed):
        rng = random.Random(seed)
        users = [Caller(user_id=f"r{i}", display_name=f"R{i}") for i in range(3)]
        for u in users:
            add_user(engine, u)
        achievements = [
            _make_achievement(engine, f"A{i}", rng.randint(0, 50)) for i in range(4)
        ]

        for _ in range(40):
            op = rng.choice(["submit", "approve", "reject", "bonus"])
            user = rng.choice(users)
            try:
                if op == "submit":
                    submission_service.create_submission(
                        engine, user, rng.choice(achievements)
                    )
                elif op == "bonus":
                    review_service.grant_bonus(
                        engine, reviewer, user.user_id, rng.randint(1, 20)
                    )
                else:
                    with Session(engine) as session:
                        ids = session.scalars(
                            select(Submission.id).where(Submission.user_id == user.user_id)
                        ).all()
                    if not ids:
                        continue
                    sub_id = rng.choice(ids)
                    if op == "approve":
                        override = rng.choice([None, None, rng.randint(0, 80)])
                        review_service.approve(engine, sub_id, reviewer, point_override=override)
                    else:
                        review_service.reject(engine, sub_id, reviewer)
            except (AlreadyDecided, AlreadyApproved, DuplicatePendingSubmission):
                pass

            for u in users:
                assert score_service.total_points_for_user(engine, u.user_id) == _raw_total(
                    engine, u.user_id
                )

        with Session(engine) as session:
            approved = session.scalar(
                select(func.count()).select_from(Submission)
                .where(Submission.status == "approved")
            )
            entries = session.scalar(select(func.count()).select_from(ScoreEntry))
        assert approved == entries

        board = score_service.leaderboard(engine, page=1, page_size=100)
        totals = {r.user_id: r.total for r in board}
        for u in users:
            assert totals[u.user_id] == _raw_total(engine, u.user_id)
