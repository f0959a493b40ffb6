"""
tests/test_dependency_errors.py — Unreachable database
=======================================================

Every service call, read or write, must answer an unreachable database with
:class:`DependencyUnavailable` rather than a raw driver error.
"""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine

from conftest import make_token
from kudos.errors import DependencyUnavailable
from kudos.services import (
    catalog_service,
    feed_service,
    identity_service,
    review_service,
    score_service,
    submission_service,
    team_service,
)


@pytest.fixture
def dead_engine(tmp_path):
    """SQLite engine pointing into a directory that does not exist."""
    engine = create_engine(f"sqlite:///{tmp_path}/missing/dir/kudos.db")
    yield engine
    engine.dispose()


class TestReadsMapDriverErrors:
    @pytest.mark.parametrize(
        "call",
        [
            lambda e: score_service.total_points_for_user(e, "user-a"),
            lambda e: score_service.leaderboard(e),
            lambda e: score_service.total_points_for_team(e, 1),
            lambda e: score_service.team_leaderboard(e, 1),
            lambda e: score_service.user_history(e, "user-a"),
            lambda e: feed_service.list_feed(e),
            lambda e: feed_service.list_team_feed(e, 1),
            lambda e: submission_service.get_submission(e, 1),
            lambda e: submission_service.list_user_submissions(e, "user-a"),
            lambda e: submission_service.list_team_submissions(e, 1),
            lambda e: catalog_service.list_achievements(e),
            lambda e: catalog_service.list_events(e),
            lambda e: catalog_service.list_tasks(e, 1),
            lambda e: team_service.list_teams(e),
            lambda e: team_service.get_team(e, 1),
            lambda e: identity_service.get_user_profile(e, "user-a"),
            lambda e: identity_service.is_reviewer(e, "user-a"),
        ],
    )
    def test_read_raises_dependency_unavailable(self, dead_engine, call):
        with pytest.raises(DependencyUnavailable):
            call(dead_engine)

    def test_list_pending(self, dead_engine, reviewer):
        with pytest.raises(DependencyUnavailable):
            submission_service.list_pending(dead_engine, reviewer)

    def test_revoke_lookup(self, dead_engine, reviewer):
        with pytest.raises(DependencyUnavailable):
            review_service.revoke(dead_engine, 1, reviewer)


class TestWritesMapDriverErrors:
    def test_sync_user(self, dead_engine, alice):
        with pytest.raises(DependencyUnavailable):
            identity_service.sync_user(dead_engine, alice)

    def test_create_post(self, dead_engine, alice):
        with pytest.raises(DependencyUnavailable):
            feed_service.create_post(dead_engine, alice, "hello")


class TestApiAnswers503:
    def test_authenticated_request(self, client, dead_engine):
        from kudos.api.deps import get_engine
        from kudos.api.main import app

        app.dependency_overrides[get_engine] = lambda: dead_engine
        resp = client.get(
            "/api/submissions/mine",
            headers={"Authorization": f"Bearer {make_token()}"},
        )
        assert resp.status_code == 503
        assert resp.json()["code"] == "dependency_unavailable"

    def test_public_read(self, client, dead_engine):
        from kudos.api.deps import get_engine
        from kudos.api.main import app

        app.dependency_overrides[get_engine] = lambda: dead_engine
        resp = client.get("/api/leaderboard")
        assert resp.status_code == 503
