"""
Kudos — Submission, Review & Scoring Core for Community Engagement
===================================================================
Backs a community platform's social feed, achievement submissions,
team scavenger hunts and leaderboards.  The heart of the package is the
submission → review → scoring pipeline: participants claim achievements
or hunt tasks, reviewers approve / reject / revoke, and every decision
keeps the score ledger and the activity feed consistent with it.

Package layout::

    kudos/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Feed emoji, media extensions, limits
    ├── errors.py          # Error taxonomy (maps to HTTP status codes)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + ledger_session helper
    │   └── models.py      # All ORM models
    ├── engine/
    │   ├── lifecycle.py   # Status enum transition table (pure)
    │   └── scoring.py     # Point resolution + ranking helpers (pure)
    ├── services/
    │   ├── identity_service.py    # Caller + users mirror
    │   ├── upload_service.py      # Proof media storage adapter
    │   ├── submission_service.py  # Submission lifecycle (create / list)
    │   ├── review_service.py      # Approve / reject / revoke / bonus
    │   ├── score_service.py       # Score aggregator (read side)
    │   ├── feed_templates.py      # Announcement text builders
    │   ├── feed_service.py        # Feed writer + reads
    │   ├── catalog_service.py     # Achievements, events, tasks
    │   ├── team_service.py        # Teams and rosters
    │   └── audit.py               # Audit-log helpers
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → Caller, engine, config
        └── routes/        # Submissions, review, scores, feed, catalog, teams
"""

__version__ = "0.1.0"
