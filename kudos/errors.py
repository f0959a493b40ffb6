"""
kudos.errors — Error Taxonomy
==============================

Every failure the core reports to a caller is a :class:`KudosError`
subclass.  Each class carries a stable ``code`` and the HTTP status the
API layer answers with, so the service layer never imports FastAPI.

Propagation policy:

* Validation and conflict errors are raised synchronously and shown to the
  user as a specific reason ("already reviewed by someone else").
* :class:`DependencyUnavailable` means the database or storage failed or
  timed out; the surrounding transaction was rolled back and the request may
  be retried.
* :class:`LedgerConsistencyError` is a bug, not a user error.  It is logged
  at CRITICAL where it is raised and is never swallowed.
"""

from __future__ import annotations


class KudosError(Exception):
    """Base class for all errors raised by the Kudos core."""

    code: str = "kudos_error"
    http_status: int = 400
    default_message: str = "Request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(KudosError):
    code = "unauthorized"
    http_status = 403
    default_message = "You are not allowed to perform this action."


class NotFound(KudosError):
    code = "not_found"
    http_status = 404
    default_message = "Not found."


class InvalidSubmission(KudosError):
    code = "invalid_submission"
    http_status = 422
    default_message = "Submission is invalid."


class DuplicatePendingSubmission(KudosError):
    code = "duplicate_pending_submission"
    http_status = 409
    default_message = "You already have a submission waiting for review."


class AlreadyApproved(KudosError):
    code = "already_approved"
    http_status = 409
    default_message = "This has already been approved."


class AlreadyDecided(KudosError):
    code = "already_decided"
    http_status = 409
    default_message = "This submission was already reviewed by someone else."


class TeamMembershipConflict(KudosError):
    code = "team_membership_conflict"
    http_status = 409
    default_message = "User is already in a team for this event."


class DependencyUnavailable(KudosError):
    code = "dependency_unavailable"
    http_status = 503
    default_message = "A backing service is unavailable. Please try again."


class LedgerConsistencyError(KudosError):
    code = "ledger_consistency_error"
    http_status = 500
    default_message = "Score ledger is inconsistent with submission state."
