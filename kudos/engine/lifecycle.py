"""
kudos.engine.lifecycle — Submission State Machine
==================================================

Pure transition table for submission status.  No DB I/O.

    pending  --APPROVE-->  approved
    pending  --REJECT--->  rejected
    approved --REVOKE--->  rejected   (scoring reversed, ``revoked_at`` set)

Anything not listed is refused with :class:`~kudos.errors.AlreadyDecided`.
The review processor uses :func:`next_status` to decide which status to
write and which status to guard the conditional UPDATE with.
"""

from __future__ import annotations

from kudos.config import DEFAULT_CONFIG, KudosConfig
from kudos.database.models import ReviewAction, SubmissionStatus
from kudos.errors import AlreadyDecided, InvalidSubmission

TRANSITIONS: dict[tuple[SubmissionStatus, ReviewAction], SubmissionStatus] = {
    (SubmissionStatus.PENDING, ReviewAction.APPROVE): SubmissionStatus.APPROVED,
    (SubmissionStatus.PENDING, ReviewAction.REJECT): SubmissionStatus.REJECTED,
    (SubmissionStatus.APPROVED, ReviewAction.REVOKE): SubmissionStatus.REJECTED,
}


def next_status(current: str, action: ReviewAction) -> SubmissionStatus:
    """Return the status *action* moves a submission in *current* to.

    Raises :class:`AlreadyDecided` for any pair outside :data:`TRANSITIONS`,
    including unknown stored status strings.
    """
    try:
        key = (SubmissionStatus(current), action)
    except ValueError:
        raise AlreadyDecided(f"Unknown submission status {current!r}.") from None
    if key not in TRANSITIONS:
        raise AlreadyDecided()
    return TRANSITIONS[key]


def action_for_reject(current: str) -> ReviewAction:
    """Map a reviewer's "reject" on a submission in *current* to an action.

    Rejecting an approved submission is a revocation; anything else is a
    plain rejection (which the transition table may still refuse).
    """
    if current == SubmissionStatus.APPROVED:
        return ReviewAction.REVOKE
    return ReviewAction.REJECT


# ---------------------------------------------------------------------------
# Creation-time input checks
# ---------------------------------------------------------------------------
def clean_submission_input(
    text: str | None,
    media_urls: list[str] | None,
    cfg: KudosConfig | None = None,
) -> tuple[str | None, list[str]]:
    """Validate and normalise submission text and proof URLs.

    Blank text becomes ``None``; URLs are stripped.  Raises
    :class:`InvalidSubmission` on over-long text, too many media entries,
    or an empty / non-string media entry.
    """
    cfg = cfg or DEFAULT_CONFIG

    if text is not None:
        if not isinstance(text, str):
            raise InvalidSubmission("Submission text must be a string.")
        text = text.strip() or None
    if text is not None and len(text) > cfg.max_submission_text_length:
        raise InvalidSubmission(
            f"Submission text is limited to "
            f"{cfg.max_submission_text_length} characters."
        )

    urls = list(media_urls or [])
    if len(urls) > cfg.max_media_per_submission:
        raise InvalidSubmission(
            f"At most {cfg.max_media_per_submission} media files per submission."
        )
    cleaned: list[str] = []
    for url in urls:
        if not isinstance(url, str) or not url.strip():
            raise InvalidSubmission("Media URLs must be non-empty strings.")
        cleaned.append(url.strip())

    return text, cleaned
