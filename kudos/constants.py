"""
kudos.constants — Shared Constants & Helpers
=============================================

Single source of truth for feed presentation constants and the media
classification rule.  Import from here instead of duplicating in
services and routes.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import urlparse

# ---------------------------------------------------------------------------
# Feed presentation
# ---------------------------------------------------------------------------
EMOJI_APPROVED = "\U0001f389"      # 🎉
EMOJI_REVOKED = "⚠️"     # ⚠️
EMOJI_BONUS = "\U0001f396️"   # 🎖️
EMOJI_NOTE = "\U0001f4dd"          # 📝
EMOJI_JUDGE = "⚖️"       # ⚖️
EMOJI_TASK_OK = "✅"           # ✅
EMOJI_TASK_NO = "❌"           # ❌

UNKNOWN_USER_NAME = "Unknown User"

# Score ledger tag for achievement approvals
SCORE_EVENT_ACHIEVEMENT = "achievement"


# ---------------------------------------------------------------------------
# Media classification
# ---------------------------------------------------------------------------
VIDEO_EXTENSIONS: frozenset[str] = frozenset({".mp4", ".mov", ".webm"})


def is_video_url(url: str) -> bool:
    """True when *url* points at a video file (judged by extension only)."""
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    return suffix in VIDEO_EXTENSIONS


def split_media(urls: list[str] | None) -> tuple[list[str], list[str]]:
    """Split proof URLs into ``(image_urls, video_urls)``, preserving order."""
    images: list[str] = []
    videos: list[str] = []
    for url in urls or []:
        (videos if is_video_url(url) else images).append(url)
    return images, videos
