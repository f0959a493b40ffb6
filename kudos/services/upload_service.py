"""
kudos.services.upload_service — Proof media storage adapter
============================================================

The storage boundary the core depends on is a single call::

    url = await upload_proof(data, path, content_type)

The shipped adapter writes into a configurable upload directory and
returns a URL under ``/api/uploads/`` that the API serves as static files.
The URL is opaque to the rest of the core; submissions only store it.

Writes run on a worker thread and are bounded by
``storage_timeout_seconds``.  Files are written under a ``.part`` name
and renamed into place, so a timed-out write never leaves a stored file
behind.  A failed or slow write raises
:class:`~kudos.errors.DependencyUnavailable`; a file that fails
validation raises :class:`~kudos.errors.InvalidSubmission`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
import uuid
from pathlib import Path

from kudos.config import DEFAULT_CONFIG, KudosConfig
from kudos.constants import VIDEO_EXTENSIONS
from kudos.errors import DependencyUnavailable, InvalidSubmission

logger = logging.getLogger(__name__)

URL_PREFIX = "/api/uploads"
IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".heic"})
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS
ALLOWED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "image/heic",
    "video/mp4",
    "video/quicktime",
    "video/webm",
})

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def upload_root(cfg: KudosConfig | None = None) -> Path:
    return Path((cfg or DEFAULT_CONFIG).upload_dir)


def ensure_upload_dir(cfg: KudosConfig | None = None) -> None:
    """Create the upload directory if it doesn't exist."""
    upload_root(cfg).mkdir(parents=True, exist_ok=True)


def _folder_for(path: str) -> str:
    """Validate the caller-chosen folder (e.g. ``submissions/42``).

    Only plain name segments are allowed so nothing escapes the upload root.
    """
    segments = [s for s in (path or "").strip("/").split("/") if s]
    for seg in segments:
        if not _SEGMENT_RE.match(seg):
            raise InvalidSubmission(f"Invalid upload path segment: {seg!r}")
    return "/".join(segments)


def validate_upload(
    filename: str,
    data: bytes,
    content_type: str | None,
    cfg: KudosConfig | None = None,
) -> str:
    """Check size, extension and MIME type; return the lowercase extension."""
    cfg = cfg or DEFAULT_CONFIG
    if not data:
        raise InvalidSubmission("Uploaded file is empty.")
    if len(data) > cfg.max_upload_bytes:
        raise InvalidSubmission(
            f"File too large: {len(data)} bytes "
            f"(max {cfg.max_upload_bytes // 1024 // 1024}MB)"
        )

    ext = Path(filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise InvalidSubmission(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    if content_type and content_type not in ALLOWED_MIME_TYPES:
        raise InvalidSubmission(
            f"MIME type not allowed: {content_type!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )
    return ext


def _partial_path(dest: Path) -> Path:
    return dest.with_name(dest.name + ".part")


def _write(dest: Path, data: bytes, cancelled: threading.Event) -> None:
    """Write to a ``.part`` file and rename it into place.

    If the caller gave up (timeout) the partial file is removed instead of
    being published under *dest*.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = _partial_path(dest)
    partial.write_bytes(data)
    if cancelled.is_set():
        partial.unlink(missing_ok=True)
        return
    os.replace(partial, dest)


async def upload_proof(
    data: bytes,
    path: str,
    content_type: str | None = None,
    *,
    filename: str | None = None,
    cfg: KudosConfig | None = None,
) -> str:
    """Store proof media and return its URL.

    Parameters
    ----------
    data:
        Raw file bytes.
    path:
        Folder under the upload root, e.g. ``"submissions/<user_id>"``.
    content_type:
        MIME type from the upload header, if any.
    filename:
        Original filename; only its extension is kept.
    """
    cfg = cfg or DEFAULT_CONFIG
    ext = validate_upload(filename or "", data, content_type, cfg)
    folder = _folder_for(path)

    unique_name = f"{uuid.uuid4().hex}{ext}"
    relative = f"{folder}/{unique_name}" if folder else unique_name
    dest = upload_root(cfg) / relative

    cancelled = threading.Event()
    try:
        await asyncio.wait_for(
            asyncio.to_thread(_write, dest, data, cancelled),
            timeout=cfg.storage_timeout_seconds,
        )
    except (TimeoutError, OSError) as exc:
        cancelled.set()
        _partial_path(dest).unlink(missing_ok=True)
        dest.unlink(missing_ok=True)
        logger.exception("Proof upload to %s failed", dest)
        raise DependencyUnavailable(
            "File storage is unavailable. Please try again."
        ) from exc

    logger.info("Stored proof upload %s (%d bytes)", relative, len(data))
    return f"{URL_PREFIX}/{relative}"
