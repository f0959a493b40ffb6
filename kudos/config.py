"""
kudos.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for infrastructure and presentation settings
(community identity, feed author names, submission limits, timeouts).
Secrets and connection strings (``DATABASE_URL``, ``JWT_SECRET``) stay in
the environment.

Every field has a default, so a missing key falls back to the value a
fresh deployment would use.  Service functions accept a ``cfg`` argument
and fall back to :data:`DEFAULT_CONFIG` when none is given.

Usage::

    from kudos.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.community_name)        # "Kudos Dev"
    print(cfg.max_media_per_submission)
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class KudosConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str = "Kudos"

    # API
    api_port: int = 8000

    # Feed authorship for synthesized posts
    system_author_name: str = "System"
    judge_author_name: str = "Judge"

    # Submission limits
    max_submission_text_length: int = 2000
    max_media_per_submission: int = 10

    # External dependency bounds
    database_timeout_seconds: int = 10
    storage_timeout_seconds: int = 15

    # Proof uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = 25 * 1024 * 1024  # 25 MB


DEFAULT_CONFIG = KudosConfig()

_INT_FIELDS = frozenset(
    f.name for f in fields(KudosConfig) if f.type in ("int", int)
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> KudosConfig:
    """Read *path* and return a :class:`KudosConfig` instance.

    Unknown keys are ignored; missing keys take the dataclass default.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If an integer setting cannot be parsed.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    known = {f.name for f in fields(KudosConfig)}
    values = {}
    for key, value in raw.items():
        if key not in known or value is None:
            continue
        values[key] = int(value) if key in _INT_FIELDS else str(value)

    return KudosConfig(**values)
