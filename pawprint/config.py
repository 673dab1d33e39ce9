"""
pawprint.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for deployment settings: community identity, the
admin allow-list, the ledger timezone and limiter tuning.  Point values,
caps and the catalogue are code-level tables in :mod:`pawprint.constants`
and :mod:`pawprint.engine`.

Usage::

    from pawprint.config import load_config

    cfg = load_config()              # $PAWPRINT_CONFIG or ./config.yaml
    print(cfg.community_name)        # "Pawprint"
    print(cfg.ledger_timezone)       # "Asia/Seoul"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from pawprint.constants import ADMIN_AWARD_MAX


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PawprintConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Admin access: emails granted admin on top of ``users.is_admin``
    admin_emails: frozenset[str] = field(default_factory=frozenset)

    # Ledger
    ledger_timezone: str = "Asia/Seoul"  # daily caps reset at local midnight
    admin_award_max: int = ADMIN_AWARD_MAX

    # Rate limiter: category -> (max_requests, window_seconds)
    rate_limits: dict[str, tuple[int, int]] = field(default_factory=dict)
    violation_threshold: int = 3
    block_seconds: int = 1800

    def is_admin_email(self, email: str | None) -> bool:
        return bool(email) and email.strip().lower() in self.admin_emails


def _parse_rate_limits(raw: dict | None) -> dict[str, tuple[int, int]]:
    limits: dict[str, tuple[int, int]] = {}
    for category, spec in (raw or {}).items():
        limits[str(category)] = (int(spec["max_requests"]), int(spec["window_seconds"]))
    return limits


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> PawprintConfig:
    """Read *path* and return a :class:`PawprintConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to
        ``$PAWPRINT_CONFIG``, then ``config.yaml`` in the working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path or os.getenv("PAWPRINT_CONFIG", "config.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return PawprintConfig(
        community_name=raw["community_name"],
        admin_emails=frozenset(
            e.strip().lower() for e in raw.get("admin_emails") or [] if e
        ),
        ledger_timezone=raw.get("ledger_timezone", "Asia/Seoul"),
        admin_award_max=int(raw.get("admin_award_max", ADMIN_AWARD_MAX)),
        rate_limits=_parse_rate_limits(raw.get("rate_limits")),
        violation_threshold=int(raw.get("violation_threshold", 3)),
        block_seconds=int(raw.get("block_seconds", 1800)),
    )
