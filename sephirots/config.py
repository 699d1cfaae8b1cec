"""
sephirots.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for **identity and infrastructure** settings only
(community name, API port, frontend URL).  Gameplay tuning (point awards,
tier thresholds, donation tiers, vote thresholds) lives in the ``settings``
database table and is read through :mod:`sephirots.services.settings_service`.

Usage::

    from sephirots.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "The Sephirots"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — identity/infrastructure only.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SephirotsConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    community_motto: str

    # API
    api_port: int

    # Optional
    frontend_url: str | None = None  # Used for checkout success/cancel redirects
    currency: str = "usd"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> SephirotsConfig:
    """Read *path* and return a :class:`SephirotsConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return SephirotsConfig(
        community_name=raw["community_name"],
        community_motto=raw["community_motto"],
        api_port=int(raw["api_port"]),
        frontend_url=(raw.get("frontend_url") or None),
        currency=str(raw.get("currency", "usd")).lower(),
    )
