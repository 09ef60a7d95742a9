"""Filesystem helpers for the voice client."""

from __future__ import annotations

import os
from pathlib import Path


def project_root() -> Path:
    """Return the repository root."""
    return Path(__file__).resolve().parents[3]


def config_dir() -> Path:
    """Directory storing local client settings (``ERPVOICE_CONFIG_DIR`` overrides it)."""
    override = os.getenv("ERPVOICE_CONFIG_DIR")
    root = Path(override) if override else project_root() / "desktop" / "voice_client" / "config"
    root.mkdir(parents=True, exist_ok=True)
    return root
