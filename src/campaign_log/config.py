"""Settings loader.

Reads settings from .campaign-log/settings.local.md (YAML frontmatter),
then applies environment overrides, falling back to defaults.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .constants import CORRUPTED_PREVIEW_LENGTH, DEFAULT_CAMPAIGN_ID, DEFAULT_LOG_FILENAME, DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

SETTINGS_RELATIVE_PATH = Path(".campaign-log") / "settings.local.md"

DEFAULT_SETTINGS: dict[str, Any] = {
    "log_path": DEFAULT_LOG_FILENAME,
    "campaign_id": DEFAULT_CAMPAIGN_ID,
    "preview_length": CORRUPTED_PREVIEW_LENGTH,
    "page_size": DEFAULT_PAGE_SIZE,
}

ENV_OVERRIDES = {
    "CAMPAIGN_LOG_PATH": "log_path",
    "CAMPAIGN_ID": "campaign_id",
}


def _read_frontmatter(settings_path: Path) -> dict[str, Any]:
    content = settings_path.read_text(encoding="utf-8")
    if not content.startswith("---"):
        return {}
    parts = content.split("---", 2)
    if len(parts) < 3:
        return {}
    try:
        data = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring malformed settings in {settings_path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings in {settings_path}: frontmatter is not a mapping")
        return {}
    return data


def load_settings(cwd: str | Path, environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Load settings from .campaign-log/settings.local.md

    Settings file format (YAML frontmatter):
    ```
    ---
    log_path: Campaign/Activity Log.md
    campaign_id: curse-of-strahd
    page_size: 25
    ---

    # Optional markdown notes below
    ```

    Precedence: environment > file > defaults. A relative ``log_path`` is
    resolved against ``cwd``.
    """
    cwd = Path(cwd)
    environ = os.environ if environ is None else environ
    settings = DEFAULT_SETTINGS.copy()

    settings_path = cwd / SETTINGS_RELATIVE_PATH
    if settings_path.is_file():
        user_settings = _read_frontmatter(settings_path)
        unknown = set(user_settings) - set(DEFAULT_SETTINGS)
        if unknown:
            logger.warning(f"Unknown settings ignored: {sorted(unknown)}")
        settings.update({k: v for k, v in user_settings.items() if k in DEFAULT_SETTINGS})

    for env_name, key in ENV_OVERRIDES.items():
        if value := environ.get(env_name):
            settings[key] = value

    log_path = Path(settings["log_path"]).expanduser()
    if not log_path.is_absolute():
        log_path = cwd / log_path
    settings["log_path"] = log_path
    return settings
