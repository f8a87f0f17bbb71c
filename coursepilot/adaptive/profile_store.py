"""
JSON file persistence for the user preference profile.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from config import get_settings
from coursepilot.core.errors import ProfileCorruptionError
from coursepilot.core.models import UserPreferenceProfile


class ProfileStore:
    """Load and save one profile file."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path or get_settings().profile_path).expanduser()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> UserPreferenceProfile:
        """Read the profile, raising ProfileCorruptionError when unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ProfileCorruptionError(f"Cannot read profile {self.path}: {e}") from e

        try:
            return UserPreferenceProfile.model_validate_json(raw)
        except ValidationError as e:
            raise ProfileCorruptionError(f"Invalid profile {self.path}: {e.error_count()} errors") from e

    def load_or_default(self) -> UserPreferenceProfile:
        if not self.exists():
            return UserPreferenceProfile()
        try:
            return self.load()
        except ProfileCorruptionError as e:
            logger.warning(f"{e}; using default preferences")
            return UserPreferenceProfile()

    def save(self, profile: UserPreferenceProfile) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(profile.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self.path)
        logger.debug(f"Saved profile to {self.path}")
        return self.path
