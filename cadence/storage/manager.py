"""
storage/manager.py - JSON state persistence

Conversations and preferences live in one JSON document. Saves keep the
previous file as a backup and replace the state file atomically; loads
fall back to the backup, then to defaults.
"""

import asyncio
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict

from cadence.config.models import DEFAULT_MODEL
from cadence.exceptions.config import StateFileError

logger = logging.getLogger("StateStore")

STATE_VERSION = "1.0.0"


def default_state() -> Dict[str, Any]:
    return {
        "version": STATE_VERSION,
        "active_model": DEFAULT_MODEL,
        "conversations": {},
        "preferences": {"show_tokens": False},
    }


def validate_and_migrate(state: Any) -> Dict[str, Any]:
    """Merge a loaded document over the defaults."""
    if not isinstance(state, dict):
        return default_state()

    if state.get("version") != STATE_VERSION:
        logger.info(
            "Migrating state from %s to %s",
            state.get("version", "unknown"),
            STATE_VERSION,
        )

    defaults = default_state()
    preferences = dict(defaults["preferences"])
    if isinstance(state.get("preferences"), dict):
        preferences.update(state["preferences"])

    conversations = state.get("conversations")
    return {
        "version": STATE_VERSION,
        "active_model": state.get("active_model") or defaults["active_model"],
        "conversations": conversations if isinstance(conversations, dict) else {},
        "preferences": preferences,
    }


class StateStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.backup_path = self.path.with_name(f"{self.path.stem}.backup.json")
        self.tmp_path = self.path.with_name(f"{self.path.name}.tmp")

    async def load(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._load_sync)

    async def save(self, state: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._save_sync, state)

    def _load_sync(self) -> Dict[str, Any]:
        for candidate in (self.path, self.backup_path):
            if not candidate.exists():
                continue
            try:
                data = json.loads(candidate.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Could not load %s: %s", candidate, e)
                continue
            if candidate == self.backup_path:
                logger.warning("Recovered state from backup %s", candidate)
            return validate_and_migrate(data)
        return default_state()

    def _save_sync(self, state: Dict[str, Any]) -> None:
        payload = json.dumps(state, indent=2, ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                shutil.copyfile(self.path, self.backup_path)
            self.tmp_path.write_text(payload, encoding="utf-8")
            os.replace(self.tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to save state: %s", e, exc_info=True)
            raise StateFileError(
                f"Storage save failed: {e}",
                file_path=str(self.path),
                operation="save",
                original_error=e,
            ) from e
