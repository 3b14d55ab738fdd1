"""Durable client-side storage for the issued token and cached profile."""

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class SessionStore:
    """Keeps ``token`` and ``user`` in a JSON file between runs.

    Both entries must be present for the session to count as logged in.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _atomic_write(self, payload: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=str(self.path.parent), delete=False, encoding="utf-8"
        ) as tf:
            json.dump(payload, tf, indent=2, ensure_ascii=False, default=str)
            temp_path = Path(tf.name)
        try:
            shutil.move(str(temp_path), str(self.path))
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def load(self) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        """Return ``(token, user)``; either may be None."""
        if not self.path.exists():
            return None, None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None, None
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed session file %s", self.path)
            return None, None
        token = raw.get("token") or None
        user = raw.get("user") or None
        return token, user

    def save(self, token: str, user: Dict[str, Any]) -> None:
        self._atomic_write({"token": token, "user": user})

    def update_user(self, user: Dict[str, Any]) -> None:
        token, _ = self.load()
        if token:
            self.save(token, user)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
