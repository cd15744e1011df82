"""
Local UI state persisted to a small JSON file.

Holds what a browser would keep in local storage: theme, the notes
scratchpad, and which WBS items were already sent to the board. Loaded
once at init, written through on every change.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "theme": "dark",
    "notes": "",
    "wbs_added": [],
}

THEMES = ("dark", "light")


class LocalStateStore:
    """Key/value state backed by a JSON file (or memory only when path is None)."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path).expanduser() if path else None
        self._data: Dict[str, Any] = json.loads(json.dumps(DEFAULTS))
        self._load()

    def _load(self):
        if not self.path or not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
            return
        if isinstance(data, dict):
            self._data.update(data)

    def _save(self):
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            tmp.replace(self.path)
        except OSError as e:
            logger.error(f"Failed to write state file {self.path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()

    # ── Typed accessors ──────────────────────────────────────────────────────

    @staticmethod
    def theme_key(owner_id: Optional[str] = None) -> str:
        return f"theme:{owner_id}" if owner_id else "theme"

    @property
    def theme(self) -> str:
        return self.theme_for()

    def theme_for(self, owner_id: Optional[str] = None) -> str:
        theme = self._data.get(self.theme_key(owner_id))
        return theme if theme in THEMES else DEFAULTS["theme"]

    def set_theme(self, theme: str, owner_id: Optional[str] = None) -> bool:
        if theme not in THEMES:
            return False
        self.set(self.theme_key(owner_id), theme)
        return True

    def toggle_theme(self, owner_id: Optional[str] = None) -> str:
        new_theme = "light" if self.theme_for(owner_id) == "dark" else "dark"
        self.set(self.theme_key(owner_id), new_theme)
        return new_theme

    @property
    def notes(self) -> str:
        return str(self._data.get("notes") or "")

    def set_notes(self, text: str) -> None:
        self.set("notes", text or "")
