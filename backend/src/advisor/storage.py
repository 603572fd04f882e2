from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Protocol
import copy
import json
import logging

from src.core.errors import PersistenceError

logger = logging.getLogger(__name__)

CONVERSATIONS = "conversations"
USER_PROFILES = "user_profiles"


class ConversationStore(Protocol):
    """Key-value store of named records, each a mapping of user id to value."""

    def read(self, name: str) -> Dict[str, Any]:
        ...

    def write(self, name: str, data: Dict[str, Any]) -> None:
        ...


class JsonFileStore:
    """One pretty-printed JSON file per record inside ``data_dir``."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)

    def _path(self, name: str) -> Path:
        safe_name = name.replace("..", "").replace("/", "_").replace("\\", "_")
        return self.data_dir / f"{safe_name}.json"

    def read(self, name: str) -> Dict[str, Any]:
        path = self._path(name)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"{path} does not hold a JSON object")
        return data

    def write(self, name: str, data: Dict[str, Any]) -> None:
        path = self._path(name)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Could not write {path}: {exc}") from exc


class InMemoryStore:
    """Process-local store. Keeps deep copies and counts writes per record."""

    def __init__(self, initial: Dict[str, Dict[str, Any]] | None = None) -> None:
        self.records: Dict[str, Dict[str, Any]] = copy.deepcopy(initial or {})
        self.writes: Dict[str, int] = {}

    def read(self, name: str) -> Dict[str, Any]:
        return copy.deepcopy(self.records.get(name, {}))

    def write(self, name: str, data: Dict[str, Any]) -> None:
        self.records[name] = copy.deepcopy(data)
        self.writes[name] = self.writes.get(name, 0) + 1
