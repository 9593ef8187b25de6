"""
Flat-file storage: a single JSON document mapping uuid -> locale.

Every write rewrites the document atomically (temp file + rename), so a crash
never leaves a half-written players file behind.
"""

import json
import logging
import os
import threading
from pathlib import Path
from uuid import UUID

from multilang.database.manager import DatabaseManager
from multilang.exceptions import ProvisioningError
from multilang.models.player import LocalizedPlayer
from multilang.storage.backends.base import InstallContext, RecordStore, StorageBackend

logger = logging.getLogger(__name__)

PLAYERS_FILE = "players.json"


def _read_document(path: Path) -> dict[str, str]:
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a JSON object")
    return {str(key): str(value) for key, value in data.items()}


class JsonFileStore(RecordStore):
    """In-memory view of players.json, persisted on every change."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()
        self._records: dict[str, str] = _read_document(path) if path.exists() else {}

    def _flush(self) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(self._records, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def load(self, player_id: UUID) -> LocalizedPlayer | None:
        with self._lock:
            locale = self._records.get(str(player_id))
        if locale is None:
            return None
        return LocalizedPlayer(uuid=player_id, locale=locale)

    def save(self, record: LocalizedPlayer) -> None:
        key = str(record.uuid)
        with self._lock:
            previous = self._records.get(key)
            self._records[key] = record.locale
            try:
                self._flush()
            except OSError:
                # Keep memory and disk in agreement
                if previous is None:
                    self._records.pop(key, None)
                else:
                    self._records[key] = previous
                raise

    def delete(self, player_id: UUID) -> bool:
        key = str(player_id)
        with self._lock:
            if key not in self._records:
                return False
            previous = self._records.pop(key)
            try:
                self._flush()
            except OSError:
                self._records[key] = previous
                raise
            return True

    def count(self) -> int:
        with self._lock:
            return len(self._records)


class JsonFileBackend(StorageBackend):
    """Flat-file storage variant."""

    name = "file"
    relational = False

    def _provision(self, context: InstallContext) -> None:
        path = context.data_folder / PLAYERS_FILE
        try:
            context.data_folder.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_text("{}", encoding="utf-8")
                logger.info(f"Created {path}")
            else:
                _read_document(path)
        except (OSError, ValueError) as e:
            raise ProvisioningError(f"Unable to prepare {path}: {e}") from e

    def open_store(
        self, context: InstallContext, database: DatabaseManager | None = None
    ) -> RecordStore:
        self._require_installed()
        return JsonFileStore(context.data_folder / PLAYERS_FILE)
