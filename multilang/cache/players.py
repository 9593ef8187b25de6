"""
In-process player cache with JSON spill files.

The cache is a bounded LRU map of uuid -> LocalizedPlayer. Reads never touch
the disk: a miss means "ask the storage manager". Entries pushed out of memory
(LRU eviction or idle timeout) are written to `<cache_dir>/<uuid>.json` so they
can be recovered without a storage round trip; spill files are disposable
derived state and are deleted on shutdown.

Each spill file is stamped with the epoch it was written in. reset() starts a
new epoch, so files left over from before a reset are never read back, even
while they are still waiting to be deleted.
"""

import logging
import os
import threading
import uuid
from pathlib import Path
from uuid import UUID

from cachetools import Cache, LRUCache
from pydantic import BaseModel, ValidationError

from multilang.exceptions import TeardownError
from multilang.models.player import CacheEntry, LocalizedPlayer

logger = logging.getLogger(__name__)

SPILL_SUFFIX = ".json"


class SpilledEntry(BaseModel):
    """On-disk form of an evicted entry."""

    epoch: str
    record: LocalizedPlayer


def _new_epoch() -> str:
    return uuid.uuid4().hex


class _SpillingLRUCache(LRUCache):
    """LRUCache that remembers what it evicted so the caller can spill it."""

    def __init__(self, maxsize: int):
        super().__init__(maxsize=maxsize)
        self.evicted: list[tuple[UUID, CacheEntry]] = []

    def popitem(self):
        key, value = super().popitem()
        self.evicted.append((key, value))
        return key, value

    def peek(self, key: UUID) -> CacheEntry | None:
        # Cache.__getitem__ skips the LRU bookkeeping
        return Cache.__getitem__(self, key) if key in self else None

    def snapshot(self) -> list[tuple[UUID, CacheEntry]]:
        return [(key, Cache.__getitem__(self, key)) for key in list(self)]

    def drain_evicted(self) -> list[tuple[UUID, CacheEntry]]:
        evicted, self.evicted = self.evicted, []
        return evicted


class PlayersCache:
    """
    Bounded uuid -> LocalizedPlayer cache.

    Thread-safe: storage work runs in worker threads and results are inserted
    with put() from there.
    """

    def __init__(self, cache_folder: Path | None = None, max_entries: int = 1000):
        """
        Initialize player cache.

        Args:
            cache_folder: Directory for spill files (None = memory only)
            max_entries: Maximum entries kept in memory before LRU eviction
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")

        self.max_entries = max_entries
        self.cache_folder: Path | None = None
        self._entries = _SpillingLRUCache(maxsize=max_entries)
        self._lock = threading.RLock()
        self._epoch = _new_epoch()

        self.hits = 0
        self.misses = 0
        self.evictions = 0

        if cache_folder is not None:
            try:
                cache_folder.mkdir(parents=True, exist_ok=True)
                self.cache_folder = cache_folder
            except OSError as e:
                logger.warning(
                    f"Unable to create cache folder {cache_folder}, dump files won't be saved: {e}"
                )

    # ------------------------------------------------------------------
    # Memory operations (never block on I/O)
    # ------------------------------------------------------------------

    def get(self, player_id: UUID) -> LocalizedPlayer | None:
        """Return the cached record, or None on a miss."""
        with self._lock:
            entry = self._entries.get(player_id)
            if entry is None:
                self.misses += 1
                return None
            entry.touch()
            self.hits += 1
            return entry.record

    def peek(self, player_id: UUID) -> LocalizedPlayer | None:
        """Cached record without updating recency or hit counters."""
        with self._lock:
            entry = self._entries.peek(player_id)
            return entry.record if entry is not None else None

    def put(self, player_id: UUID, record: LocalizedPlayer) -> None:
        """Insert or overwrite a record, evicting the least recently used if full."""
        if record.uuid != player_id:
            raise ValueError(f"Record uuid {record.uuid} does not match key {player_id}")

        with self._lock:
            self._entries[player_id] = CacheEntry(record=record)
            evicted = self._entries.drain_evicted()
            self.evictions += len(evicted)
            epoch = self._epoch

        # A stale spill file must never shadow a newer in-memory value
        self._delete_spill_file(player_id)

        for old_id, old_entry in evicted:
            self._write_spill_file(old_id, old_entry.record, epoch)

    def remove(self, player_id: UUID) -> bool:
        """Drop an entry and its spill file. Returns True if it was in memory."""
        with self._lock:
            removed = self._entries.pop(player_id, None) is not None
        self._delete_spill_file(player_id)
        return removed

    def reset(self) -> None:
        """Clear every in-memory entry without spilling and retire existing spill files."""
        with self._lock:
            count = len(self._entries)
            self._entries = _SpillingLRUCache(maxsize=self.max_entries)
            self._epoch = _new_epoch()
        logger.info(f"Player cache reset ({count} entries dropped)")

    def contains(self, player_id: UUID) -> bool:
        with self._lock:
            return player_id in self._entries

    def keys(self) -> list[UUID]:
        """Cached identifiers, most recently used last."""
        with self._lock:
            entries = self._entries.snapshot()
        return [player_id for player_id, _ in sorted(entries, key=lambda item: item[1].last_access)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, player_id: object) -> bool:
        return isinstance(player_id, UUID) and self.contains(player_id)

    # ------------------------------------------------------------------
    # Spill files (blocking; callers run these off the event loop)
    # ------------------------------------------------------------------

    def spill_path(self, player_id: UUID) -> Path | None:
        if self.cache_folder is None:
            return None
        return self.cache_folder / f"{player_id}{SPILL_SUFFIX}"

    def spill(self, player_id: UUID) -> bool:
        """Write a cached entry to its spill file without evicting it."""
        with self._lock:
            entry = self._entries.peek(player_id)
            epoch = self._epoch
        if entry is None:
            return False
        return self._write_spill_file(player_id, entry.record, epoch)

    def spill_idle(self, max_idle_seconds: float) -> int:
        """
        Evict entries idle longer than max_idle_seconds into spill files.

        Returns:
            int: Number of entries evicted
        """
        spilled: list[tuple[UUID, LocalizedPlayer]] = []
        with self._lock:
            for player_id, entry in self._entries.snapshot():
                if entry.idle_for() > max_idle_seconds:
                    del self._entries[player_id]
                    spilled.append((player_id, entry.record))
            epoch = self._epoch

        for player_id, record in spilled:
            self._write_spill_file(player_id, record, epoch)

        if spilled:
            logger.debug(f"Spilled {len(spilled)} idle cache entries")
        return len(spilled)

    def recover(self, player_id: UUID) -> LocalizedPlayer | None:
        """
        Read a spilled entry back from disk.

        Corrupt files are deleted and treated as absent. Files written before the
        last reset() are ignored. The recovered record is not re-inserted; the
        caller decides whether to put() it.
        """
        path = self.spill_path(player_id)
        if path is None or not path.is_file():
            return None

        try:
            spilled = SpilledEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Discarding unreadable spill file {path.name}: {e}")
            self._delete_spill_file(player_id)
            return None

        with self._lock:
            current = spilled.epoch == self._epoch
        if not current:
            logger.debug(f"Ignoring spill file {path.name} from before the last reset")
            return None

        record = spilled.record
        if record.uuid != player_id:
            logger.warning(f"Spill file {path.name} holds record for {record.uuid}, discarding")
            self._delete_spill_file(player_id)
            return None

        return record

    def clear_spill_files(self) -> int:
        """
        Delete spill files from the cache folder.

        Only regular files ending in .json are removed; anything else in the
        folder is left alone.

        Returns:
            int: Number of files deleted

        Raises:
            TeardownError: If the cache folder cannot be listed
        """
        if self.cache_folder is None or not self.cache_folder.is_dir():
            return 0

        try:
            paths = list(self.cache_folder.iterdir())
        except OSError as e:
            raise TeardownError(f"Unable to list cache folder {self.cache_folder}: {e}") from e

        deleted = 0
        for path in paths:
            if not path.is_file() or not path.name.endswith(SPILL_SUFFIX):
                continue
            try:
                path.unlink()
                deleted += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Unable to delete cache file {path.name}: {e}")

        if deleted:
            logger.info(f"Deleted {deleted} cache dump files")
        return deleted

    def _write_spill_file(self, player_id: UUID, record: LocalizedPlayer, epoch: str) -> bool:
        path = self.spill_path(player_id)
        if path is None:
            return False

        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            tmp_path.write_text(
                SpilledEntry(epoch=epoch, record=record).model_dump_json(), encoding="utf-8"
            )
            os.replace(tmp_path, path)
            return True
        except OSError as e:
            logger.warning(f"Unable to write cache dump for {player_id}: {e}")
            tmp_path.unlink(missing_ok=True)
            return False

    def _delete_spill_file(self, player_id: UUID) -> None:
        path = self.spill_path(player_id)
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Unable to delete cache dump for {player_id}: {e}")

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
            }
