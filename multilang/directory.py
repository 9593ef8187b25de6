"""
Locale directory: the API the rest of the application talks to.

Combines the player cache (fast path) with the storage manager (durable path)
and drives the host lifecycle:

- start():    install the configured backend, start the maintenance task
- lookup():   cached locale, falling back to storage, then to the default
- assign():   write-through (storage first, cache after acknowledgement)
- reload():   switch backend without restarting; cache is reset on success
- shutdown(): stop tasks, close storage, reset cache, delete dump files

Concurrent calls for the same player are serialized by a per-player lock, so
a lookup never observes a half-finished assign and concurrent assigns settle
on the last writer in both storage and cache.
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from uuid import UUID

from pydantic import ValidationError

from multilang.cache.players import PlayersCache
from multilang.config import Settings, get_settings, reload_settings
from multilang.exceptions import NotReadyError, TeardownError
from multilang.models.player import LocalizedPlayer
from multilang.observability.logging import PlayerContext, configure_logging
from multilang.storage.manager import StorageManager
from multilang.storage.types import StorageType
from multilang.tasks import MaintenanceTask

logger = logging.getLogger(__name__)


class LocaleDirectory:
    """
    Per-player locale directory.

    Components are built once and passed in explicitly; nothing is looked up
    through a process-wide instance.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: PlayersCache | None = None,
        storage: StorageManager | None = None,
        settings_factory: Callable[[], Settings] | None = None,
    ):
        """
        Initialize locale directory.

        Args:
            settings: Configuration (defaults to get_settings())
            cache: Player cache (built from settings if omitted)
            storage: Storage manager (built from settings if omitted)
            settings_factory: Re-reads configuration on reload() without arguments
        """
        self.settings = settings or get_settings()
        self._settings_factory = settings_factory or reload_settings

        self.cache = cache or PlayersCache(
            cache_folder=self.settings.cache_folder,
            max_entries=self.settings.cache.max_entries,
        )
        self.storage = storage or StorageManager(self.settings)
        self.task = MaintenanceTask(
            self.tick,
            interval=self.settings.cache.refresh_interval_seconds,
            initial_delay=self.settings.cache.initial_delay_seconds,
            name="cache-maintenance",
        )

        self._player_locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._pending_tasks: set[asyncio.Task] = set()
        # Bumped on every successful reload; results fetched from an older
        # backend are not cached
        self._generation = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self.storage.ready

    @property
    def default_locale(self) -> str:
        return self.settings.default_locale

    def _lock_for(self, player_id: UUID) -> asyncio.Lock:
        lock = self._player_locks.get(player_id)
        if lock is None:
            lock = asyncio.Lock()
            self._player_locks[player_id] = lock
        return lock

    def _require_ready(self) -> None:
        if not self.storage.ready:
            raise NotReadyError("Locale directory is not ready")

    async def _fetch(self, player_id: UUID) -> LocalizedPlayer | None:
        """Spill file first, then storage. Caller holds the player lock."""
        generation = self._generation

        record = await asyncio.to_thread(self.cache.recover, player_id)
        if record is None:
            record = await self.storage.load(player_id)

        if record is not None and generation == self._generation:
            self.cache.put(player_id, record)
        return record

    # ------------------------------------------------------------------
    # Upstream API
    # ------------------------------------------------------------------

    def peek(self, player_id: UUID) -> str | None:
        """Cached locale without touching storage (None on a miss)."""
        record = self.cache.get(player_id)
        return record.locale if record else None

    async def lookup(self, player_id: UUID) -> str:
        """
        Locale for a player, or the default locale if none was assigned.

        Raises:
            NotReadyError: If storage is not installed yet
        """
        self._require_ready()

        async with self._lock_for(player_id):
            record = self.cache.get(player_id)
            if record is None:
                record = await self._fetch(player_id)

        return record.locale if record is not None else self.default_locale

    async def assign(self, player_id: UUID, locale: str) -> bool:
        """
        Set a player's locale (write-through).

        Returns:
            bool: True once storage acknowledged the write, False if the locale
                is invalid or the write failed

        Raises:
            NotReadyError: If storage is not installed yet
        """
        self._require_ready()

        with PlayerContext(player_id=str(player_id)):
            try:
                record = LocalizedPlayer(uuid=player_id, locale=locale)
            except ValidationError as e:
                logger.warning(f"Rejected locale {locale!r} for {player_id}: {e.errors()[0]['msg']}")
                return False

            async with self._lock_for(player_id):
                generation = self._generation
                try:
                    await self.storage.save(record)
                except NotReadyError:
                    raise
                except Exception as e:
                    logger.error(f"Failed to save locale for {player_id}: {e}")
                    return False

                if generation == self._generation:
                    self.cache.put(player_id, record)

            logger.info(f"Locale of {player_id} set to {record.locale}")
            return True

    async def remove(self, player_id: UUID) -> bool:
        """
        Delete a player's record from storage and cache.

        Returns:
            bool: True if a stored record was deleted
        """
        self._require_ready()

        async with self._lock_for(player_id):
            try:
                deleted = await self.storage.delete(player_id)
            except NotReadyError:
                raise
            except Exception as e:
                logger.error(f"Failed to delete locale for {player_id}: {e}")
                return False
            await asyncio.to_thread(self.cache.remove, player_id)

        return deleted

    def prefetch(self, player_id: UUID) -> asyncio.Task:
        """
        Load a player's record into the cache in the background (e.g. on join).

        The returned task resolves to the record or None; failures are logged,
        not raised.
        """
        task = asyncio.create_task(self._prefetch(player_id), name=f"prefetch-{player_id}")
        # Track task for graceful shutdown
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)
        return task

    async def _prefetch(self, player_id: UUID) -> LocalizedPlayer | None:
        try:
            self._require_ready()
            async with self._lock_for(player_id):
                record = self.cache.get(player_id)
                if record is None:
                    record = await self._fetch(player_id)
                return record
        except NotReadyError:
            logger.debug(f"Skipping prefetch of {player_id}: storage not ready")
        except Exception as e:
            logger.warning(f"Prefetch of {player_id} failed: {e}")
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> StorageType:
        """
        Install the configured backend and start the maintenance task.

        Errors propagate; on failure the directory stays not ready.
        """
        storage_type = await self.reload(self.settings)
        self.task.start()
        return storage_type

    async def reload(self, settings: Settings | None = None) -> StorageType:
        """
        Re-run backend selection and provisioning.

        Args:
            settings: Settings to apply (re-read from the environment if omitted)

        Raises:
            ReloadInProgressError, ConfigurationError, ProvisioningError, SchemaError:
                The previous backend and cache are left as they were
        """
        if settings is None:
            settings = self._settings_factory()
        else:
            settings.validate_configuration()

        storage_type = await self.storage.reload(settings=settings)

        self._generation += 1
        self.settings = settings
        self.cache.reset()
        # Dump files belong to the previous backend's data
        try:
            await asyncio.to_thread(self.cache.clear_spill_files)
        except TeardownError as e:
            logger.warning(str(e))

        logger.info(f"Locale directory reloaded with {storage_type.value} storage")
        return storage_type

    async def tick(self) -> None:
        """
        Maintenance run: spill idle entries, refresh recently used ones.

        Refreshing picks up changes written to shared storage by other
        processes.
        """
        spilled = await asyncio.to_thread(self.cache.spill_idle, self.settings.cache.idle_seconds)

        refreshed = 0
        if self.storage.ready:
            batch = self.settings.cache.refresh_batch_size
            candidates = self.cache.keys()[-batch:] if batch else []
            for player_id in candidates:
                async with self._lock_for(player_id):
                    cached = self.cache.peek(player_id)
                    if cached is None:
                        continue
                    generation = self._generation
                    record = await self.storage.load(player_id)
                    if generation != self._generation:
                        break
                    if record is None:
                        await asyncio.to_thread(self.cache.remove, player_id)
                        refreshed += 1
                    elif record != cached:
                        self.cache.put(player_id, record)
                        refreshed += 1

        logger.debug(f"Cache maintenance: {spilled} spilled, {refreshed} refreshed")

    async def _drain_pending(self, timeout: float = 10.0) -> None:
        if not self._pending_tasks:
            return
        logger.info(f"Waiting for {len(self._pending_tasks)} pending prefetch tasks...")
        done, pending = await asyncio.wait(self._pending_tasks, timeout=timeout)
        if pending:
            logger.warning(f"Timeout reached, cancelling {len(pending)} pending tasks")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """
        Stop background work, close storage, reset the cache and delete dump files.

        Every step runs even if an earlier one failed.
        """
        logger.info("=== Locale directory shutting down ===")

        await self.task.stop()

        try:
            await self._drain_pending()
        except Exception as e:
            logger.warning(f"Error while waiting for pending tasks: {e}")

        await self.storage.close()

        logger.info("Cleaning cache..")
        self._generation += 1
        self.cache.reset()

        try:
            await asyncio.to_thread(self.cache.clear_spill_files)
        except TeardownError as e:
            logger.warning(str(e))

        logger.info("=== Shutdown complete ===")


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[LocaleDirectory]:
    """
    Run a locale directory for the duration of the block.

    Usage:
        async with lifespan(settings) as directory:
            await directory.assign(player_id, "it_IT")
    """
    directory = LocaleDirectory(settings=settings)
    configure_logging(directory.settings.logging)
    try:
        await directory.start()
        yield directory
    finally:
        await directory.shutdown()
