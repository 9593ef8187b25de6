"""
Storage manager: selects, provisions and fronts the active storage backend.

Reload sequence:
    parse `storage` -> install backend -> (relational) open connection ->
    ensure schema -> tear down previous backend -> activate new one

Nothing is swapped until the new backend is fully ready, so a failed reload
leaves the previous backend serving reads and writes. Reloads are serialized;
a second reload while one is in flight is rejected. close() cancels an
in-flight reload instead of waiting for a stalled install.
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from multilang.config import Settings
from multilang.database.manager import DatabaseManager
from multilang.database.schema import PLAYERS_TABLE
from multilang.exceptions import (
    ConfigurationError,
    NotReadyError,
    ProvisioningError,
    ReloadInProgressError,
)
from multilang.models.player import LocalizedPlayer
from multilang.observability.logging import OperationContext
from multilang.storage.backends.base import InstallContext, RecordStore, StorageBackend
from multilang.storage.types import StorageType

logger = logging.getLogger(__name__)

# How long close() waits for a cancelled reload to release its resources
RELOAD_CANCEL_TIMEOUT = 5.0


@dataclass
class ActiveStorage:
    """Everything belonging to one installed backend."""

    storage_type: StorageType
    backend: StorageBackend
    store: RecordStore
    database: DatabaseManager | None = None


class StorageManager:
    """
    Uniform record access over whichever backend is installed.

    Usage:
        manager = StorageManager(settings)
        await manager.reload()              # uses settings.storage
        await manager.save(LocalizedPlayer(uuid=player_id, locale="it_IT"))
        record = await manager.load(player_id)
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._active: ActiveStorage | None = None
        self._reload_lock = asyncio.Lock()
        self._reload_task: asyncio.Task | None = None
        self._cancelled_reload: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._active is not None

    @property
    def reloading(self) -> bool:
        return self._reload_lock.locked()

    @property
    def storage_type(self) -> StorageType | None:
        return self._active.storage_type if self._active else None

    @property
    def database(self) -> DatabaseManager | None:
        """Database manager of the active backend (None for flat-file storage)."""
        return self._active.database if self._active else None

    def _require_active(self) -> ActiveStorage:
        active = self._active
        if active is None:
            raise NotReadyError("Storage is not ready yet")
        return active

    # ------------------------------------------------------------------
    # Backend selection
    # ------------------------------------------------------------------

    async def reload(self, storage: str | None = None, settings: Settings | None = None) -> StorageType:
        """
        Select and install a backend, replacing the current one on success.

        Args:
            storage: Backend name (defaults to settings.storage)
            settings: Settings to install against (defaults to the current ones)

        Returns:
            StorageType: The newly active backend

        Raises:
            ReloadInProgressError: If another reload is still running
            ConfigurationError: Unknown backend name or missing settings
            ProvisioningError: Backend could not be installed, or close() cancelled the reload
            SchemaError: Schema could not be applied
        """
        if self._reload_lock.locked():
            raise ReloadInProgressError("A storage reload is already in progress")

        async with self._reload_lock:
            settings = settings or self.settings
            storage_type = StorageType.parse(storage if storage is not None else settings.storage)

            # close() cancels this task, never the caller
            task = asyncio.create_task(
                self._install(storage_type, settings), name=f"storage-reload-{storage_type.value}"
            )
            self._reload_task = task
            try:
                await task
            except asyncio.CancelledError:
                if self._cancelled_reload is not task or asyncio.current_task().cancelling():
                    raise
                raise ProvisioningError(
                    f"{storage_type.value} reload cancelled: storage is closing"
                ) from None
            finally:
                self._reload_task = None

        logger.info(f"Storage ready: {storage_type.value}")
        return storage_type

    async def _install(self, storage_type: StorageType, settings: Settings) -> None:
        context = InstallContext(settings=settings)

        with OperationContext("storage_reload", storage_type=storage_type.value):
            candidate = await self._prepare(storage_type, context)

            previous = self._active
            if previous is not None:
                # Previous resources are released before the new backend goes live
                self._active = None
                try:
                    await asyncio.shield(asyncio.to_thread(self._teardown, previous))
                except asyncio.CancelledError:
                    await asyncio.to_thread(self._teardown, candidate)
                    raise

            self._active = candidate
            self.settings = settings

    async def _prepare(self, storage_type: StorageType, context: InstallContext) -> ActiveStorage:
        """Install a backend and build its store without touching the active one."""
        backend = storage_type.create_backend()
        await backend.install(context)

        database: DatabaseManager | None = None
        try:
            if backend.relational:
                connection = await asyncio.to_thread(backend.create_connection, context)
                if connection is None:
                    raise ConfigurationError("Connection cannot be null")

                database = DatabaseManager([PLAYERS_TABLE], connection, backend.dialect)
                await asyncio.to_thread(database.ensure_schema)

            store = await asyncio.to_thread(backend.open_store, context, database)

        except BaseException:
            if database is not None:
                await asyncio.to_thread(database.close)
            raise

        return ActiveStorage(
            storage_type=storage_type,
            backend=backend,
            store=store,
            database=database,
        )

    @staticmethod
    def _teardown(active: ActiveStorage) -> None:
        """Release a backend's resources. Logs failures, never raises."""
        try:
            active.store.close()
        except Exception as e:
            logger.warning(f"Failed to close {active.storage_type.value} store: {e}")

        if active.database is not None:
            active.database.close()

    async def close(self, timeout: float = RELOAD_CANCEL_TIMEOUT) -> None:
        """
        Tear down the active backend.

        An in-flight reload is cancelled rather than waited for, so a stalled
        install cannot block shutdown. If the reload does not unwind within
        `timeout` seconds it is abandoned and teardown continues.
        """
        task = self._reload_task
        if task is not None and not task.done():
            logger.warning("Cancelling in-flight storage reload")
            self._cancelled_reload = task
            task.cancel()
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                logger.warning(f"Storage reload still running after {timeout}s, abandoning it")

        active, self._active = self._active, None
        if active is None:
            return
        logger.info(f"Closing {active.storage_type.value} storage..")
        await asyncio.to_thread(self._teardown, active)

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    async def load(self, player_id: UUID) -> LocalizedPlayer | None:
        """
        Load a record from the active backend.

        Raises:
            NotReadyError: If no backend is installed
        """
        active = self._require_active()
        return await asyncio.to_thread(active.store.load, player_id)

    async def save(self, record: LocalizedPlayer) -> None:
        """
        Write a record to the active backend (replaces any existing one).

        Raises:
            NotReadyError: If no backend is installed
        """
        active = self._require_active()
        await asyncio.to_thread(active.store.save, record)

    async def delete(self, player_id: UUID) -> bool:
        """Delete a record. Returns False if there was none."""
        active = self._require_active()
        return await asyncio.to_thread(active.store.delete, player_id)

    async def count(self) -> int:
        active = self._require_active()
        return await asyncio.to_thread(active.store.count)
