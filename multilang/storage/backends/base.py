"""
Common contract for storage backends.

A backend knows how to make itself ready (install) and how to hand out the
record store the StorageManager reads and writes through. Provisioning runs in
a worker thread so the event loop is never blocked; the caller awaits
install() and only continues (connection, schema) once it returned without
raising.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import UUID

from multilang.config import Settings
from multilang.database.manager import DatabaseManager
from multilang.database.schema import Dialect
from multilang.exceptions import ConfigurationError, ProvisioningError
from multilang.models.player import LocalizedPlayer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallContext:
    """Settings snapshot a backend is installed against."""

    settings: Settings

    @property
    def data_folder(self) -> Path:
        return self.settings.data_folder


class RecordStore(ABC):
    """Durable uuid -> record storage. Methods block; call them off the event loop."""

    @abstractmethod
    def load(self, player_id: UUID) -> LocalizedPlayer | None:
        ...

    @abstractmethod
    def save(self, record: LocalizedPlayer) -> None:
        ...

    @abstractmethod
    def delete(self, player_id: UUID) -> bool:
        ...

    @abstractmethod
    def count(self) -> int:
        ...

    def close(self) -> None:
        """Release resources owned by the store itself (not the database manager)."""
        return None


class StorageBackend(ABC):
    """
    One storage variant.

    Subclasses implement _provision() (blocking) and open_store(). Relational
    variants also set `dialect` and implement create_connection().
    """

    name: str = "backend"
    relational: bool = False
    dialect: Dialect | None = None

    def __init__(self):
        self.installed = False

    async def install(self, context: InstallContext) -> None:
        """
        Provision the backend in a worker thread.

        Raises:
            ConfigurationError: If required settings are missing
            ProvisioningError: If the backend could not be made ready
        """
        logger.info(f"Installing {self.name} storage..")
        try:
            await asyncio.to_thread(self._provision, context)
        except (ConfigurationError, ProvisioningError):
            raise
        except Exception as e:
            raise ProvisioningError(f"Unable to install {self.name} storage: {e}") from e

        self.installed = True
        logger.info(f"{self.name} storage installed")

    @abstractmethod
    def _provision(self, context: InstallContext) -> None:
        """Blocking provisioning work (create files, load drivers, probe servers)."""
        ...

    def create_connection(self, context: InstallContext) -> Any:
        """Open the DB-API connection handed to the DatabaseManager."""
        raise NotImplementedError(f"{self.name} storage is not relational")

    @abstractmethod
    def open_store(
        self, context: InstallContext, database: DatabaseManager | None = None
    ) -> RecordStore:
        """Build the record store once installed (and, if relational, schema applied)."""
        ...

    def _require_installed(self) -> None:
        if not self.installed:
            raise ProvisioningError(f"{self.name} storage is not installed")
