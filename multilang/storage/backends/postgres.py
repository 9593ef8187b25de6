"""
Networked relational storage using PostgreSQL.

The psycopg2 driver is loaded during install; a missing driver fails the
install the same way a failed driver download would. Connections are retried
with exponential backoff, and store calls go through a circuit breaker so a
dead server fails lookups fast instead of stalling them.
"""

import importlib
import logging
from types import ModuleType
from typing import Any

from multilang.database.manager import DatabaseManager
from multilang.database.schema import POSTGRESQL
from multilang.exceptions import ConfigurationError, DatabaseClosedError, ProvisioningError
from multilang.resilience.circuit_breakers import create_storage_breaker, with_retry
from multilang.storage.backends.base import InstallContext, RecordStore, StorageBackend
from multilang.storage.repository import PlayerRepository

logger = logging.getLogger(__name__)

DRIVER_MODULE = "psycopg2"


class PostgresBackend(StorageBackend):
    """Networked relational storage variant."""

    name = "postgresql"
    relational = True
    dialect = POSTGRESQL

    def __init__(self):
        super().__init__()
        self._driver: ModuleType | None = None

    def _load_driver(self) -> ModuleType:
        if self._driver is None:
            try:
                self._driver = importlib.import_module(DRIVER_MODULE)
            except ImportError as e:
                raise ProvisioningError(
                    f"PostgreSQL driver '{DRIVER_MODULE}' is not available: {e}"
                ) from e
        return self._driver

    @staticmethod
    def _check_settings(context: InstallContext) -> None:
        database = context.settings.database
        missing = [
            name
            for name, value in (("host", database.host), ("name", database.name), ("user", database.user))
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"PostgreSQL storage requires database settings: {', '.join(missing)}"
            )

    def _connect(self, context: InstallContext) -> Any:
        driver = self._load_driver()
        database = context.settings.database

        @with_retry(
            max_attempts=database.connect_attempts,
            min_wait=0.5,
            max_wait=5,
            exceptions=(driver.OperationalError,),
        )
        def connect() -> Any:
            return driver.connect(
                host=database.host,
                port=database.port,
                dbname=database.name,
                user=database.user,
                password=database.password.get_secret_value(),
                connect_timeout=database.connect_timeout_seconds,
            )

        try:
            return connect()
        except driver.Error as e:
            raise ProvisioningError(
                f"Unable to connect to PostgreSQL at {database.host}:{database.port}: {e}"
            ) from e

    def _provision(self, context: InstallContext) -> None:
        self._check_settings(context)
        self._load_driver()

        # Probe the server so an unreachable database fails the install
        probe = self._connect(context)
        try:
            probe.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing probe connection: {e}")

    def create_connection(self, context: InstallContext) -> Any:
        self._require_installed()
        connection = self._connect(context)
        database = context.settings.database
        logger.info(f"Connected to PostgreSQL at {database.host}:{database.port}/{database.name}")
        return connection

    def open_store(
        self, context: InstallContext, database: DatabaseManager | None = None
    ) -> RecordStore:
        self._require_installed()
        if database is None:
            raise ConfigurationError("PostgreSQL storage requires a database manager")

        settings = context.settings.database
        breaker = create_storage_breaker(
            name="PostgreSQL",
            fail_max=settings.breaker_fail_max,
            reset_timeout=settings.breaker_reset_seconds,
            # Raised after teardown, not by the server
            exclude=(DatabaseClosedError,),
        )
        return PlayerRepository(database, breaker=breaker)
