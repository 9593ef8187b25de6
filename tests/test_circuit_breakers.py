"""
Tests for storage circuit breakers and connect retries.
"""

import sqlite3
from uuid import uuid4

import pytest

from multilang.database.manager import DatabaseManager
from multilang.database.schema import PLAYERS_TABLE, SQLITE
from multilang.exceptions import DatabaseClosedError, StorageUnavailableError
from multilang.resilience.circuit_breakers import (
    call_with_breaker,
    create_storage_breaker,
    with_retry,
)
from multilang.storage.backends.base import InstallContext
from multilang.storage.backends.postgres import PostgresBackend
from multilang.storage.repository import PlayerRepository


def test_breaker_opens_after_repeated_failures(caplog):
    breaker = create_storage_breaker(name="PostgreSQL", fail_max=2, reset_timeout=60)

    def failing():
        raise ConnectionError("server closed the connection unexpectedly")

    with pytest.raises(ConnectionError):
        call_with_breaker(breaker, failing)

    # The second failure trips the circuit
    with pytest.raises(StorageUnavailableError, match="circuit breaker open"):
        call_with_breaker(breaker, failing)

    with pytest.raises(StorageUnavailableError):
        call_with_breaker(breaker, lambda: "never called")

    assert "Circuit breaker OPENED: PostgreSQL" in caplog.text


def test_breaker_passes_results_through():
    breaker = create_storage_breaker(name="PostgreSQL")

    assert call_with_breaker(breaker, lambda a, b: a + b, 2, 3) == 5


def test_excluded_errors_do_not_trip_breaker():
    breaker = create_storage_breaker(name="PostgreSQL", fail_max=1, exclude=(KeyError,))

    def missing():
        raise KeyError("uuid")

    for _ in range(3):
        with pytest.raises(KeyError):
            call_with_breaker(breaker, missing)

    assert call_with_breaker(breaker, lambda: "ok") == "ok"


def test_retry_stops_after_max_attempts():
    attempts = []

    @with_retry(max_attempts=3, min_wait=0, max_wait=0, exceptions=(ConnectionError,))
    def connect():
        attempts.append(1)
        raise ConnectionError("connection refused")

    with pytest.raises(ConnectionError):
        connect()

    assert len(attempts) == 3


def test_retry_ignores_other_errors():
    attempts = []

    @with_retry(max_attempts=3, min_wait=0, max_wait=0, exceptions=(ConnectionError,))
    def connect():
        attempts.append(1)
        raise ValueError("bad dsn")

    with pytest.raises(ValueError):
        connect()

    assert len(attempts) == 1


def test_repository_calls_go_through_breaker(tmp_path, sample_player):
    connection = sqlite3.connect(str(tmp_path / "breaker.db"), check_same_thread=False)
    database = DatabaseManager([PLAYERS_TABLE], connection, SQLITE)
    database.ensure_schema()
    breaker = create_storage_breaker(name="SQLite", fail_max=1)
    repository = PlayerRepository(database, breaker=breaker)

    repository.save(sample_player)
    assert repository.load(sample_player.uuid) == sample_player

    database.close()

    # First failure opens the circuit; later calls fail fast
    with pytest.raises(StorageUnavailableError):
        repository.load(sample_player.uuid)
    with pytest.raises(StorageUnavailableError):
        repository.count()


def test_closed_database_does_not_trip_postgres_breaker(tmp_path, sqlite_settings):
    connection = sqlite3.connect(str(tmp_path / "retired.db"), check_same_thread=False)
    database = DatabaseManager([PLAYERS_TABLE], connection, SQLITE)
    database.ensure_schema()
    backend = PostgresBackend()
    backend.installed = True
    repository = backend.open_store(InstallContext(settings=sqlite_settings), database)

    database.close()

    # Calls racing a teardown see the closed manager, never an open circuit
    for _ in range(sqlite_settings.database.breaker_fail_max + 1):
        with pytest.raises(DatabaseClosedError):
            repository.load(uuid4())

    assert repository.breaker.current_state == "closed"
