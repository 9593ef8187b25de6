"""
Tests for the in-process player cache and its spill files.

Tests:
- get/put/remove/reset semantics
- LRU eviction into spill files
- Recovery of spilled entries, corrupt spill files
- Spill files from before a reset are never recovered
- Cleanup only touches .json files
"""

import time
from pathlib import Path
from uuid import uuid4

import pytest

from multilang.cache.players import PlayersCache, SpilledEntry
from multilang.models.player import LocalizedPlayer


def _record(locale: str = "en_US") -> LocalizedPlayer:
    return LocalizedPlayer(uuid=uuid4(), locale=locale)


def test_get_miss_returns_none(players_cache, player_id):
    assert players_cache.get(player_id) is None
    assert players_cache.stats()["misses"] == 1


def test_put_then_get(players_cache, sample_player):
    players_cache.put(sample_player.uuid, sample_player)

    assert players_cache.get(sample_player.uuid) == sample_player
    assert sample_player.uuid in players_cache
    assert len(players_cache) == 1


def test_put_overwrites(players_cache, sample_player):
    players_cache.put(sample_player.uuid, sample_player)
    players_cache.put(sample_player.uuid, sample_player.with_locale("fr_FR"))

    assert players_cache.get(sample_player.uuid).locale == "fr_FR"
    assert len(players_cache) == 1


def test_put_rejects_mismatched_key(players_cache, sample_player, other_player_id):
    with pytest.raises(ValueError):
        players_cache.put(other_player_id, sample_player)


def test_remove(players_cache, sample_player):
    players_cache.put(sample_player.uuid, sample_player)

    assert players_cache.remove(sample_player.uuid) is True
    assert players_cache.get(sample_player.uuid) is None
    assert players_cache.remove(sample_player.uuid) is False


def test_reset_clears_everything(players_cache):
    records = [_record() for _ in range(3)]
    for record in records:
        players_cache.put(record.uuid, record)

    players_cache.reset()

    assert len(players_cache) == 0
    for record in records:
        assert players_cache.get(record.uuid) is None


def test_lru_eviction_spills_oldest_entry(players_cache, cache_folder):
    first, second, third, fourth = (_record(f"l{i}") for i in range(4))
    for record in (first, second, third):
        players_cache.put(record.uuid, record)

    # Touch the first so the second becomes least recently used
    players_cache.get(first.uuid)
    players_cache.put(fourth.uuid, fourth)

    assert len(players_cache) == 3
    assert players_cache.get(second.uuid) is None
    assert (cache_folder / f"{second.uuid}.json").is_file()
    assert players_cache.stats()["evictions"] == 1


def test_recover_spilled_entry(players_cache, cache_folder):
    records = [_record(f"l{i}") for i in range(4)]
    for record in records:
        players_cache.put(record.uuid, record)

    evicted = records[0]
    recovered = players_cache.recover(evicted.uuid)

    assert recovered == evicted
    # recover() does not re-insert
    assert players_cache.get(evicted.uuid) is None


def test_put_drops_stale_spill_file(players_cache, cache_folder):
    records = [_record(f"l{i}") for i in range(4)]
    for record in records:
        players_cache.put(record.uuid, record)
    evicted = records[0]
    assert (cache_folder / f"{evicted.uuid}.json").exists()

    players_cache.put(evicted.uuid, evicted.with_locale("de_DE"))

    assert not (cache_folder / f"{evicted.uuid}.json").exists()


def test_recover_missing_returns_none(players_cache, player_id):
    assert players_cache.recover(player_id) is None


def test_recover_discards_corrupt_file(players_cache, cache_folder, player_id):
    path = cache_folder / f"{player_id}.json"
    path.write_text("{not json", encoding="utf-8")

    assert players_cache.recover(player_id) is None
    assert not path.exists()


def test_recover_discards_file_for_other_player(players_cache, cache_folder, player_id):
    stranger = _record("it_IT")
    path = cache_folder / f"{player_id}.json"
    spilled = SpilledEntry(epoch=players_cache._epoch, record=stranger)
    path.write_text(spilled.model_dump_json(), encoding="utf-8")

    assert players_cache.recover(player_id) is None
    assert not path.exists()


def test_reset_retires_spill_files(players_cache, cache_folder):
    records = [_record(f"l{i}") for i in range(4)]
    for record in records:
        players_cache.put(record.uuid, record)
    evicted = records[0]

    players_cache.reset()

    # Still on disk until cleared, but never read back
    assert (cache_folder / f"{evicted.uuid}.json").is_file()
    assert players_cache.recover(evicted.uuid) is None


def test_eviction_written_after_reset_is_not_recovered(players_cache, cache_folder, monkeypatch):
    records = [_record(f"l{i}") for i in range(3)]
    for record in records:
        players_cache.put(record.uuid, record)

    write_spill_file = players_cache._write_spill_file

    def reset_then_write(player_id, record, epoch):
        players_cache.reset()
        return write_spill_file(player_id, record, epoch)

    monkeypatch.setattr(players_cache, "_write_spill_file", reset_then_write)
    newcomer = _record()
    players_cache.put(newcomer.uuid, newcomer)

    evicted = records[0]
    assert (cache_folder / f"{evicted.uuid}.json").is_file()
    assert players_cache.recover(evicted.uuid) is None


def test_spill_keeps_entry_in_memory(players_cache, cache_folder, sample_player):
    players_cache.put(sample_player.uuid, sample_player)

    assert players_cache.spill(sample_player.uuid) is True
    assert (cache_folder / f"{sample_player.uuid}.json").is_file()
    assert players_cache.get(sample_player.uuid) == sample_player


def test_spill_idle_evicts_only_idle_entries(players_cache, cache_folder):
    idle, fresh = _record("idle"), _record("fresh")
    players_cache.put(idle.uuid, idle)
    players_cache.put(fresh.uuid, fresh)

    # Age the idle entry
    players_cache._entries[idle.uuid].last_access = time.monotonic() - 1000

    assert players_cache.spill_idle(max_idle_seconds=60) == 1
    assert players_cache.get(idle.uuid) is None
    assert players_cache.get(fresh.uuid) == fresh
    assert (cache_folder / f"{idle.uuid}.json").is_file()


def test_clear_spill_files_only_deletes_json(players_cache, cache_folder):
    for record in (_record() for _ in range(5)):
        players_cache.put(record.uuid, record)
    keep_txt = cache_folder / "notes.txt"
    keep_txt.write_text("keep me", encoding="utf-8")
    keep_dir = cache_folder / "nested.json"
    keep_dir.mkdir()

    deleted = players_cache.clear_spill_files()

    assert deleted == 2
    assert keep_txt.exists()
    assert keep_dir.is_dir()
    assert not list(cache_folder.glob("*.json.tmp"))
    assert [p for p in cache_folder.iterdir() if p.is_file() and p.suffix == ".json"] == []


def test_memory_only_cache_without_folder(sample_player):
    cache = PlayersCache(cache_folder=None, max_entries=1)
    cache.put(sample_player.uuid, sample_player)

    assert cache.spill(sample_player.uuid) is False

    other = _record()
    cache.put(other.uuid, other)

    assert cache.get(sample_player.uuid) is None
    assert cache.recover(sample_player.uuid) is None
    assert cache.clear_spill_files() == 0


def test_unusable_cache_folder_falls_back_to_memory(tmp_path: Path, sample_player, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    cache = PlayersCache(cache_folder=blocker / "cache", max_entries=10)
    cache.put(sample_player.uuid, sample_player)

    assert cache.cache_folder is None
    assert cache.get(sample_player.uuid) == sample_player
    assert "Unable to create cache folder" in caplog.text


def test_invalid_max_entries():
    with pytest.raises(ValueError):
        PlayersCache(max_entries=0)


def test_peek_does_not_refresh_recency(players_cache):
    first, second, third, fourth = (_record(f"l{i}") for i in range(4))
    for record in (first, second, third):
        players_cache.put(record.uuid, record)

    assert players_cache.peek(first.uuid) == first
    players_cache.put(fourth.uuid, fourth)

    # first was only peeked, so it is still the eviction candidate
    assert players_cache.peek(first.uuid) is None
    assert players_cache.stats()["hits"] == 0
