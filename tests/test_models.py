"""
Tests for the localized player record.
"""

from uuid import UUID

import pytest
from pydantic import ValidationError

from multilang.models.player import CacheEntry, LocalizedPlayer


def test_locale_is_stripped(player_id):
    record = LocalizedPlayer(uuid=player_id, locale="  it_IT \n")
    assert record.locale == "it_IT"


@pytest.mark.parametrize("locale", ["", "   ", "x" * 33])
def test_invalid_locale_rejected(player_id, locale):
    with pytest.raises(ValidationError):
        LocalizedPlayer(uuid=player_id, locale=locale)


def test_uuid_parsed_from_string():
    record = LocalizedPlayer(uuid="11111111-1111-1111-1111-111111111111", locale="en_US")
    assert record.uuid == UUID("11111111-1111-1111-1111-111111111111")


def test_record_is_immutable(sample_player):
    with pytest.raises(ValidationError):
        sample_player.locale = "de_DE"


def test_with_locale_replaces_whole_record(sample_player):
    updated = sample_player.with_locale("de_DE")

    assert updated.uuid == sample_player.uuid
    assert updated.locale == "de_DE"
    assert sample_player.locale == "en_US"


def test_json_round_trip(sample_player):
    restored = LocalizedPlayer.model_validate_json(sample_player.model_dump_json())
    assert restored == sample_player


def test_cache_entry_idle_time(sample_player):
    entry = CacheEntry(record=sample_player, loaded_at=0.0, last_access=0.0)

    assert entry.idle_for(now=30.0) == pytest.approx(30.0)
    entry.touch()
    assert entry.last_access > 0.0
