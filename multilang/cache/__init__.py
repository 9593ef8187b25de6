"""In-process player cache with disk spill files."""

from multilang.cache.players import SPILL_SUFFIX, PlayersCache

__all__ = ["PlayersCache", "SPILL_SUFFIX"]
