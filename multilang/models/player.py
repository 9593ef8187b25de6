"""
Localized player record.

One record per user identifier. A record is either absent (the default locale
applies) or fully populated; locale changes replace the record, never merge.
"""

import time
from dataclasses import dataclass, field
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LocalizedPlayer(BaseModel):
    """Locale assigned to a single user."""

    model_config = ConfigDict(frozen=True)

    uuid: UUID = Field(..., description="Immutable 128-bit user identifier")
    locale: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Free-form locale tag (e.g. en_US, it)",
    )

    @field_validator("locale", mode="before")
    @classmethod
    def validate_locale(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank locales."""
        if not isinstance(v, str):
            raise ValueError("locale must be a string")
        v = v.strip()
        if not v:
            raise ValueError("locale cannot be blank")
        return v

    def with_locale(self, locale: str) -> "LocalizedPlayer":
        """Return a new record for the same user with a different locale."""
        return LocalizedPlayer(uuid=self.uuid, locale=locale)


@dataclass
class CacheEntry:
    """Cached record plus bookkeeping. Never leaves the cache."""

    record: LocalizedPlayer
    loaded_at: float = field(default_factory=time.monotonic)
    last_access: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_access = time.monotonic()

    def idle_for(self, now: float | None = None) -> float:
        """Seconds since the entry was last read or written."""
        return (now if now is not None else time.monotonic()) - self.last_access
