"""System key/value records."""

from __future__ import annotations

from pydantic import BaseModel, Field

SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE = "post channel-type backfill complete"


class System(BaseModel):
    """A row of the primary store's generic system table."""

    name: str = Field(description="Record key")
    value: str = Field(default="", description="Record value")
