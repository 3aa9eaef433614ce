"""Channel models — read-only view of channels in the primary store."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ChannelType(str, Enum):
    """Channel visibility type as stored by the primary store."""

    OPEN = "O"
    PRIVATE = "P"
    DIRECT = "D"
    GROUP = "G"


class Channel(BaseModel):
    """A channel as returned by the primary store's listing call.

    ``type`` is a plain string so that values this package does not know
    about yet still load; compare against ``ChannelType`` members.
    """

    id: str = Field(description="Unique channel identifier")
    type: str = Field(description="Visibility type, usually a ChannelType value")
    team_id: str = Field(default="", description="Owning team identifier")
    name: str = Field(default="", description="URL-safe channel name")
    display_name: str = Field(default="", description="Human-readable channel name")
    delete_at: int = Field(default=0, description="Archive timestamp in ms, 0 when live")


class ChannelSearchOptions(BaseModel):
    """Filters accepted by ``ChannelStore.get_all_channels``.

    There is no type filter; callers that care about the type must check it
    on each returned channel.
    """

    include_deleted: bool = Field(default=False, description="Include archived channels")
