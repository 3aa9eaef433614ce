"""Data models — channels read from the primary store and system records."""

from searchbroker.models.channel import Channel, ChannelSearchOptions, ChannelType
from searchbroker.models.system import SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE, System

__all__ = [
    "SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE",
    "Channel",
    "ChannelSearchOptions",
    "ChannelType",
    "System",
]
