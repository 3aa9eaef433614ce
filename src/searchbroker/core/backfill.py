"""Post channel-type backfill — One-time migration tagging indexed posts with their channel type.

The run is idempotent and restartable:
  1. A completion marker in the system table short-circuits every later run.
  2. Channels are read page by page from offset 0 and grouped by type.
  3. Each group is sent to the engine as one bulk patch, public before private.
  4. The marker is written only after every page and every patch succeeded.

There is no progress checkpoint. A failed run leaves no marker and the next
run scans everything again; re-tagging a post with the value it already has
changes nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from searchbroker.models.channel import Channel, ChannelSearchOptions, ChannelType
from searchbroker.models.system import SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE, System
from searchbroker.store.base import SystemNotFoundError

if TYPE_CHECKING:
    from searchbroker.engines.base.engine import SearchEngine
    from searchbroker.store.base import Store

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10000

# Partition order; other channel types carry no channel_type on posts.
BACKFILL_CHANNEL_TYPES: tuple[ChannelType, ...] = (ChannelType.OPEN, ChannelType.PRIVATE)


class BackfillState(str, Enum):
    """Lifecycle of a single backfill run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class BackfillError(Exception):
    """Base exception for backfill errors."""


class BackfillAbortedError(BackfillError):
    """Raised when a run stopped before writing the completion marker."""


class BackfillInProgressError(BackfillError):
    """Raised when a run is requested while another one is in flight."""


def partition_channels(channels: Sequence[Channel]) -> list[tuple[str, list[str]]]:
    """Group channel ids by type, in ``BACKFILL_CHANNEL_TYPES`` order.

    Store order is kept within a group and repeated ids are dropped. Empty
    groups are omitted. Channels of any other type are skipped.

    Returns:
        ``(channel_type, channel_ids)`` pairs.
    """
    groups: dict[str, dict[str, None]] = {t.value: {} for t in BACKFILL_CHANNEL_TYPES}
    skipped = 0
    for channel in channels:
        group = groups.get(channel.type)
        if group is None:
            skipped += 1
            continue
        group[channel.id] = None

    if skipped:
        logger.debug("Skipped %d channels with a type that has no post channel_type", skipped)

    return [(channel_type, list(ids)) for channel_type, ids in groups.items() if ids]


class BackfillMigration:
    """Runs the post channel-type backfill against one engine.

    Only one run may be in flight per instance; a concurrent call raises
    ``BackfillInProgressError`` rather than queueing.

    Attributes:
        state: State of the current or most recent run.
        last_error: Why the most recent run aborted, if it did.
    """

    def __init__(self, store: Store, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._store = store
        self._page_size = page_size
        self._gate = asyncio.Lock()
        self.state = BackfillState.NOT_STARTED
        self.last_error: str | None = None

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def running(self) -> bool:
        return self._gate.locked()

    async def run(self, engine: SearchEngine, timeout: float | None = None) -> BackfillState:
        """Run the backfill once.

        Args:
            engine: The engine whose posts index is patched.
            timeout: Optional deadline in seconds for the whole run.

        Returns:
            ``COMPLETED`` when the marker is set (now or by an earlier run).

        Raises:
            BackfillInProgressError: If another run is in flight.
            BackfillAbortedError: If a store or engine call failed or the
                deadline passed. The marker is not written.
            asyncio.CancelledError: If the run was cancelled. The marker is
                not written.
        """
        if self._gate.locked():
            raise BackfillInProgressError("A post channel_type backfill is already running.")

        async with self._gate:
            self.state = BackfillState.NOT_STARTED
            self.last_error = None
            deadline = asyncio.timeout(timeout)
            try:
                async with deadline:
                    await self._run(engine)
            except asyncio.CancelledError:
                self._abort("cancelled")
                raise
            except TimeoutError as e:
                if not deadline.expired():
                    self._abort(str(e), exc_info=e)
                    raise BackfillAbortedError(f"Post channel_type backfill failed: {e}") from e
                self._abort(f"deadline of {timeout}s exceeded")
                raise BackfillAbortedError("Post channel_type backfill timed out.") from e
            except BackfillAbortedError as e:
                self._abort(str(e), exc_info=e)
                raise
            except Exception as e:
                self._abort(str(e), exc_info=e)
                raise BackfillAbortedError(f"Post channel_type backfill failed: {e}") from e
            return self.state

    async def is_complete(self) -> bool:
        """Whether the completion marker is set.

        Raises:
            StoreError: If the system table cannot be read.
        """
        try:
            record = await self._store.system().get_by_name(SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE)
        except SystemNotFoundError:
            return False
        return record.value == "true"

    async def _run(self, engine: SearchEngine) -> None:
        if await self.is_complete():
            self.state = BackfillState.COMPLETED
            return

        self.state = BackfillState.RUNNING
        logger.info("Starting post channel_type backfill on %s", engine.name)

        channel_store = self._store.channel()
        offset = 0
        total = 0
        while True:
            channels = await channel_store.get_all_channels(offset, self._page_size, ChannelSearchOptions())
            if not channels:
                break

            for channel_type, channel_ids in partition_channels(channels):
                try:
                    await engine.backfill_posts_channel_type(channel_ids, channel_type)
                except Exception as e:
                    raise BackfillAbortedError(
                        f"Failed to backfill channel_type={channel_type} on {engine.name}: {e}"
                    ) from e

            total += len(channels)
            if len(channels) < self._page_size:
                break
            offset += self._page_size

        try:
            await self._store.system().save_or_update(
                System(name=SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE, value="true")
            )
        except Exception as e:
            raise BackfillAbortedError(
                f"Backfill data was written but the completion marker was not saved: {e}"
            ) from e

        self.state = BackfillState.COMPLETED
        logger.info("Post channel_type backfill complete (%d channels)", total)

    def _abort(self, reason: str, exc_info: BaseException | None = None) -> None:
        self.state = BackfillState.ABORTED
        self.last_error = reason
        logger.error("Post channel_type backfill aborted: %s", reason, exc_info=exc_info)
