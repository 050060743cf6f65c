"""Read-through cache for the parsed configuration snapshot.

Validity is write-based: an entry stays valid until ``invalidate`` is called,
which the client does after every successful write. There is no timer.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .parser import ConfigFileParser, ParsedConfig
from ..utils.logging_config import timed_section

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    snapshot: ParsedConfig
    valid_since: float


class SnapshotCache:
    """Holds at most one parsed snapshot.

    Args:
        fetch: Coroutine function returning the raw configuration text
        parser: Parser used on fetched text
        router_id: Used in log lines only
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[str]],
        parser: Optional[ConfigFileParser] = None,
        router_id: str = "",
    ):
        self._fetch = fetch
        self._parser = parser or ConfigFileParser()
        self.router_id = router_id
        self._entry: Optional[CacheEntry] = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    @property
    def is_valid(self) -> bool:
        return self._entry is not None

    async def get_cached(self) -> ParsedConfig:
        """Return the snapshot, fetching and parsing it if there is none.

        A fetch that overlaps an ``invalidate`` still returns its result to
        this caller but is not stored. A failed fetch stores nothing.
        """
        async with self._lock:
            if self._entry is not None:
                return self._entry.snapshot

            generation = self._generation
            async with timed_section("snapshot_fetch", router_id=self.router_id):
                raw = await self._fetch()
            self.fetch_count += 1
            async with timed_section("snapshot_parse", router_id=self.router_id, bytes=len(raw)):
                parsed = self._parser.parse(raw)

            if generation == self._generation:
                self._entry = CacheEntry(snapshot=parsed, valid_since=time.time())
            else:
                logger.debug(f"{self.router_id}: snapshot invalidated during fetch, not stored")
            return parsed

    def invalidate(self) -> None:
        if self._entry is not None:
            logger.debug(f"{self.router_id}: snapshot cache invalidated")
        self._generation += 1
        self._entry = None
