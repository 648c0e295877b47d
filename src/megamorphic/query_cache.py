"""Cache of query results keyed by caller-supplied cache keys."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from megamorphic.collection import RecordCollection
from megamorphic.index import RecordIndex
from megamorphic.model import MegamorphicModel
from megamorphic.types import QueryOptions

logger = logging.getLogger(__name__)

QueryResult = MegamorphicModel | RecordCollection
Fetcher = Callable[[str | None, QueryOptions], Awaitable[QueryResult]]


@dataclass
class QueryCacheEntry:
    """A stored query result and the identities of the models it contains."""

    cache_key: str
    value: QueryResult
    member_models: frozenset[tuple[str | None, str]] = field(default_factory=frozenset)


def _members_of(value: Any) -> frozenset[tuple[str | None, str]]:
    if isinstance(value, MegamorphicModel):
        return frozenset([value.identity])
    if isinstance(value, RecordCollection):
        return value.depends_on
    return frozenset()


def _has_unloaded_member(value: Any) -> bool:
    if isinstance(value, MegamorphicModel):
        return value.is_unloaded
    if isinstance(value, RecordCollection):
        return any(model.is_unloaded for model in value.models())
    return False


class QueryCache:
    """Stores query results and applies reload and background-reload policies.

    At most one fetch is in flight per cache key; concurrent callers attach
    to it. An entry is evicted as a whole as soon as any model it contains
    unloads.
    """

    def __init__(self, index: RecordIndex | None = None) -> None:
        """Initialize the cache.

        Args:
            index: When given, the cache subscribes to its unload notifications.
        """
        self._entries: dict[str, QueryCacheEntry] = {}
        self._pending: dict[str, asyncio.Task[QueryResult]] = {}
        self._keys_by_member: dict[tuple[str | None, str], set[str]] = {}
        self.index = index
        if index is not None:
            index.subscribe(self.on_unload)

    async def query(
        self,
        cache_key: str | None,
        fetcher: Fetcher,
        *,
        reload: bool = False,
        background_reload: bool = False,
    ) -> QueryResult:
        """Return the result for ``cache_key``, fetching according to policy.

        Args:
            cache_key: Key to cache under. None disables caching entirely.
            fetcher: Async callable ``fetcher(cache_key, options)`` producing
                a model or a RecordCollection.
            reload: Fetch even when cached and wait for the new result.
            background_reload: Return the cached result immediately and
                refresh it concurrently.

        Raises:
            Whatever the fetcher raises, for fetches the caller waits on. The
            cached entry is left unchanged on failure.
        """
        options = QueryOptions(reload=reload, background_reload=background_reload)

        if cache_key is None:
            return await fetcher(None, options)

        entry = self._entries.get(cache_key)
        if entry is not None and not reload:
            if background_reload and cache_key not in self._pending:
                logger.debug("Background reload of %r", cache_key)
                self._start_fetch(cache_key, fetcher, options, background=True)
            return entry.value

        task = self._pending.get(cache_key)
        if task is None:
            task = self._start_fetch(cache_key, fetcher, options)
        else:
            logger.debug("Attaching to in-flight fetch of %r", cache_key)
        # Shield so one cancelled waiter does not cancel the shared fetch
        return await asyncio.shield(task)

    def _start_fetch(
        self,
        cache_key: str,
        fetcher: Fetcher,
        options: QueryOptions,
        background: bool = False,
    ) -> asyncio.Task[QueryResult]:
        task = asyncio.ensure_future(self._fetch(cache_key, fetcher, options))
        self._pending[cache_key] = task
        task.add_done_callback(lambda t: self._fetch_done(cache_key, t, background))
        return task

    async def _fetch(
        self, cache_key: str, fetcher: Fetcher, options: QueryOptions
    ) -> QueryResult:
        logger.debug("Fetching %r", cache_key)
        value = await fetcher(cache_key, options)
        if _has_unloaded_member(value):
            logger.debug("Not caching %r: result contains an unloaded model", cache_key)
        else:
            self._store(cache_key, value)
        return value

    def _fetch_done(
        self, cache_key: str, task: asyncio.Task[QueryResult], background: bool
    ) -> None:
        if self._pending.get(cache_key) is task:
            del self._pending[cache_key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and background:
            logger.warning("Background reload of %r failed: %s", cache_key, exc)

    def _store(self, cache_key: str, value: QueryResult) -> None:
        self._discard(cache_key)
        entry = QueryCacheEntry(cache_key, value, _members_of(value))
        self._entries[cache_key] = entry
        for member in entry.member_models:
            self._keys_by_member.setdefault(member, set()).add(cache_key)
        logger.debug("Cached %r with %d member(s)", cache_key, len(entry.member_models))

    def _discard(self, cache_key: str) -> QueryCacheEntry | None:
        entry = self._entries.pop(cache_key, None)
        if entry is None:
            return None
        for member in entry.member_models:
            keys = self._keys_by_member.get(member)
            if keys is not None:
                keys.discard(cache_key)
                if not keys:
                    del self._keys_by_member[member]
        return entry

    def on_unload(self, model: MegamorphicModel) -> None:
        """Evict every entry containing the unloaded model."""
        for cache_key in list(self._keys_by_member.get(model.identity, ())):
            logger.debug("Evicting %r: %r unloaded", cache_key, model.identity)
            self._discard(cache_key)

    def contains(self, cache_key: str) -> bool:
        return cache_key in self._entries

    def peek(self, cache_key: str) -> QueryResult | None:
        """Return the cached value without fetching."""
        entry = self._entries.get(cache_key)
        return None if entry is None else entry.value

    def entry(self, cache_key: str) -> QueryCacheEntry | None:
        return self._entries.get(cache_key)

    def pending(self, cache_key: str) -> bool:
        """Return whether a fetch for ``cache_key`` is in flight."""
        return cache_key in self._pending

    def unload(self, cache_key: str) -> None:
        """Remove an entry explicitly. In-flight fetches still store on success."""
        self._discard(cache_key)

    def clear(self) -> None:
        self._entries.clear()
        self._keys_by_member.clear()

    def close(self) -> None:
        """Stop observing the index."""
        if self.index is not None:
            self.index.unsubscribe(self.on_unload)

    def __contains__(self, cache_key: str) -> bool:
        return self.contains(cache_key)

    def __len__(self) -> int:
        return len(self._entries)
