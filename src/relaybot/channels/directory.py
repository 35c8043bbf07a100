"""Channel name -> channel id directory.

Handlers address channels by their human-readable name (``"general"``); the
directory maps those names to the ids Discord needs.  It is filled lazily from
every message the bot sees and rebuilt wholesale whenever the gateway reports a
channel being created, renamed or deleted.

Keys are *normalized* names: the hex encoding of the UTF-8 bytes of the raw
name.  The encoding is deterministic and collision-free, and keeps arbitrary
unicode channel names usable as JSON object keys when persisted.

Usage::

    directory = ChannelDirectory(save=store.save, load=store.load)
    await directory.hydrate()
    directory.rebuild(client.get_all_channels())
    directory.lookup("general")  # -> "1234567890" or None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, Final

import discord

log: Final = logging.getLogger(__name__)

SaveHook = Callable[[dict[str, str]], Awaitable[None]]
LoadHook = Callable[[], Awaitable[Mapping[str, str]]]

# Channel kinds that can receive plain text messages.
TEXT_CHANNEL_TYPES: Final[frozenset[discord.ChannelType]] = frozenset({
    discord.ChannelType.text,
    discord.ChannelType.news,
})


def normalize(name: str) -> str:
    """Return the directory key for a raw channel *name*."""
    return name.encode("utf-8").hex()


def is_text_channel(channel: Any) -> bool:
    """Return ``True`` if *channel* is a guild channel that accepts text."""
    return getattr(channel, "type", None) in TEXT_CHANNEL_TYPES


async def resolve_channel(client: Any, channel_id: str) -> Any:
    """Return the channel object for *channel_id*, hitting the API on a cache miss."""
    cid = int(channel_id)
    channel = client.get_channel(cid)
    if channel is None:
        channel = await client.fetch_channel(cid)
    return channel


class ChannelDirectory:
    """Cache from normalized channel name to channel id.

    Insertions are first-write-wins; only :meth:`rebuild` replaces existing
    entries, and it replaces all of them at once.  Every mutation is a single
    dict operation between awaits, so readers running on the same event loop
    never observe a half-applied update.

    Args:
        save: Optional coroutine function persisting the full mapping.  Called
            in the background after each mutation; failures are logged.
        load: Optional coroutine function returning a previously persisted
            mapping.  Called once by :meth:`hydrate`.
        read_only: Reject mutations.  Used for the snapshots handed to message
            handlers.
    """

    def __init__(
        self,
        *,
        save: SaveHook | None = None,
        load: LoadHook | None = None,
        entries: Mapping[str, str] | None = None,
        read_only: bool = False,
    ) -> None:
        self._channels: dict[str, str] = dict(entries or {})
        self._save = save
        self._load = load
        self._read_only = read_only
        self._pending: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def lookup(self, name: str) -> str | None:
        """Return the channel id cached for *name*, or ``None``."""
        return self._channels.get(normalize(name))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize(name) in self._channels

    def __len__(self) -> int:
        return len(self._channels)

    def as_dict(self) -> dict[str, str]:
        """Return a copy of the normalized mapping."""
        return dict(self._channels)

    @property
    def read_only(self) -> bool:
        return self._read_only

    def snapshot(self) -> ChannelDirectory:
        """Return a read-only copy of the current state."""
        return ChannelDirectory(entries=self._channels, read_only=True)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def remember_if_absent(self, name: str, channel_id: str) -> bool:
        """Cache *channel_id* under *name* unless the name is already known.

        Returns ``True`` if a new entry was inserted.
        """
        self._check_writable()
        key = normalize(name)
        if key in self._channels:
            return False
        self._channels[key] = str(channel_id)
        log.debug("Remembered channel #%s -> %s", name, channel_id)
        self._schedule_save()
        return True

    def rebuild(self, channels: Iterable[Any]) -> None:
        """Replace the whole mapping from a live enumeration of channels.

        Non-text channels (voice, category, forum, ...) are ignored.  Entries
        absent from *channels* are dropped, which is how renames and deletions
        are picked up.  When several text channels share a name (across
        guilds or categories) the first one enumerated wins, as with
        :meth:`remember_if_absent`.
        """
        self._check_writable()
        fresh: dict[str, str] = {}
        for ch in channels:
            if is_text_channel(ch):
                fresh.setdefault(normalize(ch.name), str(ch.id))
        self._channels = fresh
        log.info("Channel directory rebuilt with %d text channel(s)", len(fresh))
        self._schedule_save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def hydrate(self) -> None:
        """Load persisted entries once at startup.

        Any failure leaves the directory empty; startup continues.
        """
        if self._load is None:
            return
        try:
            loaded = await self._load()
        except Exception as exc:
            log.warning("Failed to load channel directory, starting empty: %s", exc)
            return
        if not isinstance(loaded, Mapping):
            log.warning(
                "Ignoring persisted channel directory of type %s", type(loaded).__name__,
            )
            return
        self._channels = {str(k): str(v) for k, v in loaded.items()}
        log.info("Channel directory hydrated with %d entries", len(self._channels))

    async def persist(self) -> None:
        """Save the current mapping now.  Failures are logged, never raised."""
        if self._save is None:
            return
        try:
            await self._save(dict(self._channels))
        except Exception as exc:
            log.warning("Failed to persist channel directory: %s", exc)

    async def drain(self) -> None:
        """Wait for in-flight background saves to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _schedule_save(self) -> None:
        if self._save is None:
            return
        task = asyncio.get_running_loop().create_task(self.persist())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _check_writable(self) -> None:
        if self._read_only:
            raise RuntimeError("ChannelDirectory snapshot is read-only.")
