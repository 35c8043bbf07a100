"""JSON-file persistence for the channel directory.

Supplies the ``save``/``load`` pair that :class:`ChannelDirectory` accepts.
File I/O runs in a worker thread so the event loop never blocks on disk.

Usage::

    store = JsonChannelStore(Path("data/channels.json"))
    directory = ChannelDirectory(save=store.save, load=store.load)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path

log = logging.getLogger(__name__)


class JsonChannelStore:
    """Stores the normalized name -> id mapping as a JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def save(self, mapping: Mapping[str, str]) -> None:
        # Serialise writes so an older snapshot never lands after a newer one.
        payload = json.dumps(dict(mapping), indent=2, sort_keys=True)
        async with self._lock:
            await asyncio.to_thread(self._write, payload)
        log.debug("Saved %d channel(s) to %s", len(mapping), self.path)

    async def load(self) -> dict[str, str]:
        """Return the persisted mapping, or ``{}`` when no file exists yet."""
        if not self.path.exists():
            return {}
        raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, self.path)
