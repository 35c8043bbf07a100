"""Channel directory, its persistence, and channel-bound logging.

Public API:
    :class:`ChannelDirectory` -- channel name -> id cache.
    :class:`JsonChannelStore` -- JSON-file ``save``/``load`` pair.
    :class:`ChannelLogHandler` -- forwards log records to a named channel.
    :func:`normalize` -- directory key for a raw channel name.
"""

from relaybot.channels.directory import ChannelDirectory, normalize, resolve_channel
from relaybot.channels.log_handler import ChannelLogHandler
from relaybot.channels.store import JsonChannelStore

__all__ = [
    "ChannelDirectory",
    "ChannelLogHandler",
    "JsonChannelStore",
    "normalize",
    "resolve_channel",
]
