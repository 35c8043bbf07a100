"""Exception types raised by relaybot."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for every relaybot error."""


class ConfigurationError(RelayError):
    """Required configuration is missing or invalid."""


class ChannelNotFoundError(RelayError):
    """A channel name could not be resolved through the directory."""

    def __init__(self, channel_name: str) -> None:
        super().__init__(f"Channel not found: #{channel_name}")
        self.channel_name = channel_name


class DefinitionError(RelayError):
    """A handler definition is malformed."""


class RegistrySealedError(RelayError):
    """The handler registry no longer accepts registrations."""
