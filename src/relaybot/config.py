"""Central configuration for relaybot.

All settings are loaded from environment variables (with ``.env`` file support
via *python-dotenv*).  Validation and type coercion are handled by
``pydantic-settings``.

Usage::

    from relaybot.config import get_settings

    settings = get_settings()
    print(settings.HANDLER_PATH)

The :func:`get_settings` helper creates the :class:`RelaySettings` singleton
lazily so that importing this module never triggers validation before the
caller has had a chance to load a ``.env`` file or populate the environment.
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import ClassVar, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Canonical .env locations (checked in order of priority).
ENV_PATHS: list[str] = ["config/.env", ".env"]

# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


class RelaySettings(BaseSettings):
    """Validated configuration for the relay bot.

    Required fields (no defaults):
        ``DISCORD_TOKEN``

    Every other setting carries a default so the bot can start with just the
    token.
    """

    model_config = SettingsConfigDict(
        # .env loading is handled by load_dotenv() in __main__.py.
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Required -- no defaults
    # ------------------------------------------------------------------
    DISCORD_TOKEN: str = Field(
        ...,
        description="Discord bot token from the Developer Portal.",
    )

    # ------------------------------------------------------------------
    # Handler discovery
    # ------------------------------------------------------------------
    HANDLER_PATH: Path = Field(
        default=Path("handlers"),
        description="Root directory scanned (recursively) for handler modules.",
    )
    HANDLER_PATTERN: str = Field(
        default="_handler.py",
        min_length=1,
        description="File-name suffix that marks a handler module.",
    )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    COMMAND_EXTRACTION: Literal["unbounded", "bounded"] = Field(
        default="unbounded",
        description=(
            "How the command token is cut from a message.  'unbounded' takes "
            "the first word; 'bounded' only looks at the first "
            "MAX_COMMAND_LENGTH + 1 characters."
        ),
    )
    MAX_COMMAND_LENGTH: int = Field(
        default=20,
        ge=1,
        description="Longest command token considered by bounded extraction.",
    )
    INTROSPECTION_COMMAND: str = Field(
        default="!commands",
        description="Reserved message that lists registered commands.  Empty disables it.",
    )
    IGNORE_BOTS: bool = Field(
        default=True,
        description="Ignore messages from every bot account, not just our own.",
    )

    # ------------------------------------------------------------------
    # Channel directory
    # ------------------------------------------------------------------
    CHANNEL_CACHE_PATH: Path | None = Field(
        default=None,
        description="JSON file the channel directory is persisted to.  None keeps it in memory.",
    )

    # ------------------------------------------------------------------
    # Scheduled jobs
    # ------------------------------------------------------------------
    JOB_TIMEZONE: str = Field(
        default="UTC",
        description="IANA timezone that cron schedules are evaluated in.",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level.",
    )
    LOG_CHANNEL: str | None = Field(
        default=None,
        description="Name of a text channel that receives warning-level logs.",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("CHANNEL_CACHE_PATH", mode="before")
    @classmethod
    def _blank_cache_path_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("JOB_TIMEZONE")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.JOB_TIMEZONE)

    # ------------------------------------------------------------------
    # Repr safety -- redact secrets in logs / debug output
    # ------------------------------------------------------------------

    _SENSITIVE_FIELDS: ClassVar[set[str]] = {"DISCORD_TOKEN"}

    def __repr__(self) -> str:
        fields = []
        for name in type(self).model_fields:
            val = getattr(self, name)
            if name in self._SENSITIVE_FIELDS:
                val = "***" if val else None
            fields.append(f"{name}={val!r}")
        return f"RelaySettings({', '.join(fields)})"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def find_env_file() -> Path | None:
    """Return the first existing ``.env`` file from :data:`ENV_PATHS`."""
    for candidate in ENV_PATHS:
        p = Path(candidate)
        if p.is_file():
            return p
    return None


def has_config() -> bool:
    """Return ``True`` if a bot token is available from the environment or a ``.env`` file."""
    if os.environ.get("DISCORD_TOKEN"):
        return True
    env_file = find_env_file()
    if env_file is None:
        return False
    text = env_file.read_text(encoding="utf-8", errors="replace")
    return any(
        line.strip().startswith("DISCORD_TOKEN=") and len(line.split("=", 1)[1].strip()) > 0
        for line in text.splitlines()
    )


# ---------------------------------------------------------------------------
# Lazy singleton accessor
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=1)
def get_settings() -> RelaySettings:
    """Return the global :class:`RelaySettings` singleton.

    Raises:
        pydantic.ValidationError: If ``DISCORD_TOKEN`` is missing or any value
            fails validation.
    """
    logger.debug("Initialising RelaySettings from environment.")
    return RelaySettings()  # type: ignore[call-arg]
