"""Entry point for `python -m relaybot`."""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv


def main() -> None:
    # Load .env from canonical locations before anything else.
    load_dotenv("config/.env")  # Primary
    load_dotenv()               # Fallback (CWD/.env)

    log = logging.getLogger("relaybot")

    from relaybot.config import has_config

    if not has_config():
        logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler(sys.stdout)])
        log.error("No configuration found (missing DISCORD_TOKEN).")
        log.error("Copy config/.env.example to config/.env and set DISCORD_TOKEN, then restart.")
        sys.exit(1)

    # Validate config early
    try:
        from relaybot.config import get_settings

        settings = get_settings()
    except Exception as e:
        logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler(sys.stdout)])
        log.error("Configuration error: %s", e)
        log.error("")
        log.error("  How to fix:")
        log.error("  1. Edit config/.env (or set environment variables)")
        log.error("  2. Ensure DISCORD_TOKEN is set")
        log.error("  3. COMMAND_EXTRACTION must be 'unbounded' or 'bounded'")
        log.error("  4. JOB_TIMEZONE must be an IANA name, e.g. Europe/Berlin")
        sys.exit(1)

    # Configure logging
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    log.info("Starting relaybot...")
    log.info("Handler path: %s (pattern %s)", settings.HANDLER_PATH, settings.HANDLER_PATTERN)
    log.info("Command extraction: %s", settings.COMMAND_EXTRACTION)

    from relaybot.bot import RelayBot
    from relaybot.exceptions import ConfigurationError

    bot = RelayBot(settings)
    try:
        bot.run_with_settings()
    except ConfigurationError as e:
        log.error("Configuration error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
