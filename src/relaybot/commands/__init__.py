"""Commands built into the router itself.

- :mod:`relaybot.commands.introspect` -- the reserved ``!commands`` listing.

Every other command comes from handler modules found by
:mod:`relaybot.discovery`.
"""

from relaybot.commands.introspect import build_listing, introspection_handler

__all__ = ["build_listing", "introspection_handler"]
