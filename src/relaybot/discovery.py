"""Handler module discovery and loading.

Handler modules are plain Python files whose name ends with a configured
suffix (``_handler.py`` by default), anywhere below the handler root.  Each
module contributes the definition objects it defines at module level, plus the
items of an optional module-level ``DEFINITIONS`` sequence.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from collections.abc import Iterable
from pathlib import Path
from types import ModuleType

from relaybot.definitions import DEFINITION_TYPES, HandlerDefinition

log = logging.getLogger(__name__)


def discover_handler_files(root: Path, suffix: str) -> list[Path]:
    """Return every file below *root* whose name ends with *suffix*, sorted."""
    root = Path(root)
    if not root.is_dir():
        log.info("Handler directory %s does not exist; nothing to load.", root)
        return []
    return sorted(
        p for p in root.rglob("*")
        if p.is_file() and p.name.endswith(suffix)
    )


def load_definitions(paths: Iterable[Path]) -> list[HandlerDefinition]:
    """Import each handler file and collect its definitions in file order.

    A file that fails to import is logged and skipped.
    """
    definitions: list[HandlerDefinition] = []
    for path in paths:
        try:
            module = _import_file(Path(path))
        except Exception as e:
            log.error("Failed to load handler module %s: %s", path, e, exc_info=True)
            continue
        found = _collect(module)
        log.debug("Handler module %s contributed %d definition(s).", path, len(found))
        definitions.extend(found)
    return definitions


def discover(root: Path, suffix: str) -> list[HandlerDefinition]:
    """Discover and load every handler definition below *root*."""
    return load_definitions(discover_handler_files(root, suffix))


def _import_file(path: Path) -> ModuleType:
    # Unique module name per path so same-named files in different folders
    # do not replace each other in sys.modules.
    digest = hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()[:12]
    module_name = f"relaybot_handler_{path.stem}_{digest}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def _collect(module: ModuleType) -> list[HandlerDefinition]:
    found: list[HandlerDefinition] = []
    seen: set[int] = set()
    candidates = list(vars(module).values()) + list(getattr(module, "DEFINITIONS", ()) or ())
    for obj in candidates:
        if isinstance(obj, DEFINITION_TYPES) and id(obj) not in seen:
            seen.add(id(obj))
            found.append(obj)
    return found
