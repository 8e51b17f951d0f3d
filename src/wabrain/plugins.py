"""Command plugin discovery and registration.

Candidates come from three places, loaded in this order so that later sources
override earlier ones on a name collision:

1. built-in commands shipped with wabrain,
2. the ``wabrain.commands`` entry point group of installed distributions,
3. ``*.py`` files in the configured plugins directory.

Each candidate is imported and validated on its own; a broken plugin is
recorded as a :class:`PluginLoadError` and never stops the others from loading.
"""

from __future__ import annotations

import importlib
import importlib.util
import re
import sys
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from importlib.metadata import EntryPoint, entry_points
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any, TypeAlias

from .logging import get_logger
from .state import CommandRegistryEntry, StateStore

if TYPE_CHECKING:
    from .dispatch import CommandContext

logger = get_logger(__name__)

COMMAND_GROUP = "wabrain.commands"
DIRECTORY_MODULE_PREFIX = "wabrain_plugins"
BUILTIN_PLUGINS: tuple[str, ...] = (
    "wabrain.commands.ping",
    "wabrain.commands.menu",
    "wabrain.commands.groups",
)

DEFAULT_DESCRIPTION = "No description"
DEFAULT_CATEGORY = "general"

Handler: TypeAlias = Callable[["CommandContext"], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class CommandPlugin:
    command: str
    handler: Handler
    description: str = DEFAULT_DESCRIPTION
    category: str = DEFAULT_CATEGORY
    usage: str | None = None

    @property
    def usage_text(self) -> str:
        return self.usage or self.command


@dataclass(frozen=True, slots=True)
class PluginCandidate:
    name: str
    source: str
    load: Callable[[], object]
    distribution: str | None = None


@dataclass(frozen=True, slots=True)
class PluginLoadError:
    name: str
    source: str
    error: str
    distribution: str | None = None


@dataclass(frozen=True, slots=True)
class LoadSummary:
    loaded: int
    failed: int
    total: int


class PluginLoadFailed(RuntimeError):
    pass


def canonicalize_distribution_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def normalize_allowlist(allowlist: Iterable[str] | None) -> set[str] | None:
    if not allowlist:
        return None
    cleaned = {
        canonicalize_distribution_name(item.strip())
        for item in allowlist
        if item and item.strip()
    }
    return cleaned or None


def entrypoint_distribution_name(ep: EntryPoint) -> str | None:
    dist = getattr(ep, "dist", None)
    name = getattr(dist, "name", None) if dist is not None else None
    return name or None


def is_entrypoint_allowed(ep: EntryPoint, allowlist: set[str] | None) -> bool:
    if allowlist is None:
        return True
    dist_name = entrypoint_distribution_name(ep)
    if dist_name is None:
        return False
    return canonicalize_distribution_name(dist_name) in allowlist


def list_entrypoints(
    group: str = COMMAND_GROUP,
    *,
    allowlist: Iterable[str] | None = None,
) -> list[EntryPoint]:
    allowed = normalize_allowlist(allowlist)
    eps = [ep for ep in entry_points().select(group=group) if is_entrypoint_allowed(ep, allowed)]
    return sorted(eps, key=lambda ep: ep.name)


def _coerce_text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def coerce_plugin(obj: object) -> CommandPlugin:
    """Validate a loaded object against the plugin contract.

    Accepts a :class:`CommandPlugin`, a module exposing ``PLUGIN``, a mapping,
    or any object with ``command`` and ``handler`` attributes.
    """
    if isinstance(obj, ModuleType) and hasattr(obj, "PLUGIN"):
        obj = obj.PLUGIN
    if isinstance(obj, Mapping):
        fields = dict(obj)
    else:
        fields = {
            key: getattr(obj, key, None)
            for key in ("command", "handler", "description", "category", "usage")
        }
    command = fields.get("command")
    if not isinstance(command, str) or not command.strip():
        raise PluginLoadFailed("plugin has no command name")
    handler = fields.get("handler")
    if handler is None or not callable(handler):
        raise PluginLoadFailed(f"plugin {command.strip()!r} has no callable handler")
    usage = fields.get("usage")
    return CommandPlugin(
        command=command.strip().lower(),
        handler=handler,
        description=_coerce_text(fields.get("description"), DEFAULT_DESCRIPTION),
        category=_coerce_text(fields.get("category"), DEFAULT_CATEGORY),
        usage=usage if isinstance(usage, str) and usage.strip() else None,
    )


def import_plugin_file(path: Path) -> ModuleType:
    module_name = f"{DIRECTORY_MODULE_PREFIX}.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise PluginLoadFailed(f"cannot import {path.name}")
    module = importlib.util.module_from_spec(spec)
    # replaced on every load so edits are picked up on reload
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def directory_candidates(directory: Path) -> list[PluginCandidate]:
    if not directory.is_dir():
        logger.warning("plugins.directory_missing", path=str(directory))
        return []
    return [
        PluginCandidate(
            name=path.stem,
            source=path.name,
            load=partial(import_plugin_file, path),
        )
        for path in sorted(directory.glob("*.py"))
        if not path.name.startswith("_")
    ]


def entrypoint_candidates(
    group: str = COMMAND_GROUP,
    *,
    allowlist: Iterable[str] | None = None,
) -> list[PluginCandidate]:
    try:
        eps = list_entrypoints(group, allowlist=allowlist)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "plugins.entrypoints_unavailable",
            group=group,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        return []
    return [
        PluginCandidate(
            name=ep.name,
            source=ep.value,
            load=ep.load,
            distribution=entrypoint_distribution_name(ep),
        )
        for ep in eps
    ]


def builtin_candidates(modules: Iterable[str] = BUILTIN_PLUGINS) -> list[PluginCandidate]:
    return [
        PluginCandidate(
            name=module.rsplit(".", 1)[-1],
            source=module,
            load=partial(importlib.import_module, module),
            distribution="wabrain",
        )
        for module in modules
    ]


class PluginRegistry:
    def __init__(
        self,
        store: StateStore,
        *,
        directory: Path | None = None,
        builtin: bool = True,
        entrypoints: bool = True,
        allowlist: Iterable[str] | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._store = store
        self.directory = directory
        self._builtin = builtin
        self._entrypoints = entrypoints
        self._allowlist = list(allowlist) if allowlist else None
        self._now = now
        self._plugins: dict[str, CommandPlugin] = {}
        self._errors: list[PluginLoadError] = []

    def candidates(self) -> list[PluginCandidate]:
        found: list[PluginCandidate] = []
        if self._builtin:
            found.extend(builtin_candidates())
        if self._entrypoints:
            found.extend(entrypoint_candidates(allowlist=self._allowlist))
        if self.directory is not None:
            found.extend(directory_candidates(self.directory))
        return found

    def _load_candidate(
        self, candidate: PluginCandidate
    ) -> CommandPlugin | PluginLoadError:
        try:
            return coerce_plugin(candidate.load())
        except SystemExit as exc:
            error = f"plugin exited during import (code {exc.code})"
        except Exception as exc:  # noqa: BLE001
            error = str(exc) or exc.__class__.__name__
        return PluginLoadError(
            name=candidate.name,
            source=candidate.source,
            error=error,
            distribution=candidate.distribution,
        )

    def load(self) -> LoadSummary:
        """(Re)build the registry from scratch and mirror it into the store."""
        self._plugins.clear()
        self._errors.clear()
        entries: dict[str, CommandRegistryEntry] = {}
        candidates = self.candidates()
        loaded = 0
        for candidate in candidates:
            result = self._load_candidate(candidate)
            if isinstance(result, PluginLoadError):
                self._errors.append(result)
                logger.warning(
                    "plugins.load_failed",
                    plugin=result.name,
                    source=result.source,
                    error=result.error,
                )
                continue
            entries[result.command] = self._register(result, source=candidate.source)
            loaded += 1
        self._store.replace_commands(entries)
        summary = LoadSummary(loaded=loaded, failed=len(self._errors), total=len(candidates))
        logger.info(
            "plugins.loaded",
            loaded=summary.loaded,
            failed=summary.failed,
            total=summary.total,
            registered=len(self._plugins),
        )
        return summary

    def _register(self, plugin: CommandPlugin, *, source: str) -> CommandRegistryEntry:
        if plugin.command in self._plugins:
            logger.info("plugins.overridden", command=plugin.command, source=source)
        self._plugins[plugin.command] = plugin
        logger.debug("plugins.registered", command=plugin.command, source=source)
        return CommandRegistryEntry(
            source_file=source,
            description=plugin.description,
            category=plugin.category,
            usage=plugin.usage_text,
            loaded_at=self._now(),
        )

    def register(self, plugin: object, *, source: str = "<runtime>") -> CommandPlugin:
        """Add a plugin outside of a scan; dropped again by the next :meth:`load`."""
        checked = coerce_plugin(plugin)
        self._store.commands[checked.command] = self._register(checked, source=source)
        return checked

    def get(self, name: str) -> CommandPlugin | None:
        if not name:
            return None
        return self._plugins.get(name.lower())

    def names(self) -> list[str]:
        return sorted(self._plugins)

    def available_commands(self) -> dict[str, CommandPlugin]:
        return dict(sorted(self._plugins.items()))

    @property
    def load_errors(self) -> tuple[PluginLoadError, ...]:
        return tuple(self._errors)

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None
