from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from typing import Callable

from genxai.errors import ModuleLoadError

from .manifests import MANIFESTS, ModuleManifest, get_manifest
from .platform import PlatformInfo, ensure_supported

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoadedModule:
    manifest: ModuleManifest
    platform: PlatformInfo
    commands: dict[str, Callable] = field(default_factory=dict)


class CommandTable:
    """Process-wide name -> callable table. Names are case-insensitive."""

    def __init__(self) -> None:
        self._commands: dict[str, tuple[str, Callable, str]] = {}
        self._aliases: dict[str, str] = {}

    def register(self, name: str, fn: Callable, module: str) -> None:
        key = name.lower()
        if key in self._aliases:
            raise ModuleLoadError(f"{module}: command {name} collides with an alias")
        existing = self._commands.get(key)
        if existing is not None and existing[1] is not fn:
            raise ModuleLoadError(f"{module}: command {name} is already bound by {existing[2]}")
        self._commands[key] = (name, fn, module)

    def register_alias(self, alias: str, command: str, module: str) -> None:
        key = alias.lower()
        target = command.lower()
        if key in self._commands:
            raise ModuleLoadError(f"{module}: alias {alias} collides with a command")
        existing = self._aliases.get(key)
        if existing is not None and existing != target:
            raise ModuleLoadError(f"{module}: alias {alias} already points to {existing}")
        self._aliases[key] = target

    def register_module(self, commands: dict[str, Callable], aliases: dict[str, str], module: str) -> None:
        """Register a module's commands and aliases together; nothing is kept if any conflicts."""
        staged = CommandTable()
        staged._commands = dict(self._commands)
        staged._aliases = dict(self._aliases)
        for name, fn in commands.items():
            staged.register(name, fn, module)
        for alias, command in aliases.items():
            staged.register_alias(alias, command, module)
        self._commands, self._aliases = staged._commands, staged._aliases

    def get(self, name_or_alias: str) -> Callable:
        key = name_or_alias.lower()
        key = self._aliases.get(key, key)
        entry = self._commands.get(key)
        if entry is None:
            raise ModuleLoadError(f"Command not loaded: {name_or_alias}")
        return entry[1]

    def names(self) -> list[str]:
        return sorted(entry[0] for entry in self._commands.values())

    def aliases(self) -> dict[str, str]:
        return {alias: self._commands[target][0] for alias, target in sorted(self._aliases.items())}

    def clear(self) -> None:
        self._commands.clear()
        self._aliases.clear()


COMMANDS = CommandTable()
_LOADED: dict[str, LoadedModule] = {}


def resolve_target(target: str) -> Callable:
    module_name, _, attr = target.partition(":")
    module = importlib.import_module(module_name)
    fn = getattr(module, attr)
    if not callable(fn):
        raise TypeError(f"{target} is not callable")
    return fn


def import_module(
    name: str,
    info: PlatformInfo | None = None,
    table: CommandTable | None = None,
) -> LoadedModule:
    manifest = get_manifest(name)
    table = table if table is not None else COMMANDS
    platform_info = ensure_supported(manifest.name, manifest.requirement, info)

    loaded = LoadedModule(manifest=manifest, platform=platform_info)
    for command, target in manifest.commands.items():
        try:
            fn = resolve_target(target)
        except (ImportError, AttributeError, TypeError) as exc:
            raise ModuleLoadError(f"{manifest.name}: failed to load {command} from {target}: {exc}") from exc
        loaded.commands[command] = fn
    table.register_module(loaded.commands, manifest.aliases, manifest.name)

    if table is COMMANDS:
        _LOADED[manifest.name] = loaded
    logger.debug("Loaded %s %s with %d command(s)", manifest.name, manifest.version, len(loaded.commands))
    return loaded


def import_all(info: PlatformInfo | None = None, table: CommandTable | None = None) -> list[LoadedModule]:
    return [import_module(manifest.name, info=info, table=table) for manifest in MANIFESTS]


def loaded_modules() -> list[LoadedModule]:
    return list(_LOADED.values())


def get_command(name_or_alias: str, table: CommandTable | None = None) -> Callable:
    return (table if table is not None else COMMANDS).get(name_or_alias)
