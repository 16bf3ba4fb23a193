"""
Command registry.

Loads every discovered plugin, composes its invocation schema and indexes
the result by command name. Built once per process, read-only afterwards.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence

from dimcli.config import DEFAULT_NETWORKS
from dimcli.exceptions import DiscoveryError, OptionDeclarationError
from dimcli.metadata import PackageInfo
from dimcli.plugins.base import CommandPlugin
from dimcli.plugins.loader import PluginFactory, PluginLoader
from dimcli.plugins.options import (
    GLOBAL_OPTIONS,
    InvocationSchema,
    OptionSpec,
    compose_schema,
    global_options,
)

logger = logging.getLogger(__name__)

# Names taken by the commands built into the dispatcher
RESERVED_COMMANDS = ("list", "serve")


@dataclass(frozen=True)
class RegisteredCommand:
    """A loaded plugin together with its invocation schema."""

    identifier: str
    plugin: CommandPlugin
    schema: InvocationSchema

    @property
    def name(self) -> str:
        return self.schema.name


class CommandRegistry:
    """
    Registry of plugin-backed commands.

    Example:
        >>> registry = CommandRegistry(PluginLoader(path, package).discover())
        >>> registry.register_all()
        >>> registry.get("wallet").schema.options
    """

    def __init__(
        self,
        loaders: Mapping[str, PluginFactory],
        global_options: Sequence[OptionSpec] = GLOBAL_OPTIONS,
    ) -> None:
        self._loaders = loaders
        self.global_options = tuple(global_options)
        self._commands: Optional[Mapping[str, RegisteredCommand]] = None

    @classmethod
    def from_directory(
        cls,
        plugin_dir: Path,
        package: PackageInfo,
        networks: Sequence[str] = DEFAULT_NETWORKS,
    ) -> "CommandRegistry":
        """Discover the plugins in a directory and register them all."""
        loader = PluginLoader(plugin_dir, package)
        registry = cls(loader.discover(), global_options(networks))
        registry.register_all()
        return registry

    def register_all(self) -> Mapping[str, RegisteredCommand]:
        """
        Load every plugin and build its schema, in identifier order.

        Raises:
            DiscoveryError: If a plugin fails to load, declares invalid
                options, or its command name is already taken
        """
        if self._commands is not None:
            return self._commands

        commands: Dict[str, RegisteredCommand] = {}
        for identifier in sorted(self._loaders):
            plugin = self._loaders[identifier]()

            try:
                schema = compose_schema(identifier, plugin, self.global_options)
            except OptionDeclarationError as e:
                raise DiscoveryError(identifier, str(e)) from e
            except Exception as e:
                raise DiscoveryError(
                    identifier, f"cannot read command declaration: {e}"
                ) from e

            if schema.name in RESERVED_COMMANDS:
                raise DiscoveryError(
                    identifier, f"command name '{schema.name}' is reserved"
                )
            if schema.name in commands:
                raise DiscoveryError(
                    identifier,
                    f"command name '{schema.name}' is already registered by "
                    f"plugin '{commands[schema.name].identifier}'",
                )

            commands[schema.name] = RegisteredCommand(identifier, plugin, schema)
            logger.debug(f"Registered command '{schema.name}' from plugin {identifier}")

        self._commands = MappingProxyType(commands)
        return self._commands

    @property
    def commands(self) -> Mapping[str, RegisteredCommand]:
        return self.register_all()

    @property
    def identifiers(self) -> list[str]:
        return sorted(self._loaders)

    def get(self, name: str) -> Optional[RegisteredCommand]:
        return self.commands.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.commands

    def __len__(self) -> int:
        return len(self.commands)
