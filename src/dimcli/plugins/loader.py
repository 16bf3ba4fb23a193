"""
Command plugin discovery and loading.

The plugin directory is scanned once. Every ``*.py`` module in it (except
``_``-prefixed ones such as ``__init__.py``) is a candidate plugin and its
file name without the extension is the plugin identifier. Discovery only
maps identifiers to loaders; a module is imported, and its ``Command``
class instantiated, when its loader is called.
"""

import functools
import importlib.util
import logging
import sys
from pathlib import Path
from types import MappingProxyType, ModuleType
from typing import Callable, Dict, Mapping, Optional

from dimcli.exceptions import DiscoveryError
from dimcli.metadata import PackageInfo
from dimcli.plugins.base import CommandPlugin

logger = logging.getLogger(__name__)

PluginFactory = Callable[[], CommandPlugin]

_CONTRACT = ("signature", "description", "options", "init", "run")


class PluginLoader:
    """
    Discovers command plugins in a directory and loads them on demand.

    Example:
        >>> loader = PluginLoader(Path("commands"), package)
        >>> loaders = loader.discover()
        >>> plugin = loaders["wallet"]()
    """

    # Recognized plugin file extension
    EXTENSION = ".py"

    # Name of the class a plugin module must export
    EXPORT_NAME = "Command"

    # Loaded plugin modules live under this name in sys.modules
    MODULE_PREFIX = "dimcli_commands"

    def __init__(self, plugin_dir: Path, package: PackageInfo) -> None:
        self.plugin_dir = Path(plugin_dir)
        self.package = package
        self._loaders: Optional[Mapping[str, PluginFactory]] = None

    def discover(self) -> Mapping[str, PluginFactory]:
        """
        Scan the plugin directory and map identifiers to loaders.

        The directory is read on the first call only; later calls return the
        same read-only mapping.

        Raises:
            DiscoveryError: If the plugin directory does not exist
        """
        if self._loaders is not None:
            return self._loaders

        if not self.plugin_dir.is_dir():
            raise DiscoveryError(
                str(self.plugin_dir), "plugin directory does not exist"
            )

        loaders: Dict[str, PluginFactory] = {}
        for path in sorted(self.plugin_dir.iterdir()):
            identifier = self.identifier_for(path)
            if identifier is None:
                continue
            loaders[identifier] = functools.partial(self.load_plugin, identifier)
            logger.debug(f"Discovered command plugin: {identifier} at {path}")

        logger.info(f"Discovered {len(loaders)} command plugin(s) in {self.plugin_dir}")
        self._loaders = MappingProxyType(loaders)
        return self._loaders

    def identifier_for(self, path: Path) -> Optional[str]:
        """Plugin identifier for a directory entry, or None if it is not a plugin."""
        if not path.is_file() or path.suffix != self.EXTENSION:
            return None
        if path.name.startswith("_"):
            return None
        return path.stem

    def load_plugin(self, identifier: str) -> CommandPlugin:
        """
        Import a plugin module and instantiate its Command class.

        Raises:
            DiscoveryError: If the plugin is unknown, fails to import, has no
                Command export, or does not satisfy the plugin contract
        """
        path = self.plugin_dir / f"{identifier}{self.EXTENSION}"
        if self._loaders is not None and identifier not in self._loaders:
            raise DiscoveryError(identifier, "plugin was not discovered")

        module = self._import_module(identifier, path)

        command_class = getattr(module, self.EXPORT_NAME, None)
        if command_class is None:
            raise DiscoveryError(
                identifier, f"module {path.name} has no '{self.EXPORT_NAME}' export"
            )

        try:
            plugin = command_class(self.package)
        except Exception as e:
            raise DiscoveryError(
                identifier, f"{self.EXPORT_NAME}() construction failed: {e}"
            ) from e

        missing = [member for member in _CONTRACT if not hasattr(plugin, member)]
        if missing:
            raise DiscoveryError(
                identifier,
                f"{self.EXPORT_NAME} does not implement the command plugin "
                f"contract (missing: {', '.join(missing)})",
            )
        if not callable(plugin.init) or not callable(plugin.run):
            raise DiscoveryError(identifier, "init and run must be callable")

        logger.debug(f"Loaded command plugin: {identifier}")
        return plugin

    def _import_module(self, identifier: str, path: Path) -> ModuleType:
        module_name = f"{self.MODULE_PREFIX}.{identifier}"

        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise DiscoveryError(identifier, f"cannot create module spec for {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise DiscoveryError(identifier, f"import failed: {e}") from e

        return module
