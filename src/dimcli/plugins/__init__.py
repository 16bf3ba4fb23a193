"""
Plugin system for dim-cli commands.

This package provides the command plugin contract, option declarations,
directory-based discovery and the command registry.
"""

from dimcli.plugins.base import BaseCommand, CommandPlugin, Invocation
from dimcli.plugins.loader import PluginLoader
from dimcli.plugins.options import (
    GLOBAL_OPTIONS,
    ArgumentSpec,
    InvocationSchema,
    OptionSpec,
    compose_schema,
    global_options,
)
from dimcli.plugins.registry import CommandRegistry, RegisteredCommand

__all__ = [
    "ArgumentSpec",
    "BaseCommand",
    "CommandPlugin",
    "CommandRegistry",
    "GLOBAL_OPTIONS",
    "Invocation",
    "InvocationSchema",
    "OptionSpec",
    "PluginLoader",
    "RegisteredCommand",
    "compose_schema",
    "global_options",
]
