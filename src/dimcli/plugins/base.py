"""
Command plugin protocol and base class.

This module defines the interface every command plugin must implement and
the invocation object handed to a plugin's lifecycle methods.

A plugin module exports its class under the name ``Command``. The class is
constructed with the PackageInfo of the running program, then the
dispatcher calls ``init(invocation)`` followed by ``await run(invocation)``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from dimcli.db.connection import DataStore
from dimcli.metadata import PackageInfo
from dimcli.plugins.options import OptionSpec


@dataclass(frozen=True)
class Invocation:
    """Parsed arguments and options of one command execution."""

    command: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)
    package: Optional[PackageInfo] = None
    store: Optional[DataStore] = None

    def get(self, name: str, default: Any = None) -> Any:
        """Look up an option value, then a positional argument."""
        if name in self.options and self.options[name] is not None:
            return self.options[name]
        if name in self.arguments and self.arguments[name] is not None:
            return self.arguments[name]
        return default

    @property
    def verbose(self) -> bool:
        return bool(self.options.get("verbose"))


@runtime_checkable
class CommandPlugin(Protocol):
    """
    Protocol for command plugins.

    All plugins must provide these members to be registered as a
    subcommand and dispatched.
    """

    @property
    def signature(self) -> str:
        """
        Command name followed by its positional arguments.

        Example: ``"wallet <action> [address]"``. Must be available right
        after construction without side effects.
        """
        ...

    @property
    def description(self) -> str:
        """Human-readable summary shown in the command list."""
        ...

    @property
    def options(self) -> Sequence[OptionSpec]:
        """Command-specific options, appended after the global options."""
        ...

    def init(self, invocation: Invocation) -> None:
        """
        Prepare for run().

        Synchronous. Should only read the invocation into plugin state and
        must not perform I/O that can fail silently.
        """
        ...

    async def run(self, invocation: Invocation) -> Any:
        """
        Execute the command.

        Returns:
            Any result; an int is used as the process exit code

        Raises:
            ExecutionError: With a human-readable cause when the command fails
        """
        ...


class BaseCommand(ABC):
    """
    Convenience base class for command plugins.

    Example:
        >>> class Command(BaseCommand):
        ...     signature = "balance <address>"
        ...     description = "Print the balance of an address"
        ...
        ...     async def run(self, invocation):
        ...         ...
    """

    signature: str = ""
    description: str = ""
    options: Sequence[OptionSpec] = ()

    def __init__(self, package: PackageInfo) -> None:
        self.package = package
        self.invocation: Optional[Invocation] = None
        self.logger = logging.getLogger(type(self).__module__)

    def init(self, invocation: Invocation) -> None:
        self.invocation = invocation

    @property
    def verbose(self) -> bool:
        return self.invocation is not None and self.invocation.verbose

    @property
    def node(self) -> Union[str, bool, None]:
        """The -n value, or True when the flag was given without one."""
        return self._option("node")

    @property
    def port(self) -> Union[int, bool, None]:
        return self._option("port")

    @property
    def network(self) -> Union[str, bool, None]:
        return self._option("network")

    @property
    def force_ssl(self) -> bool:
        return bool(self._option("force_ssl"))

    def _option(self, name: str) -> Any:
        if self.invocation is None:
            return None
        return self.invocation.options.get(name)

    @abstractmethod
    async def run(self, invocation: Invocation) -> Any:
        ...
