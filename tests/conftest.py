"""
Pytest configuration and fixtures for dim-cli tests.

Provides package metadata, in-memory command plugins that record their
lifecycle calls, plugin directories on disk and readiness tokens.
"""

import asyncio
import logging
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from dimcli.bootstrap import ReadinessToken, StartupGate
from dimcli.metadata import Contributor, PackageInfo
from dimcli.plugins import BaseCommand, CommandRegistry, Invocation


class FakeStore:
    """Stand-in for DataStore where no database is needed."""

    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class RecordingCommand(BaseCommand):
    """Command plugin that records init/run calls into a shared list."""

    def __init__(
        self,
        package: PackageInfo,
        signature: str = "ping",
        description: str = "Ping a node",
        options: tuple = (),
        events: Optional[list] = None,
        result: Any = None,
        error: Optional[Exception] = None,
    ) -> None:
        super().__init__(package)
        self.signature = signature
        self.description = description
        self.options = options
        self.events = events if events is not None else []
        self.result = result
        self.error = error
        self.seen: Optional[Invocation] = None

    @property
    def name(self) -> str:
        return self.signature.split()[0]

    def init(self, invocation: Invocation) -> None:
        super().init(invocation)
        self.events.append(("init", self.name))

    async def run(self, invocation: Invocation) -> Any:
        self.seen = invocation
        self.events.append(("run", self.name))
        if self.error is not None:
            raise self.error
        return self.result


PLUGIN_SOURCE = '''
from dimcli.plugins import BaseCommand, OptionSpec

EVENTS_FILE = {events_file!r}


class Command(BaseCommand):
    signature = {signature!r}
    description = {description!r}
    options = (
        OptionSpec(signature="-o, --output [file]", description="Output file"),
    )

    def init(self, invocation):
        super().init(invocation)
        with open(EVENTS_FILE, "a") as f:
            f.write("init {name}\\n")

    async def run(self, invocation):
        with open(EVENTS_FILE, "a") as f:
            f.write(f"run {name} network={{self.network}} port={{self.port}}\\n")
        return {result!r}
'''


def write_plugin(
    directory: Path,
    identifier: str,
    events_file: Path,
    signature: Optional[str] = None,
    description: str = "Test command",
    result: Any = None,
) -> Path:
    """Write a plugin module that appends its lifecycle calls to events_file."""
    signature = signature or identifier
    source = PLUGIN_SOURCE.format(
        events_file=str(events_file),
        signature=signature,
        description=description,
        name=signature.split()[0],
        result=result,
    )
    path = directory / f"{identifier}.py"
    path.write_text(textwrap.dedent(source))
    return path


@pytest.fixture(autouse=True)
def unload_plugin_modules():
    """Forget plugin modules imported by a test."""
    yield
    for name in [name for name in sys.modules if name.startswith("dimcli_commands.")]:
        del sys.modules[name]


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo level changes and handlers installed by setup_logging or --verbose."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def package_info() -> PackageInfo:
    return PackageInfo(
        name="dim-cli",
        version="1.2.3",
        description="Command line tools suite for the DIM ecosystem",
        author="DIMCoin Developers",
        contributors=[
            Contributor(name="Alice", email="alice@example.com"),
            Contributor(name="Bob"),
        ],
    )


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def make_registry(package_info) -> Callable[..., CommandRegistry]:
    """Build a registry from in-memory plugins, keyed by identifier."""

    def _make(**plugins: BaseCommand) -> CommandRegistry:
        loaders = {identifier: (lambda p=plugin: p) for identifier, plugin in plugins.items()}
        registry = CommandRegistry(loaders)
        registry.register_all()
        return registry

    return _make


@pytest.fixture
def recording(package_info, events) -> Callable[..., RecordingCommand]:
    def _make(signature: str = "ping", **kwargs: Any) -> RecordingCommand:
        return RecordingCommand(package_info, signature=signature, events=events, **kwargs)

    return _make


@pytest.fixture
def ready_token() -> ReadinessToken:
    """Readiness token backed by a fake store."""

    async def initializer() -> Any:
        return FakeStore()

    return asyncio.run(StartupGate(initializer).open())


@pytest.fixture
def plugin_dir(tmp_path) -> Path:
    directory = tmp_path / "commands"
    directory.mkdir()
    return directory


@pytest.fixture
def events_file(tmp_path) -> Path:
    return tmp_path / "events.log"


@pytest.fixture
def plugin_writer(plugin_dir, events_file) -> Callable[..., Path]:
    """Write recording plugin modules into plugin_dir."""

    def _write(identifier: str, **kwargs: Any) -> Path:
        return write_plugin(plugin_dir, identifier, events_file, **kwargs)

    return _write
