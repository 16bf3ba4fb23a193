"""
Tests for the dim-cli entry point.
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from dimcli import __version__, cli
from dimcli.cli import app, main, run
from dimcli.config import Settings

# Disable Rich formatting in tests using NO_COLOR environment variable
runner = CliRunner(env={"NO_COLOR": "1", "TERM": "dumb"})

MEMORY_URL = "sqlite+aiosqlite://"


@pytest.fixture
def cli_settings(monkeypatch, plugin_dir):
    """Point the CLI at the test plugin directory and an in-memory store."""
    test_settings = Settings(plugin_dir=plugin_dir, database_url=MEMORY_URL)
    monkeypatch.setattr(cli, "settings", test_settings)
    return test_settings


def read_events(events_file):
    if not events_file.exists():
        return []
    return events_file.read_text().splitlines()


class TestListCommand:
    """Tests for the list command."""

    def test_list_shows_sections(self, cli_settings, plugin_writer, capsys):
        """Test list prints usage, version, commands, options and credits."""
        plugin_writer("wallet", signature="wallet <action>", description="Wallet tools")

        code = run(["list"])

        output = capsys.readouterr().out
        assert code == 0
        for section in ("Usage:", "Version:", "Commands:", "Options:", "Credits To:"):
            assert section in output
        assert f"v{__version__}" in output
        assert "wallet <action>" in output
        assert "Wallet tools" in output
        assert "serve <arguments>" in output
        assert "--network [network]" in output
        assert "Author:" in output

    def test_list_orders_commands(self, cli_settings, plugin_writer, capsys):
        """Test list comes first, plugins alphabetically, serve last."""
        plugin_writer("zeta")
        plugin_writer("alpha")

        run(["list"])

        output = capsys.readouterr().out
        positions = [output.index(name) for name in ("list", "alpha", "zeta", "serve")]
        assert positions == sorted(positions)

    def test_list_is_idempotent(self, cli_settings, plugin_writer, events_file, capsys):
        """Test list output is stable and no plugin runs."""
        plugin_writer("wallet")

        run(["list"])
        first = capsys.readouterr().out
        run(["list"])
        second = capsys.readouterr().out

        assert first == second
        assert read_events(events_file) == []

    def test_list_without_dispatcher(self):
        """Test list falls back to the bundled metadata when invoked directly."""
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "Commands:" in result.stdout
        assert "DIMCoin Developers" in result.stdout


class TestPluginCommands:
    """Tests for running plugin-backed commands end to end."""

    def test_runs_plugin(self, cli_settings, plugin_writer, events_file):
        """Test a discovered plugin is initialized and run."""
        plugin_writer("ping")

        code = run(["ping"])

        assert code == 0
        assert read_events(events_file) == ["init ping", "run ping network=None port=None"]

    def test_network_is_normalized(self, cli_settings, plugin_writer, events_file):
        """Test the network value is matched ignoring case and lower-cased."""
        plugin_writer("ping")

        code = run(["ping", "-N", "TESTNET", "-p", "7890"])

        assert code == 0
        assert read_events(events_file)[-1] == "run ping network=testnet port=7890"

    def test_bare_network_option(self, cli_settings, plugin_writer, events_file):
        """Test -N without a value still runs the command."""
        plugin_writer("ping")

        code = run(["ping", "-N"])

        assert code == 0
        assert read_events(events_file)[-1] == "run ping network=True port=None"

    def test_command_help(self, cli_settings, plugin_writer, events_file, capsys):
        """Test --help on a plugin command prints its options and exits 0."""
        plugin_writer("ping", description="Ping a node")

        code = run(["ping", "--help"])

        output = capsys.readouterr().out
        assert code == 0
        assert "--network" in output
        assert "--output" in output
        assert "Ping a node" in output
        assert read_events(events_file) == []

    def test_invalid_network(self, cli_settings, plugin_writer, events_file, capsys):
        """Test an invalid network is a usage error and nothing runs."""
        plugin_writer("ping")

        code = run(["ping", "-N", "foo"])

        assert code == 2
        assert "foo" in capsys.readouterr().err
        assert read_events(events_file) == []

    def test_unknown_command(self, cli_settings, plugin_writer, events_file, capsys):
        """Test an unknown command exits with a usage error."""
        plugin_writer("ping")

        code = run(["pong"])

        assert code == 2
        assert "No such command 'pong'" in capsys.readouterr().err
        assert read_events(events_file) == []

    def test_unknown_root_option(self, cli_settings, plugin_writer, events_file, capsys):
        """Test an unknown option before the command exits with a usage error."""
        plugin_writer("ping")

        code = run(["--bogus", "ping"])

        assert code == 2
        assert "--bogus" in capsys.readouterr().err
        assert read_events(events_file) == []

    def test_integer_result_is_exit_code(self, cli_settings, plugin_writer):
        """Test an int returned by run() becomes the exit code."""
        plugin_writer("ping", result=3)

        assert run(["ping"]) == 3

    def test_run_failure(self, cli_settings, plugin_dir, capsys):
        """Test a failing plugin exits with 1 and names the command."""
        (plugin_dir / "fail.py").write_text(
            "from dimcli.plugins import BaseCommand\n"
            "\n"
            "class Command(BaseCommand):\n"
            "    signature = 'fail'\n"
            "    description = 'Always fails'\n"
            "\n"
            "    async def run(self, invocation):\n"
            "        raise RuntimeError('node unreachable')\n"
        )

        code = run(["fail"])

        err = capsys.readouterr().err
        assert code == 1
        assert "Command 'fail' failed" in err
        assert "node unreachable" in err

    def test_broken_plugin(self, cli_settings, plugin_writer, plugin_dir, events_file, capsys):
        """Test a plugin that cannot load stops the program before dispatch."""
        plugin_writer("ping")
        (plugin_dir / "broken.py").write_text("import does_not_exist_anywhere\n")

        code = run(["ping"])

        assert code == 1
        assert "'broken'" in " ".join(capsys.readouterr().err.split())
        assert read_events(events_file) == []

    def test_registered_plugins_are_logged(self, monkeypatch, plugin_dir, plugin_writer, caplog):
        """Test the registered plugin identifiers are logged at DEBUG."""
        plugin_writer("wallet")
        plugin_writer("explorer")
        monkeypatch.setattr(
            cli,
            "settings",
            Settings(plugin_dir=plugin_dir, database_url=MEMORY_URL, log_level="DEBUG"),
        )

        run(["list"])

        assert "Registered 2 command(s) from plugin(s): explorer, wallet" in caplog.text

    def test_missing_plugin_directory(self, monkeypatch, tmp_path, capsys):
        """Test a missing plugin directory is reported."""
        monkeypatch.setattr(
            cli,
            "settings",
            Settings(plugin_dir=tmp_path / "missing", database_url=MEMORY_URL),
        )

        assert run(["list"]) == 1
        assert "does not exist" in " ".join(capsys.readouterr().err.split())


class TestStartupGate:
    """Tests for the data store gate in front of dispatch."""

    def test_bootstrap_failure(self, monkeypatch, plugin_dir, plugin_writer, events_file, capsys):
        """Test no command runs when the data store cannot be opened."""
        plugin_writer("ping")
        monkeypatch.setattr(
            cli,
            "settings",
            Settings(plugin_dir=plugin_dir, database_url="nosuchdriver+nothing://localhost/db"),
        )

        code = run(["ping"])

        assert code == 1
        assert "STARTUP FAILED" in capsys.readouterr().err
        assert read_events(events_file) == []

    def test_bootstrap_failure_precedes_parsing(self, monkeypatch, plugin_dir, capsys):
        """Test the gate fails before an unknown command is detected."""
        monkeypatch.setattr(
            cli,
            "settings",
            Settings(plugin_dir=plugin_dir, database_url="nosuchdriver+nothing://localhost/db"),
        )

        code = run(["pong"])

        err = capsys.readouterr().err
        assert code == 1
        assert "STARTUP FAILED" in err
        assert "No such command" not in err

    def test_store_is_closed(self, cli_settings, plugin_writer):
        """Test the data store is closed after the command finished."""
        plugin_writer("ping")
        closed = []

        from dimcli.db.connection import DataStore

        original_close = DataStore.close

        async def tracking_close(self):
            closed.append(self.url)
            await original_close(self)

        with patch.object(DataStore, "close", tracking_close):
            run(["ping"])

        assert closed == [MEMORY_URL]


class TestBuiltins:
    """Tests for serve, --version and the process entry point."""

    def test_serve(self, cli_settings, capsys):
        """Test serve is accepted and does nothing."""
        code = run(["serve"])

        assert code == 0
        assert "not implemented" in capsys.readouterr().out

    def test_version(self, cli_settings, capsys):
        """Test --version prints the version number."""
        code = run(["--version"])

        assert code == 0
        assert __version__ in capsys.readouterr().out

    def test_main_exit_code(self):
        """Test main() exits with the code returned by run()."""
        with patch("dimcli.cli.run", return_value=3):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 3

    def test_main_interrupted(self):
        """Test Ctrl-C exits with 130."""
        with patch("dimcli.cli.run", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 130
