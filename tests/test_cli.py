"""Tests for the breakout CLI."""

from typer.testing import CliRunner

from breakout import __version__
from breakout.cli.main import app
from breakout.utils.codec import z32_encode
from breakout.utils.keys import random_key

runner = CliRunner()


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_invite_info(self, tmp_path):
        result = runner.invoke(app, ["-c", str(tmp_path / "none.json"), "invite-info", z32_encode(random_key())])
        assert result.exit_code == 0
        assert "Topic" in result.stdout

    def test_invite_info_rejects_garbage(self, tmp_path):
        result = runner.invoke(app, ["-c", str(tmp_path / "none.json"), "invite-info", "???"])
        assert result.exit_code == 1

    def test_demo(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text('{"signals": {"installHandlers": false}}')

        result = runner.invoke(app, ["-c", str(config_path), "demo", "-c", str(config_path), "-m", "hello", "-m", "bye"])

        assert result.exit_code == 0, result.output
        assert "Transcript" in result.stdout
