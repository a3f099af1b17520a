"""Tests for the administrative CLI."""

from typer.testing import CliRunner

from arena_server.cli.app import app

runner = CliRunner()


class TestModulesCommands:
    def test_order_lists_dependencies_first(self):
        result = runner.invoke(app, ["modules", "order", "-m", "users,iam"])

        assert result.exit_code == 0
        assert result.output.index("iam") < result.output.index("users")

    def test_order_rejects_unknown_module(self):
        result = runner.invoke(app, ["modules", "order", "-m", "iam,bogus"])
        assert result.exit_code == 1

    def test_order_reports_missing_dependency(self):
        result = runner.invoke(app, ["modules", "order", "-m", "matches"])

        assert result.exit_code == 1
        assert "Invalid module graph" in result.output

    def test_topics_lists_subscribers(self):
        result = runner.invoke(app, ["modules", "topics", "-m", "iam,users"])

        assert result.exit_code == 0
        assert "iam.user.registered" in result.output
        assert "UserRegisteredPayload" in result.output
