"""Tests for the command line entry point."""

from click.testing import CliRunner

from buildrelay.main import cli


class TestCli:
    def test_add_and_list_jobs(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BUILDRELAY_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("BUILDRELAY_CONFIG", str(tmp_path / "none.yaml"))
        runner = CliRunner()

        result = runner.invoke(cli, ["add-job", "build-web"])
        assert result.exit_code == 0, result.output
        result = runner.invoke(cli, ["add-job", "deploy", "--disabled"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["list-jobs"])
        assert result.exit_code == 0, result.output
        assert "build-web: 0 webhook(s)" in result.output
        assert "deploy (disabled): 0 webhook(s)" in result.output

    def test_list_empty(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BUILDRELAY_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("BUILDRELAY_CONFIG", str(tmp_path / "none.yaml"))
        result = CliRunner().invoke(cli, ["list-jobs"])
        assert result.exit_code == 0
        assert "No jobs registered." in result.output
