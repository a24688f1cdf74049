"""
Tests for the gitlab-cleaner command line.
"""

import json
import sys

import httpx
import pytest
from click.testing import CliRunner

from conftest import BASE_URL, TOKEN, FakeGitLab, job_record, make_config
from gitlab_cleaner import __version__
from gitlab_cleaner.cleanup.engine import CleanupEngine
from gitlab_cleaner.cli import main as main_module
from gitlab_cleaner.cli.commands import clean as clean_module
from gitlab_cleaner.cli.main import cli

CONFIG_TEMPLATE = """\
gitlab:
  url: {url}
  token: {token}
performance:
  rate_limit: 0
retry:
  transport_min_wait: 0
  transport_max_wait: 0
  rate_limit_min_wait: 0
  rate_limit_max_wait: 0
logging:
  file: {log_file}
"""


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("GITLAB_URL", "GITLAB_TOKEN", "GITLAB_CLEANER_CONFIG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(token: str = TOKEN) -> str:
        path = tmp_path / "cleaner.yaml"
        path.write_text(
            CONFIG_TEMPLATE.format(url=BASE_URL, token=token, log_file=tmp_path / "cleaner.log")
        )
        return str(path)

    return _write


@pytest.fixture
def install_fake(monkeypatch):
    """Route the command's engine to a FakeGitLab."""

    def _install(fake: FakeGitLab, cancel: bool = False) -> FakeGitLab:
        def engine_factory(config, progress_callback=None):
            engine = CleanupEngine(
                config, progress_callback=progress_callback, transport=httpx.MockTransport(fake)
            )
            if cancel:
                engine.cancel()
            return engine

        monkeypatch.setattr(clean_module, "CleanupEngine", engine_factory)
        return fake

    return _install


@pytest.fixture
def runner():
    return CliRunner()


class TestCleanCommand:
    """Tests for `gitlab-cleaner clean`."""

    def test_successful_run(self, runner, write_config, install_fake):
        fake = install_fake(FakeGitLab([job_record(1, 10), job_record(2, 45), job_record(3, 90)]))

        result = runner.invoke(cli, ["--config", write_config(), "clean", "-p", "42", "30", "--yes"])

        assert result.exit_code == 0, result.output
        assert "Cleanup Summary" in result.output
        assert sorted(fake.erase_calls) == [2, 3]

    def test_default_expiration_is_one_year(self, runner, write_config, install_fake):
        fake = install_fake(FakeGitLab([job_record(1, 300), job_record(2, 400)]))

        result = runner.invoke(cli, ["--config", write_config(), "clean", "-p", "42", "--yes"])

        assert result.exit_code == 0, result.output
        assert fake.erase_calls == [2]

    def test_failures_exit_non_zero(self, runner, write_config, install_fake):
        fake = FakeGitLab([job_record(1, 100), job_record(2, 100)])
        fake.erase_script[2] = [403]
        install_fake(fake)

        result = runner.invoke(cli, ["--config", write_config(), "clean", "-p", "42", "30", "-y"])

        assert result.exit_code == 5
        assert "Failed Deletions" in result.output
        assert "forbidden" in result.output

    def test_invalid_token(self, runner, write_config, install_fake):
        fake = install_fake(FakeGitLab([job_record(1, 100)]))

        result = runner.invoke(
            cli, ["--config", write_config(token="expired"), "clean", "-p", "42", "30", "-y"]
        )

        assert result.exit_code == 3
        assert "Authentication Error" in result.output
        assert "Cleanup Summary" not in result.output
        assert fake.erase_calls == []

    def test_missing_credentials(self, runner):
        result = runner.invoke(cli, ["clean", "-p", "42", "--yes"])

        assert result.exit_code == 2
        assert "GITLAB_URL" in result.output

    def test_credentials_from_environment(self, runner, monkeypatch, install_fake):
        monkeypatch.setenv("GITLAB_URL", BASE_URL)
        monkeypatch.setenv("GITLAB_TOKEN", TOKEN)
        monkeypatch.setenv("GITLAB_CLEANER_PERFORMANCE__RATE_LIMIT", "0")
        fake = install_fake(FakeGitLab([job_record(1, 100)]))

        result = runner.invoke(cli, ["clean", "-p", "42", "30", "--yes"])

        assert result.exit_code == 0, result.output
        assert fake.erase_calls == [1]

    def test_unknown_project(self, runner, write_config, install_fake):
        install_fake(FakeGitLab())

        result = runner.invoke(
            cli, ["--config", write_config(), "clean", "-p", "missing", "30", "-y"]
        )

        assert result.exit_code == 4
        assert "Project Error" in result.output

    def test_listing_error_prints_partial_summary(self, runner, write_config, install_fake):
        fake = FakeGitLab([job_record(i, 100) for i in range(1, 6)])
        fake.list_script[2] = [502, 502, 502, 502]
        install_fake(fake)

        result = runner.invoke(
            cli,
            ["--config", write_config(), "clean", "-p", "42", "30", "--page-size", "2", "-y"],
        )

        assert result.exit_code == 4
        assert "Cleanup Summary" in result.output
        assert "Listing Error" in result.output

    def test_confirmation_declined(self, runner, write_config, install_fake):
        fake = install_fake(FakeGitLab([job_record(1, 100)]))

        result = runner.invoke(
            cli, ["--config", write_config(), "clean", "-p", "42", "30"], input="n\n"
        )

        assert result.exit_code == 0
        assert "Cleanup cancelled" in result.output
        assert fake.erase_calls == []

    def test_cancelled_run(self, runner, write_config, install_fake):
        install_fake(FakeGitLab([job_record(1, 100)]), cancel=True)

        result = runner.invoke(cli, ["--config", write_config(), "clean", "-p", "42", "30", "-y"])

        assert result.exit_code == 130
        assert "cancelled" in result.output

    def test_writes_reports(self, runner, write_config, install_fake, tmp_path):
        install_fake(FakeGitLab([job_record(1, 100)]))
        json_path = tmp_path / "report.json"
        md_path = tmp_path / "report.md"

        result = runner.invoke(
            cli,
            [
                "--config",
                write_config(),
                "clean",
                "-p",
                "42",
                "30",
                "--report-json",
                str(json_path),
                "--report-markdown",
                str(md_path),
                "-y",
            ],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(json_path.read_text())["succeeded"] == 1
        assert "# GitLab Cleanup Report" in md_path.read_text()

    def test_rejects_out_of_range_workers(self, runner, write_config):
        result = runner.invoke(
            cli, ["--config", write_config(), "clean", "-p", "42", "--workers", "0", "-y"]
        )

        assert result.exit_code == 2


class TestEntryPoint:
    """Tests for the CLI group and main()."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_main_returns_exit_code(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["gitlab-cleaner", "clean", "-p", "42", "-y"])

        assert main_module.main() == 2


class TestOverrides:
    """Tests for command-line performance overrides."""

    def test_apply_overrides(self):
        config = make_config()
        updated = clean_module.apply_overrides(config, workers=3, page_size=20)

        assert updated.performance.max_workers == 3
        assert updated.performance.page_size == 20
        assert config.performance.max_workers == 8

    def test_no_overrides_returns_same_config(self):
        config = make_config()
        assert clean_module.apply_overrides(config, None, None) is config
