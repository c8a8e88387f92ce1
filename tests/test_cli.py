"""Tests for the command-line entry point and its exit codes."""

import asyncio

import pytest
from typer.testing import CliRunner

from conftest import DATABASE_ID, FakeLinear, FakeNotion, RecordingSleep, make_issue
from linear_notion_sync import cli
from linear_notion_sync.core.types import RunSummary
from linear_notion_sync.errors import ConfigError, UpstreamQueryError
from linear_notion_sync.runner import SyncRun, run_sync_async

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch, clear_sync_env):
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)


def _fake_run(errors: int = 0, seen: list | None = None):
    def fake(cfg, **kwargs):
        if seen is not None:
            seen.append(cfg)
        summary = RunSummary()
        for i in range(errors):
            summary.record("errored", f"error ENG-{i}: boom")
        return SyncRun(summary=summary, since="2026-10-18T09:48:00.000Z", required_label="x")

    return fake


def test_missing_configuration_exits_2():
    result = runner.invoke(cli.app, ["run", "--no-progress"])
    assert result.exit_code == 2
    assert "LINEAR_API_KEY" in result.output


def test_config_error_from_run_exits_2(monkeypatch):
    def fake(cfg, **kwargs):
        raise ConfigError("Missing required configuration: NOTION_TOKEN")

    monkeypatch.setattr(cli, "run_sync", fake)
    result = runner.invoke(cli.app, ["run"])
    assert result.exit_code == 2


def test_feed_failure_exits_1(monkeypatch):
    def fake(cfg, **kwargs):
        raise UpstreamQueryError("Linear query returned HTTP 500", 500, "oops")

    monkeypatch.setattr(cli, "run_sync", fake)
    result = runner.invoke(cli.app, ["run"])
    assert result.exit_code == 1
    assert "Linear query failed" in result.output


def test_record_errors_exit_0_by_default(monkeypatch):
    monkeypatch.setattr(cli, "run_sync", _fake_run(errors=2))
    result = runner.invoke(cli.app, ["run"])
    assert result.exit_code == 0


def test_record_errors_exit_1_with_fail_on_error(monkeypatch):
    monkeypatch.setattr(cli, "run_sync", _fake_run(errors=2))
    result = runner.invoke(cli.app, ["run", "--fail-on-error"])
    assert result.exit_code == 1
    assert "2 record(s) failed" in result.output


def test_options_override_config(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("sync:\n  lookback_minutes: 60\n", encoding="utf-8")
    seen = []
    monkeypatch.setattr(cli, "run_sync", _fake_run(seen=seen))

    result = runner.invoke(
        cli.app,
        [
            "run",
            "--config",
            str(config_path),
            "--lookback-minutes",
            "20",
            "--required-label",
            "Customer - Acme",
            "--dry-run",
            "--step-summary",
            str(tmp_path / "summary.md"),
        ],
    )

    assert result.exit_code == 0
    (cfg,) = seen
    assert cfg.sync.lookback_minutes == 20
    assert cfg.sync.required_label == "Customer - Acme"
    assert cfg.sync.dry_run is True
    assert cfg.output.step_summary_path == str(tmp_path / "summary.md")


def test_invalid_yaml_exits_2(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("sync: [unclosed\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["run", "--config", str(config_path)])
    assert result.exit_code == 2


def test_malformed_yaml_value_exits_2(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("linear:\n  page_size: lots\n", encoding="utf-8")
    monkeypatch.setenv("LINEAR_API_KEY", "lin_test")
    monkeypatch.setenv("NOTION_TOKEN", "secret_test")
    monkeypatch.setenv("NOTION_DATABASE_ID", DATABASE_ID)

    result = runner.invoke(cli.app, ["run", "--no-progress", "--config", str(config_path)])

    assert result.exit_code == 2
    assert "page_size" in result.output


def test_full_run_with_default_logging_exits_0(monkeypatch):
    monkeypatch.setenv("LINEAR_API_KEY", "lin_test")
    monkeypatch.setenv("NOTION_TOKEN", "secret_test")
    monkeypatch.setenv("NOTION_DATABASE_ID", DATABASE_ID)
    notion = FakeNotion()
    linear = FakeLinear([[make_issue("ENG-1", labels=["Customer - Hapag Lloyd", "Bug"])]])

    def run_against_fakes(cfg, *, logger, console, show_progress):
        cfg.sync.pacing_seconds = 0
        return asyncio.run(
            run_sync_async(
                cfg,
                logger=logger,
                console=console,
                show_progress=show_progress,
                linear_transport=linear.transport,
                notion_transport=notion.transport,
                sleep=RecordingSleep(),
            )
        )

    monkeypatch.setattr(cli, "run_sync", run_against_fakes)
    result = runner.invoke(cli.app, ["run"])

    assert result.exit_code == 0, result.output
    assert "processed=1, created=1" in result.output
    assert notion.page_for("ENG-1") is not None
