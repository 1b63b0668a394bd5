"""Tests for the check / watch command line."""
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from .. import __main__ as cli

ENV_VARS = [
    "IS_DEV", "TALLY_API_KEY", "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "SEEN_STORE", "BASELINE_ON_EMPTY",
    "GITHUB_API_URL", "GITHUB_UPSTREAM_OWNER", "GITHUB_UPSTREAM_REPO", "GITHUB_BASE_BRANCH", "PROPOSALS_PATH",
    "SNAPSHOT_API_URL", "POLL_INTERVAL_SECONDS", "MAX_PROPOSALS_PER_RUN", "DATABASE_HOST",
]


@pytest.fixture
def env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("GITHUB_REPO_OWNER", "bot")
    monkeypatch.setenv("GITHUB_REPO_NAME", "docs")
    monkeypatch.setenv("SEEN_STORE", "memory")
    monkeypatch.setenv("BASELINE_ON_EMPTY", "false")
    return monkeypatch


class TestCheckCommand:
    """python -m proposal_publisher check"""

    def test_success_prints_summary(self, env, upstream, fake_github, capsys):
        code = cli.main(["check"], transport=httpx.MockTransport(upstream.handler))

        assert code == 0
        summary = json.loads(capsys.readouterr().out)
        assert [r["proposal_id"] for r in summary["published"]] == ["42"]
        assert len(fake_github.pulls) == 1

    def test_proposal_failure_exits_one(self, env, upstream, fake_github, capsys):
        fake_github.fail["list"] = "network"
        code = cli.main(["check"], transport=httpx.MockTransport(upstream.handler))

        assert code == 1
        summary = json.loads(capsys.readouterr().out)
        assert list(summary["failed"]) == ["42"]

    def test_source_failure_exits_one(self, env, upstream, fake_github):
        upstream.snapshot_status = 500
        assert cli.main(["check"], transport=httpx.MockTransport(upstream.handler)) == 1
        assert fake_github.refs == {}

    def test_baseline_run_publishes_nothing(self, env, upstream, fake_github, capsys):
        env.setenv("BASELINE_ON_EMPTY", "true")
        assert cli.main(["check"], transport=httpx.MockTransport(upstream.handler)) == 0
        assert json.loads(capsys.readouterr().out)["baselined"] == ["42"]
        assert fake_github.pulls == []

    def test_missing_github_config_exits_two(self, env, upstream):
        env.delenv("GITHUB_TOKEN")
        assert cli.main(["check"], transport=httpx.MockTransport(upstream.handler)) == 2

    def test_durable_store_without_database_exits_two(self, env, upstream):
        env.delenv("SEEN_STORE")
        assert cli.main(["check"], transport=httpx.MockTransport(upstream.handler)) == 2

    def test_unknown_store_exits_two(self, env, upstream):
        env.setenv("SEEN_STORE", "redis")
        assert cli.main(["check"], transport=httpx.MockTransport(upstream.handler)) == 2


class TestWatchCommand:
    """python -m proposal_publisher watch"""

    def test_interval_flag(self, env, upstream):
        with patch.object(cli, "run_forever", new=AsyncMock()) as loop:
            code = cli.main(["watch", "--interval", "7"], transport=httpx.MockTransport(upstream.handler))
        assert code == 0
        assert loop.await_args.args[1] == 7

    def test_interval_from_settings(self, env, upstream):
        env.setenv("POLL_INTERVAL_SECONDS", "42")
        with patch.object(cli, "run_forever", new=AsyncMock()) as loop:
            cli.main(["watch"], transport=httpx.MockTransport(upstream.handler))
        assert loop.await_args.args[1] == 42

    def test_requires_a_command(self):
        with pytest.raises(SystemExit):
            cli.main([])
