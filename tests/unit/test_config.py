"""
Unit tests for config loading and server resolution.
"""

import json

import pytest

from reporter.auth.tokens import InMemoryTokenStore
from reporter.config import (
    Config,
    expand_env_vars,
    get_enabled_servers,
    init_config,
    load_config,
    resolve_secret,
)
from reporter.errors import ConfigError


class TestLoadConfig:
    """Test reading the config file."""

    def test_missing_file_suggests_init(self, tmp_path):
        with pytest.raises(ConfigError, match="reporter init"):
            load_config(tmp_path / "config.json")

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"report": {"lookback_days": 0}}))

        with pytest.raises(ConfigError, match="Invalid config"):
            load_config(path)

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"github": {"enabled": True, "orgs": ["acme"]}}))
        monkeypatch.setenv("REPORTER_CONFIG", str(path))

        config = load_config()

        assert config.github.orgs == ["acme"]
        assert config.llm.provider == "anthropic"

    def test_init_writes_defaults_once(self, tmp_path):
        path = tmp_path / "nested" / "config.json"

        assert init_config(path) == path
        path.write_text(json.dumps({"report": {"lookback_days": 7}}))
        init_config(path)

        assert load_config(path).report.lookback_days == 7


class TestSecrets:
    """Test secret and env-var resolution."""

    def test_env_name_is_looked_up(self, monkeypatch):
        monkeypatch.setenv("MY_TOKEN", "secret")

        assert resolve_secret("MY_TOKEN") == "secret"

    def test_unset_env_name(self, monkeypatch):
        monkeypatch.delenv("MISSING_TOKEN", raising=False)

        assert resolve_secret("MISSING_TOKEN") is None

    def test_literal_value(self):
        assert resolve_secret("ghp_literalToken") == "ghp_literalToken"

    def test_expand_required_and_default(self, monkeypatch):
        monkeypatch.setenv("HOST", "example.com")
        monkeypatch.delenv("PORT", raising=False)

        assert expand_env_vars("https://${HOST}:${PORT:-8080}") == "https://example.com:8080"

    def test_expand_missing_required(self, monkeypatch):
        monkeypatch.delenv("NOPE", raising=False)

        with pytest.raises(ConfigError, match="NOPE"):
            expand_env_vars("${NOPE}")


class TestEnabledServers:
    """Test turning config into ServerSpecs."""

    def test_order_and_transports(self, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "ghp")
        monkeypatch.setenv("SLACK_TOKEN", "xoxb")
        config = Config.model_validate(
            {
                "github": {"enabled": True, "token_env": "GH_TOKEN"},
                "jira": {"enabled": True},
                "slack": {"enabled": True, "token_env": "SLACK_TOKEN"},
                "mcp_servers": {
                    "notes": {"type": "stdio", "command": "notes-mcp", "args": ["--ro"]},
                    "wiki": {"type": "http", "url": "https://wiki.example.com/mcp"},
                },
            }
        )

        specs = get_enabled_servers(config)

        assert [s.name for s in specs] == ["github", "jira", "slack", "notes", "wiki"]
        assert specs[0].env == {"GITHUB_PERSONAL_ACCESS_TOKEN": "ghp"}
        assert specs[1].transport == "http" and specs[1].auth == "oauth"
        assert specs[2].env == {"SLACK_BOT_TOKEN": "xoxb"}
        assert specs[3].args == ["--ro"]
        assert specs[4].url == "https://wiki.example.com/mcp"

    def test_github_without_token(self, monkeypatch):
        config = Config.model_validate({"github": {"enabled": True}})

        with pytest.raises(ConfigError, match="reporter login github"):
            get_enabled_servers(config)

    def test_stored_tokens_are_used(self):
        store = InMemoryTokenStore(
            {"github": {"access_token": "stored-gh"}, "slack": {"access_token": "stored-slack"}}
        )
        config = Config.model_validate({"github": {"enabled": True}, "slack": {"enabled": True}})

        specs = get_enabled_servers(config, store)

        assert specs[0].env["GITHUB_PERSONAL_ACCESS_TOKEN"] == "stored-gh"
        assert specs[1].env["SLACK_BOT_TOKEN"] == "stored-slack"

    def test_slack_token_env_wins(self, monkeypatch):
        monkeypatch.setenv("SLACK_TOKEN", "from-env")
        store = InMemoryTokenStore({"slack": {"access_token": "stored"}})
        config = Config.model_validate({"slack": {"enabled": True, "token_env": "SLACK_TOKEN"}})

        assert get_enabled_servers(config, store)[0].env["SLACK_BOT_TOKEN"] == "from-env"

    def test_custom_server_missing_command(self):
        config = Config.model_validate({"mcp_servers": {"bad": {"type": "stdio"}}})

        with pytest.raises(ConfigError, match='"bad"'):
            get_enabled_servers(config)

    def test_custom_server_env_expansion(self, monkeypatch):
        monkeypatch.setenv("WIKI_KEY", "k-123")
        config = Config.model_validate(
            {
                "mcp_servers": {
                    "wiki": {
                        "type": "http",
                        "url": "https://wiki.example.com/mcp",
                        "headers": {"Authorization": "Bearer ${WIKI_KEY}"},
                    }
                }
            }
        )

        assert get_enabled_servers(config)[0].headers == {"Authorization": "Bearer k-123"}

    def test_nothing_enabled(self):
        assert get_enabled_servers(Config()) == []
