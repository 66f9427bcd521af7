"""Tests for environment-based configuration."""
import pytest

from medistream.config import DEFAULT_DB_PATH, load_config

ENV_VARS = [
    "SUPABASE_URL", "SUPABASE_ANON_KEY", "WORKFLOW_PROXY_URL", "WORKFLOW_PROXY_KEY", "WORKFLOWS",
    "MEDICATIONS_POLL_SECONDS", "UNMET_NEEDS_POLL_SECONDS", "TACTICS_POLL_SECONDS", "WORKFLOW_POLL_SECONDS",
    "HTTP_TIMEOUT_SECONDS", "MEDISTREAM_DB_PATH", "MEDISTREAM_USER_EMAIL",
    "LLM_PROVIDER", "LLM_API_KEY", "LLM_MODEL", "LLM_BASE_URL",
]


@pytest.fixture
def env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co/")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    return monkeypatch


class TestLoadConfig:

    def test_defaults(self, env):
        config = load_config()
        assert config.store.url == "https://abc.supabase.co"
        assert config.proxy.url == "https://abc.supabase.co/functions/v1/n8n-proxy"
        assert config.proxy.api_key == "anon"
        assert [w.name for w in config.proxy.workflows] == ["Drug Dealer", "Unmet Needs", "Pharma Tactics"]
        assert config.polling.medications_seconds == 30.0
        assert config.polling.workflow_seconds == 10.0
        assert config.db_path == DEFAULT_DB_PATH
        assert config.user_email is None
        assert not config.llm.enabled

    def test_missing_required(self, env):
        env.delenv("SUPABASE_URL")
        env.delenv("SUPABASE_ANON_KEY")
        with pytest.raises(ValueError, match="SUPABASE_URL, SUPABASE_ANON_KEY"):
            load_config()

    def test_overrides(self, env):
        env.setenv("WORKFLOWS", "abc:Nightly import, def")
        env.setenv("WORKFLOW_PROXY_KEY", "relay-token")
        env.setenv("TACTICS_POLL_SECONDS", "12.5")
        env.setenv("LLM_API_KEY", "sk-test")
        config = load_config()
        assert [(w.id, w.name) for w in config.proxy.workflows] == [("abc", "Nightly import"), ("def", "def")]
        assert config.proxy.api_key == "relay-token"
        assert config.polling.tactics_seconds == 12.5
        assert config.llm.enabled

    @pytest.mark.parametrize("value", ["0", "-5", "soon"])
    def test_bad_interval(self, env, value):
        env.setenv("MEDICATIONS_POLL_SECONDS", value)
        with pytest.raises(ValueError):
            load_config()
