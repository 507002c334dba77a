"""
Tests for environment-based configuration
"""

from account_core.config import AccountCoreConfig, get_config, reload_config


class TestConfig:

    def test_defaults(self):
        config = AccountCoreConfig()

        assert config.database_url == ":memory:"
        assert config.api_port == 8090
        assert config.overdraft_fee == "35.00"
        assert config.default_overdraft_limit == "500.00"
        assert config.default_interest_rate == "0.05"
        assert config.interest_batch_enabled is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ACCOUNT_CORE_OVERDRAFT_FEE", "25.00")
        monkeypatch.setenv("ACCOUNT_CORE_INTEREST_BATCH_ENABLED", "true")
        monkeypatch.setenv("ACCOUNT_CORE_API_PORT", "9000")

        config = AccountCoreConfig()

        assert config.overdraft_fee == "25.00"
        assert config.interest_batch_enabled is True
        assert config.api_port == 9000

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("ACCOUNT_CORE_LOG_LEVEL", "DEBUG")
        try:
            reloaded = reload_config()
            assert reloaded.log_level == "DEBUG"
            assert get_config() is reloaded
        finally:
            monkeypatch.delenv("ACCOUNT_CORE_LOG_LEVEL")
            reload_config()
        assert get_config() is not original
