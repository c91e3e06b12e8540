"""Unit tests for typed config dataclasses."""

from hrflow.config import CONFIG, AppConfig, NotifyConfig, ResolverConfig
from hrflow.domain.managers import ManagerSettings


class TestResolverConfig:
    def test_defaults(self):
        rc = ResolverConfig()
        assert rc.threshold == 0.6
        assert rc.auto_select == 0.95
        assert rc.max_candidates == 3


class TestNotifyConfig:
    def test_unconfigured(self):
        assert NotifyConfig().is_configured is False

    def test_configured(self):
        nc = NotifyConfig(webhook_url="https://relay.test/hook", webhook_token="t")
        assert nc.is_configured is True


class TestManagerSettings:
    def test_defaults(self):
        ms = ManagerSettings()
        assert ms.default_pto_days == 15
        assert ms.low_stock_threshold == 5
        assert ms.hr_email == "hr@company.com"
        assert ms.candidate_archive_days == 90


class TestAppConfig:
    def test_defaults(self):
        ac = AppConfig()
        assert ac.port == 3000
        assert ac.confirmation_ttl_minutes == 30
        assert ac.report_permission_denied is False
        assert isinstance(ac.resolver, ResolverConfig)
        assert isinstance(ac.managers, ManagerSettings)

    def test_from_env(self):
        ac = AppConfig.from_env()
        assert ac.host == CONFIG["host"]
        assert ac.data_dir == CONFIG["data_dir"]
        assert ac.resolver.threshold == CONFIG["match_threshold"]
        assert ac.notify.webhook_url == CONFIG["notify_webhook_url"]
        assert ac.managers.hr_email == CONFIG["hr_email"]

    def test_independent_instances(self):
        a = AppConfig()
        b = AppConfig()
        a.resolver.threshold = 0.9
        assert b.resolver.threshold == 0.6

    def test_env_parsing_falls_back(self, monkeypatch):
        from hrflow import config

        monkeypatch.setenv("HRFLOW_TEST_INT", "abc")
        monkeypatch.setenv("HRFLOW_TEST_FLOAT", "1.5")
        monkeypatch.setenv("HRFLOW_TEST_BOOL", "Yes")
        assert config._env_int("HRFLOW_TEST_INT", 7) == 7
        assert config._env_float("HRFLOW_TEST_FLOAT", 0.6, 0.0, 1.0) == 0.6
        assert config._env_bool("HRFLOW_TEST_BOOL", "false") is True
