"""Configuration loading, overrides and validation."""

import pytest

from dicenft.config import ConfigManager, ConfigValue, get_config, get_config_manager
from dicenft.errors import ConfigError, ConfigValidationError
from dicenft.primitives import CanonicalAddr


class TestConfigValue:

    def test_default(self):
        assert ConfigValue(default=3).get() == 3

    def test_env_coercion(self, monkeypatch):
        monkeypatch.setenv("DICENFT_TEST_INT", "7")
        monkeypatch.setenv("DICENFT_TEST_BOOL", "yes")
        monkeypatch.setenv("DICENFT_TEST_LIST", "a, b,,c")
        assert ConfigValue(default=1, env_var="DICENFT_TEST_INT").get() == 7
        assert ConfigValue(default=False, env_var="DICENFT_TEST_BOOL").get() is True
        assert ConfigValue(default=[], env_var="DICENFT_TEST_LIST").get() == ["a", "b", "c"]

    def test_validator(self):
        value = ConfigValue(default=1, validator=lambda x: x > 0)
        with pytest.raises(ConfigValidationError):
            value.set(0)
        assert value.get() == 1

    def test_callbacks(self):
        seen = []
        value = ConfigValue(default=1)
        value.on_change(lambda old, new: seen.append((old, new)))
        value.set(5)
        assert seen == [(None, 5)]


class TestConfigManager:

    def test_singleton(self):
        assert ConfigManager() is get_config_manager()
        assert get_config() is get_config_manager().config

    def test_defaults(self):
        config = get_config()
        assert config.permissions.max_grantees.get() == 64
        assert config.collateral.administrators.get() == []
        assert config.collateral.require_payment.get() is False
        assert config.observability.audit_enabled.get() is True

    def test_set_and_get_by_path(self):
        manager = get_config_manager()
        manager.set("permissions.max_grantees", 8)
        assert manager.get("permissions.max_grantees") == 8

    def test_invalid_path(self):
        with pytest.raises(ConfigError):
            get_config_manager().get("permissions.nope")
        with pytest.raises(ConfigError):
            get_config_manager().set("permissions", 1)

    def test_env_wins_over_override(self, monkeypatch):
        manager = get_config_manager()
        manager.set("permissions.max_grantees", 8)
        monkeypatch.setenv("DICENFT_PERMISSIONS_MAX_GRANTEES", "4")
        assert manager.get("permissions.max_grantees") == 4

    def test_load_yaml(self, tmp_path):
        admin = CanonicalAddr(b"admin").to_base64()
        path = tmp_path / "dicenft.yaml"
        path.write_text(
            "permissions:\n"
            "  max_grantees: 5\n"
            "collateral:\n"
            f"  administrators: ['{admin}']\n"
            "  require_payment: true\n",
            encoding="utf-8",
        )
        manager = get_config_manager()
        manager.load_from_file(path)
        assert manager.get("permissions.max_grantees") == 5
        assert manager.get("collateral.require_payment") is True
        assert get_config().collateral.administrator_addresses() == [CanonicalAddr(b"admin")]

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("collateral:\n  grace_period: 10\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("permissions: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(path)

    def test_invalid_administrator(self):
        with pytest.raises(ConfigValidationError):
            get_config_manager().set("collateral.administrators", ["not base64!"])

    def test_load_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        assert get_config_manager().load_defaults() == []
        (tmp_path / "dicenft.yaml").write_text("observability:\n  log_format: text\n", encoding="utf-8")
        loaded = get_config_manager().load_defaults()
        assert [p.name for p in loaded] == ["dicenft.yaml"]
        assert get_config().observability.log_format.get() == "text"

    def test_reload(self, tmp_path):
        path = tmp_path / "dicenft.yaml"
        path.write_text("permissions:\n  max_grantees: 3\n", encoding="utf-8")
        manager = get_config_manager()
        manager.load_from_file(path)
        path.write_text("permissions:\n  max_grantees: 9\n", encoding="utf-8")
        manager.reload()
        assert manager.get("permissions.max_grantees") == 9

    def test_validate(self, monkeypatch):
        assert get_config_manager().validate() == []
        monkeypatch.setenv("DICENFT_LOG_LEVEL", "loud")
        monkeypatch.setenv("DICENFT_PERMISSIONS_MAX_GRANTEES", "many")
        errors = get_config_manager().validate()
        assert any(e.startswith("observability.log_level") for e in errors)
        assert any(e.startswith("permissions.max_grantees") for e in errors)

    def test_to_yaml(self):
        text = get_config().to_yaml()
        assert "max_grantees: 64" in text
