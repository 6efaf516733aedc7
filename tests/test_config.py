"""
Configuration loading: defaults, .env, environment, overrides.
"""

import pytest

from cairn.config import CairnConfig, ConfigError, ConfigLoader


class TestConfigLoader:

    def test_defaults(self):
        config = ConfigLoader.load(env_file=None, environ={})
        assert config == CairnConfig()
        assert config.port == 3000
        assert config.static_route == "/static"
        assert config.cookie_secret == "qwerty"
        assert config.twitter_auth_enabled is False

    def test_environment(self):
        config = ConfigLoader.load(
            env_file=None,
            environ={
                "CAIRN_PORT": "4000",
                "CAIRN_TWITTER_AUTH_ENABLED": "true",
                "CAIRN_CLOUDINARY_CLOUD_NAME": "demo",
                "UNRELATED": "x",
            },
        )
        assert config.port == 4000
        assert config.twitter_auth_enabled is True
        assert config.cloudinary["cloud_name"] == "demo"
        assert config.cloudinary["api_key"] is None

    def test_env_file_then_environment_then_overrides(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("CAIRN_PORT=5000\nCAIRN_NAME=From File\nCAIRN_ADMIN_PATH=/manage\n")

        config = ConfigLoader.load(
            env_file=str(env_file),
            environ={"CAIRN_PORT": "6000", "CAIRN_ADMIN_PATH": "/env"},
            overrides={"admin_path": "/override"},
        )
        assert config.name == "From File"
        assert config.port == 6000
        assert config.admin_path == "/override"

    def test_missing_env_file_is_skipped(self, tmp_path):
        config = ConfigLoader.load(env_file=str(tmp_path / "absent.env"), environ={})
        assert config.port == 3000

    def test_empty_optional_is_none(self):
        config = ConfigLoader.load(env_file=None, environ={"CAIRN_CLOUDINARY_API_KEY": ""})
        assert config.cloudinary_api_key is None

    def test_bad_integer(self):
        with pytest.raises(ConfigError):
            ConfigLoader.load(env_file=None, environ={"CAIRN_PORT": "three thousand"})

    def test_bad_boolean(self):
        with pytest.raises(ConfigError):
            ConfigLoader.load(env_file=None, environ={"CAIRN_COOKIE_SECURE": "maybe"})

    def test_unknown_override(self):
        with pytest.raises(ConfigError):
            ConfigLoader.load(env_file=None, environ={}, overrides={"colour": "red"})

    def test_custom_prefix(self):
        config = ConfigLoader.load(env_file=None, env_prefix="SITE_", environ={"SITE_PORT": "8080"})
        assert config.port == 8080


class TestCairnConfig:

    def test_frozen(self):
        config = CairnConfig()
        with pytest.raises(AttributeError):
            config.port = 1

    def test_with_overrides_coerces(self):
        config = CairnConfig().with_overrides(port="8000", cookie_secure="yes")
        assert config.port == 8000
        assert config.cookie_secure is True
