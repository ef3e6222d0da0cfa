"""
Tests for the configuration system.
"""

import os
from pathlib import Path

import pytest

from askai_kvs.config import (
    FSStoreConfig,
    GatewayConfig,
    LinkConfig,
    LoggingConfig,
    OpenAIConfig,
    PostgresStoreConfig,
    ProviderConfig,
    RedisStoreConfig,
    ServerConfig,
    Settings,
    StoreConfig,
    configure,
    get_settings,
    load_env,
    reset_settings,
)


@pytest.fixture(autouse=True)
def _reset_global_settings():
    reset_settings()
    yield
    reset_settings()


class TestProviderConfig:
    """Test provider configuration classes."""

    def test_defaults(self):
        config = ProviderConfig()

        assert config.timeout == 60.0
        assert config.default_model == "gpt-4-turbo"
        assert config.default_temperature == 0.7
        assert config.default_max_tokens == 500

    def test_validation(self):
        with pytest.raises(ValueError):
            ProviderConfig(timeout=0)
        with pytest.raises(ValueError):
            ProviderConfig(default_max_tokens=0)
        with pytest.raises(ValueError):
            ProviderConfig(default_model="")

    def test_openai_key_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert OpenAIConfig().api_key == "sk-test"


class TestStoreConfig:
    def test_defaults(self):
        config = StoreConfig()
        assert config.backend == "memory"
        assert config.max_payload_bytes == 256 * 1024

    def test_invalid_backend(self):
        with pytest.raises(ValueError):
            StoreConfig(backend="sqlite")

    def test_fs_coerces_path(self):
        assert FSStoreConfig(data_dir="/tmp/kvs").data_dir == Path("/tmp/kvs")

    def test_postgres_validation(self):
        with pytest.raises(ValueError):
            PostgresStoreConfig(pg_dsn="mysql://x")
        with pytest.raises(ValueError):
            PostgresStoreConfig(pg_dsn="postgresql://x", table="bad-name")
        with pytest.raises(ValueError):
            PostgresStoreConfig(pg_dsn="postgresql://x", pool_min_size=5, pool_max_size=2)

    def test_redis_validation(self):
        assert RedisStoreConfig(redis_url="rediss://cache:6380/1").key_prefix == "kvs"
        with pytest.raises(ValueError):
            RedisStoreConfig(redis_url="http://cache")


class TestOtherSections:
    def test_gateway_defaults(self):
        config = GatewayConfig()
        assert config.retry_temperature == 0.2
        assert config.max_tokens_limit == 4_000
        assert config.attempt_timeout is None

    def test_gateway_validation(self):
        with pytest.raises(ValueError):
            GatewayConfig(retry_temperature=-1)
        with pytest.raises(ValueError):
            GatewayConfig(attempt_timeout=0)

    def test_link_config(self, monkeypatch):
        monkeypatch.setenv("LINK_SECRET", "s3cret")
        assert LinkConfig().secret == "s3cret"
        with pytest.raises(ValueError):
            LinkConfig(default_ttl_seconds=0)
        with pytest.raises(ValueError):
            LinkConfig(base_url="ftp://files")

    def test_server_origins_from_csv(self):
        config = ServerConfig(allowed_origins="https://a.example, https://b.example")
        assert config.allowed_origins == ["https://a.example", "https://b.example"]

    def test_server_prefix_validation(self):
        with pytest.raises(ValueError):
            ServerConfig(kvs_prefix="kvs")
        with pytest.raises(ValueError):
            ServerConfig(kvs_prefix="/same", askai_prefix="/same")

    def test_logging_validation(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="LOUD")
        with pytest.raises(ValueError):
            LoggingConfig(format="xml")


class TestSettingsFromEnv:
    """Environment loading with the ASKAI_ prefix."""

    def test_reads_sections(self, monkeypatch):
        monkeypatch.setenv("ASKAI_OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("ASKAI_OPENAI_MODEL", "gpt-4o")
        monkeypatch.setenv("ASKAI_STORE_BACKEND", "redis")
        monkeypatch.setenv("ASKAI_STORE_REDIS_URL", "redis://cache:6379/2")
        monkeypatch.setenv("ASKAI_STORE_MAX_PAYLOAD_BYTES", "1024")
        monkeypatch.setenv("ASKAI_GATEWAY_RETRY_TEMPERATURE", "0.1")
        monkeypatch.setenv("ASKAI_LINK_SECRET", "link-secret")
        monkeypatch.setenv("ASKAI_LINK_TTL_SECONDS", "60")
        monkeypatch.setenv("ASKAI_ALLOWED_ORIGINS", "*")
        monkeypatch.setenv("ASKAI_DEBUG", "true")
        monkeypatch.setenv("ASKAI_LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.provider.api_key == "sk-env"
        assert settings.provider.default_model == "gpt-4o"
        assert isinstance(settings.store, RedisStoreConfig)
        assert settings.store.redis_url == "redis://cache:6379/2"
        assert settings.store.max_payload_bytes == 1024
        assert settings.gateway.retry_temperature == 0.1
        assert settings.links.secret == "link-secret"
        assert settings.links.default_ttl_seconds == 60
        assert settings.server.allowed_origins == ["*"]
        assert settings.server.debug is True
        assert settings.logging.level == "DEBUG"

    def test_invalid_backend(self, monkeypatch):
        monkeypatch.setenv("ASKAI_STORE_BACKEND", "sqlite")
        with pytest.raises(ValueError):
            Settings.from_env()


class TestSettingsFromFile:
    def test_yaml(self, tmp_path):
        path = tmp_path / "askai.yaml"
        path.write_text(
            "provider:\n"
            "  default_model: gpt-5-mini\n"
            "models:\n"
            "  gpt-5-mini:\n"
            "    reasoning_effort: low\n"
            "store:\n"
            "  backend: fs\n"
            f"  data_dir: {tmp_path / 'data'}\n"
            "server:\n"
            "  allowed_origins: https://app.example\n"
        )

        settings = Settings.from_file(path)

        assert settings.provider.default_model == "gpt-5-mini"
        assert settings.models == {"gpt-5-mini": {"reasoning_effort": "low"}}
        assert isinstance(settings.store, FSStoreConfig)
        assert settings.store.data_dir == tmp_path / "data"
        assert settings.server.allowed_origins == ["https://app.example"]

    def test_toml(self, tmp_path):
        path = tmp_path / "askai.toml"
        path.write_text('[gateway]\nretry_temperature = 0.3\n\n[links]\ndefault_ttl_seconds = 120\n')

        settings = Settings.from_file(path)

        assert settings.gateway.retry_temperature == 0.3
        assert settings.links.default_ttl_seconds == 120

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("store:\n  backend: postgres\n")
        with pytest.raises(ValueError, match="Configuration validation failed"):
            Settings.from_file(path)

    def test_unknown_provider_field(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("provider:\n  max_retries: 3\n")
        with pytest.raises(ValueError):
            Settings.from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Settings.from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "askai.ini"
        path.write_text("[x]\n")
        with pytest.raises(ValueError):
            Settings.from_file(path)


class TestGlobalSettings:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_configure_overrides_section(self):
        gateway = GatewayConfig(retry_temperature=0.05)
        settings = configure(Settings(), gateway=gateway)
        assert get_settings() is settings
        assert settings.gateway.retry_temperature == 0.05

    def test_to_dict(self):
        data = Settings(store=FSStoreConfig(data_dir="/tmp/kvs")).to_dict()
        assert data["store"]["data_dir"] == "/tmp/kvs"
        assert data["store"]["backend"] == "fs"

    def test_load_env(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("ASKAI_TEST_VALUE=from-dotenv\n")
        monkeypatch.delenv("ASKAI_TEST_VALUE", raising=False)

        assert load_env(str(env_file)) is True
        assert os.environ["ASKAI_TEST_VALUE"] == "from-dotenv"
        monkeypatch.delenv("ASKAI_TEST_VALUE")
