"""
Unit tests for configuration objects.
"""

import pytest

from sandboxserver.config import AppInfo, ServerConfig, StorageContext


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults_are_valid(self):
        """Test that the defaults pass validation."""
        config = ServerConfig()
        config.validate()

        assert config.port == 8080
        assert config.cache_capacity == 20
        assert config.api_prefix == "/api"

    def test_port_zero_allowed(self):
        """Test that an ephemeral port is accepted."""
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("overrides", [
        {"port": 70000},
        {"port": -1},
        {"min_workers": 0},
        {"min_workers": 4, "max_workers": 2},
        {"queue_size": 0},
        {"timeout": 0},
        {"cache_capacity": 0},
        {"api_prefix": "api"},
        {"api_prefix": "/api/"},
        {"log_format": "xml"},
    ])
    def test_invalid(self, overrides: dict):
        """Test that nonsense values raise ValueError."""
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_from_env(self, monkeypatch):
        """Test reading SANDBOX_* variables."""
        monkeypatch.setenv("SANDBOX_PORT", "9090")
        monkeypatch.setenv("SANDBOX_ROOT", "/srv/sandbox")
        monkeypatch.setenv("SANDBOX_CACHE_CAPACITY", "5")
        monkeypatch.setenv("SANDBOX_LOG_FORMAT", "json")
        monkeypatch.delenv("SANDBOX_ADVERTISE_HOST", raising=False)

        config = ServerConfig.from_env()

        assert config.port == 9090
        assert config.sandbox_root == "/srv/sandbox"
        assert config.cache_capacity == 5
        assert config.log_format == "json"
        assert config.advertise_host is None


class TestStorageContext:
    """Tests for StorageContext."""

    def test_work_and_static_dirs(self):
        """Test that the server's directories live under files_dir."""
        storage = StorageContext()
        config = ServerConfig()

        assert storage.work_dir(config) == "/data/storage/el2/base/files/sandbox_server"
        assert storage.static_dir(config) == "/data/storage/el2/base/files/sandbox_server/static"

    def test_custom_files_dir(self):
        """Test a trailing slash on files_dir."""
        storage = StorageContext(files_dir="/data/storage/el1/base/files/")

        assert storage.work_dir(ServerConfig()) == "/data/storage/el1/base/files/sandbox_server"


class TestAppInfo:
    """Tests for AppInfo."""

    def test_to_dict(self):
        """Test the camelCase payload."""
        info = AppInfo(version_code=3, version_name="1.2", bundle_name="com.x", name="X")

        assert info.to_dict() == {"versionCode": 3, "versionName": "1.2", "bundleName": "com.x", "name": "X"}
