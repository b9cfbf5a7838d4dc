"""
Unit Tests for Configuration Management.

Black box tests against the public interface of config.py.
Tests run against the real YAML files in config/settings/.
Failure scenarios use tmp_path to create controlled filesystems.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from portal.backend.core.config import (
    AppConfig,
    find_project_root,
    get_app_config,
    get_database_url,
    get_redis_url,
    get_settings,
    load_yaml_config,
    validate_project_root,
)
from portal.backend.core.config_schema import BillingSchema, JobsSchema, SecuritySchema

CONFIG_FILES = (
    "application.yaml",
    "database.yaml",
    "logging.yaml",
    "features.yaml",
    "security.yaml",
    "integrations.yaml",
    "billing.yaml",
    "jobs.yaml",
)


class TestFindProjectRoot:
    def test_finds_root_from_project_directory(self):
        root = find_project_root()
        assert (root / ".project_root").exists()
        assert (root / "config" / "settings").is_dir()

    def test_raises_when_no_marker_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(RuntimeError, match="Project root not found"):
            find_project_root()

    def test_validate_exits_when_marker_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit):
            validate_project_root()


class TestLoadYamlConfig:
    @pytest.mark.parametrize("filename", CONFIG_FILES)
    def test_every_settings_file_loads(self, filename):
        data = load_yaml_config(filename)
        assert isinstance(data, dict)
        assert data

    def test_raises_for_nonexistent_file(self):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_yaml_config("does_not_exist.yaml")

    def test_returns_empty_dict_for_empty_yaml(self, tmp_path, monkeypatch):
        (tmp_path / ".project_root").touch()
        (tmp_path / "config" / "settings").mkdir(parents=True)
        (tmp_path / "config" / "settings" / "empty.yaml").write_text("")
        monkeypatch.chdir(tmp_path)
        assert load_yaml_config("empty.yaml") == {}


class TestAppConfig:
    def test_all_sections_validate(self):
        """The shipped YAML must satisfy the strict schemas."""
        config = AppConfig()
        assert config.application.api_prefix == "/api/v1"
        assert config.security.jwt.algorithm == "HS256"
        assert config.integrations.shopify.api_version == "2024-01"
        assert config.billing.invoice_number_prefix == "INV-"

    def test_invoice_numbering_defaults(self):
        billing = get_app_config().billing
        assert billing.invoice_number_base == 1084
        assert billing.invoice_number_width == 5

    def test_every_job_queue_type_is_unique(self):
        queues = get_app_config().jobs.queues
        types = [t for queue in queues.values() for t in queue.types]
        assert len(types) == len(set(types))

    def test_get_app_config_is_cached(self):
        assert get_app_config() is get_app_config()

    def test_invalid_yaml_reports_file_name(self, tmp_path, monkeypatch):
        root = find_project_root()
        settings_dir = tmp_path / "config" / "settings"
        settings_dir.mkdir(parents=True)
        (tmp_path / ".project_root").touch()
        for filename in CONFIG_FILES:
            (settings_dir / filename).write_text((root / "config" / "settings" / filename).read_text())
        (settings_dir / "billing.yaml").write_text("invoice_number_prefix: INV-\n")
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ValueError, match="billing.yaml"):
            AppConfig()


class TestSchemas:
    def test_unknown_keys_rejected(self):
        with pytest.raises(PydanticValidationError):
            BillingSchema(
                invoice_number_prefix="INV-",
                invoice_number_base=1,
                invoice_number_width=5,
                payment_link_expire_days=30,
                default_due_days=30,
                default_tax_rate=0,
                reminder_schedule_days=[3, 7, 14],
                surprise=True,
            )

    def test_missing_keys_rejected(self):
        with pytest.raises(PydanticValidationError):
            JobsSchema(max_retries=3)

    def test_security_requires_rate_limits(self):
        with pytest.raises(PydanticValidationError):
            SecuritySchema(
                jwt={"algorithm": "HS256", "audience": "a", "session_expire_days": 7},
                cookie={"name": "s", "secure": False, "samesite": "lax"},
                invite_token_expire_days=7,
                password_min_length=8,
            )


class TestConnectionUrls:
    def test_database_url_uses_asyncpg_and_secret(self):
        url = get_database_url()
        db = get_app_config().database
        assert url.startswith("postgresql+asyncpg://")
        assert get_settings().db_password in url
        assert url.endswith(f"@{db.host}:{db.port}/{db.name}")

    def test_sync_database_url(self):
        assert get_database_url(async_driver=False).startswith("postgresql://")

    def test_redis_url(self):
        redis = get_app_config().database.redis
        url = get_redis_url()
        assert url.startswith("redis://:")
        assert url.endswith(f"@{redis.host}:{redis.port}/{redis.db}")
