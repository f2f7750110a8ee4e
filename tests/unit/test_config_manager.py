"""
Tests for the configuration management system.
"""
import os
import tempfile
import pytest
import json
import yaml
from pathlib import Path
from unittest.mock import patch

from transfer_core.config.config_manager import (
    ArchiveCompression,
    ConfigManager,
    ConfigValidationError,
    Environment,
    LogLevel,
    StorageBackendType,
    get_config,
    init_config,
)


BLOG_COLLECTIONS = [
    {
        "name": "Post",
        "export_with": [
            {"target_collection": "Comment", "foreign_field": "postId"},
            {"targetCollection": "Tag", "localField": "tagIds"},
        ],
    },
    {"name": "Comment"},
    {"name": "Tag", "format": "csv"},
]


def _write_yaml(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(data, f)


class TestConfigManager:
    """Test the ConfigManager class."""

    def test_singleton_pattern(self):
        """Test that ConfigManager follows singleton pattern."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {}, clear=True):
                config1 = ConfigManager(temp_dir)
                config2 = ConfigManager()
                assert config1 is config2

    def test_default_configuration(self):
        """Test that default configuration is properly loaded."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(temp_dir)

            assert config.config.environment == Environment.DEVELOPMENT
            assert config.config.logging.level == LogLevel.INFO
            assert config.config.transfer.default_format == "json"
            assert config.config.transfer.csv_fields == ["class", "text"]
            assert config.config.transfer.archive_compression == ArchiveCompression.DEFLATED
            assert config.config.storage.backend == StorageBackendType.MEMORY
            assert config.config.collections == []
            assert config.loaded_files == []

    def test_yaml_config_loading(self):
        """Test loading configuration from YAML file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(
                Path(temp_dir) / "config.yaml",
                {
                    "environment": "testing",
                    "debug": True,
                    "transfer": {"csv_fields": ["title"], "archive_compression": "stored"},
                    "storage": {"backend": "sqlite", "sqlite": {"database_path": "/tmp/t.db"}},
                    "collections": BLOG_COLLECTIONS,
                },
            )

            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(temp_dir)

            assert config.config.environment == Environment.TESTING
            assert config.config.debug is True
            assert config.config.transfer.csv_fields == ["title"]
            assert config.config.transfer.archive_compression == ArchiveCompression.STORED
            assert config.config.storage.backend == StorageBackendType.SQLITE
            assert config.config.storage.sqlite.database_path == "/tmp/t.db"
            assert [c.name for c in config.config.collections] == ["Post", "Comment", "Tag"]

            post = config.get_collection("Post")
            assert post.export_with[0].target_collection == "Comment"
            assert post.export_with[0].foreign_field == "postId"
            assert post.export_with[1].target_collection == "Tag"
            assert post.export_with[1].local_field == "tagIds"
            assert config.get_collection("Tag").format == "csv"
            assert config.get_collection("Ghost") is None

    def test_json_config_loading(self):
        """Test loading configuration from JSON file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with open(Path(temp_dir) / "config.json", "w") as f:
                json.dump({"environment": "staging", "transfer": {"json_indent": 2}}, f)

            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(temp_dir)

            assert config.config.environment == Environment.STAGING
            assert config.config.transfer.json_indent == 2
            assert len(config.loaded_files) == 1

    def test_environment_specific_config(self):
        """Test loading environment-specific configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(Path(temp_dir) / "config.yaml", {"transfer": {"default_format": "json"}})
            _write_yaml(
                Path(temp_dir) / "environments" / "config.production.yaml",
                {"transfer": {"default_format": "csv"}},
            )

            with patch.dict(os.environ, {"ENVIRONMENT": "production"}, clear=True):
                config = ConfigManager(temp_dir)

            assert config.config.environment == Environment.PRODUCTION
            assert config.config.transfer.default_format == "csv"
            assert len(config.loaded_files) == 2

    def test_environment_variable_override(self):
        """Test that environment variables override file configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(Path(temp_dir) / "config.yaml", {"transfer": {"csv_fields": ["a"]}})
            env_vars = {
                "DEBUG": "true",
                "LOG_LEVEL": "debug",
                "TRANSFER_CSV_FIELDS": "class, text ,title",
                "TRANSFER_ARCHIVE_COMPRESSION": "STORED",
                "STORAGE_BACKEND": "sqlite",
                "SQLITE_DATABASE_PATH": "/tmp/env.db",
            }

            with patch.dict(os.environ, env_vars, clear=True):
                config = ConfigManager(temp_dir)

            assert config.config.debug is True
            assert config.config.logging.level == LogLevel.DEBUG
            assert config.config.transfer.csv_fields == ["class", "text", "title"]
            assert config.config.transfer.archive_compression == ArchiveCompression.STORED
            assert config.config.storage.backend == StorageBackendType.SQLITE
            assert config.config.storage.sqlite.database_path == "/tmp/env.db"

    def test_invalid_environment_value_is_ignored(self):
        """Invalid environment values keep the previous setting."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {"STORAGE_BACKEND": "cassandra"}, clear=True):
                config = ConfigManager(temp_dir)

            assert config.config.storage.backend == StorageBackendType.MEMORY

    def test_undeclared_relation_target_fails_validation(self):
        """Relations must point at declared collections."""
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(
                Path(temp_dir) / "config.yaml",
                {"collections": [{"name": "Post", "export_with": [{"model": "Comment", "foreignField": "postId"}]}]},
            )

            with patch.dict(os.environ, {}, clear=True):
                with pytest.raises(ConfigValidationError) as exc_info:
                    ConfigManager(temp_dir)

            assert "undeclared collection 'Comment'" in str(exc_info.value)

    def test_relation_with_both_fields_fails_validation(self):
        """A relation sets exactly one of foreign_field and local_field."""
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(
                Path(temp_dir) / "config.yaml",
                {
                    "collections": [
                        {
                            "name": "Post",
                            "export_with": [
                                {"model": "Tag", "foreign_field": "postId", "local_field": "tagIds"}
                            ],
                        },
                        {"name": "Tag"},
                    ]
                },
            )

            with patch.dict(os.environ, {}, clear=True):
                with pytest.raises(ConfigValidationError) as exc_info:
                    ConfigManager(temp_dir)

            assert "exactly one of foreign_field or local_field" in str(exc_info.value)

    def test_duplicate_collection_fails_validation(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(
                Path(temp_dir) / "config.yaml",
                {"collections": [{"name": "Post"}, {"name": "Post"}]},
            )

            with patch.dict(os.environ, {}, clear=True):
                with pytest.raises(ConfigValidationError):
                    ConfigManager(temp_dir)

    def test_get_and_set_methods(self):
        """Test the get and set methods for configuration values."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(temp_dir)

            assert config.get("transfer.default_format") == "json"
            assert config.get("nonexistent.key", "default") == "default"

            config.set("transfer.default_format", "csv")
            assert config.get("transfer.default_format") == "csv"
            assert config.config.transfer.default_format == "csv"

            with pytest.raises(ConfigValidationError):
                config.set("transfer.csv_fields", [])

            with pytest.raises(AttributeError):
                config.set("transfer.unknown", 1)

    def test_to_dict_method(self):
        """Test converting configuration to dictionary."""
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(Path(temp_dir) / "config.yaml", {"collections": BLOG_COLLECTIONS})

            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(temp_dir)
            config_dict = config.to_dict()

            assert config_dict["environment"] == "development"
            assert config_dict["storage"]["backend"] == "memory"
            assert config_dict["transfer"]["archive_compression"] == "deflated"
            assert config_dict["collections"][0]["export_with"][0] == {
                "target_collection": "Comment",
                "foreign_field": "postId",
                "local_field": None,
            }

    def test_save_to_file(self):
        """Test saving configuration to file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(temp_dir)

            config.save_to_file("saved.yaml", "yaml")
            with open(Path(temp_dir) / "saved.yaml", "r") as f:
                assert yaml.safe_load(f)["transfer"]["csv_fields"] == ["class", "text"]

            config.save_to_file("saved.json", "json")
            with open(Path(temp_dir) / "saved.json", "r") as f:
                assert json.load(f)["environment"] == "development"

    def test_saved_file_loads_back(self):
        """A saved configuration is a valid configuration file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            _write_yaml(Path(temp_dir) / "seed" / "config.yaml", {"collections": BLOG_COLLECTIONS})

            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(Path(temp_dir) / "seed")
                config.save_to_file("../config.yaml", "yaml")

                ConfigManager._instance = None
                reloaded = ConfigManager(temp_dir)

            assert [c.name for c in reloaded.config.collections] == ["Post", "Comment", "Tag"]

    def test_reload_configuration(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {}, clear=True):
                config = ConfigManager(temp_dir)
                _write_yaml(Path(temp_dir) / "config.yaml", {"debug": True})
                config.reload_configuration()

            assert config.config.debug is True

    def test_global_config_functions(self):
        """Test global configuration functions."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {}, clear=True):
                config1 = init_config(temp_dir)
                config2 = get_config()

            assert isinstance(config1, ConfigManager)
            assert config1 is config2
