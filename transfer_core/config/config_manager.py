"""
Centralized Configuration Management System

This module provides the configuration layer of the transfer engine:
- Centralizes codec, archive, storage and logging settings
- Supports environment-specific overrides
- Declares the collection graph (collections and their relations)
- Validates configuration on startup
- Provides type-safe access to configuration values
"""

import os
import json
import yaml
import logging
from typing import Any, Dict, Optional, Union, List
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum
import threading


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackendType(Enum):
    MEMORY = "memory"
    SQLITE = "sqlite"


class ArchiveCompression(Enum):
    DEFLATED = "deflated"
    STORED = "stored"


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _parse_csv_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: LogLevel = LogLevel.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json_format: bool = False


@dataclass
class TransferConfig:
    """Codec and archive settings shared by export and import"""

    default_format: str = "json"
    csv_fields: List[str] = field(default_factory=lambda: ["class", "text"])
    json_indent: Optional[int] = None
    archive_compression: ArchiveCompression = ArchiveCompression.DEFLATED
    id_field: str = "id"


@dataclass
class SqliteStorageConfig:
    """SQLite storage configuration"""

    database_path: str = "./data/transfer.db"


@dataclass
class StorageConfig:
    """Storage layer configuration"""

    backend: StorageBackendType = StorageBackendType.MEMORY
    sqlite: SqliteStorageConfig = field(default_factory=SqliteStorageConfig)


@dataclass
class RelationConfig:
    """One declared relation of a collection"""

    target_collection: str = ""
    foreign_field: Optional[str] = None
    local_field: Optional[str] = None


@dataclass
class CollectionConfig:
    """Declaration of a collection taking part in transfers"""

    name: str = ""
    format: Optional[str] = None
    id_field: Optional[str] = None
    export_with: List[RelationConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollectionConfig":
        relations = []
        for relation in data.get("export_with") or data.get("exportWith") or []:
            relations.append(
                RelationConfig(
                    target_collection=relation.get("target_collection")
                    or relation.get("targetCollection")
                    or relation.get("model")
                    or "",
                    foreign_field=relation.get("foreign_field") or relation.get("foreignField"),
                    local_field=relation.get("local_field") or relation.get("localField"),
                )
            )
        return cls(
            name=data.get("name", ""),
            format=data.get("format"),
            id_field=data.get("id_field"),
            export_with=relations,
        )


@dataclass
class AppConfig:
    """Main application configuration"""

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    collections: List[CollectionConfig] = field(default_factory=list)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""

    pass


class ConfigManager:
    """
    Centralized configuration manager with support for:
    - Environment-specific configurations
    - Configuration validation
    - Dynamic configuration updates
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        """Singleton pattern implementation"""
        if not cls._instance:
            with cls._lock:
                if not cls._instance:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        # Avoid re-initialization in singleton
        if hasattr(self, "_initialized"):
            return

        self._initialized = True

        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            project_root = Path(__file__).parent.parent.parent
            self.config_dir = project_root / "config"

        self.config: AppConfig = AppConfig()
        self.loaded_files: List[str] = []
        self.logger = logging.getLogger(__name__)

        self._load_configuration()

    def _load_configuration(self):
        """Load configuration from multiple sources in priority order"""
        # 1. Load default configuration
        self.config = AppConfig()
        self.loaded_files = []

        # 2. Load base configuration file
        self._load_from_file("config.yaml")
        self._load_from_file("config.json")

        # 3. Load environment-specific configuration
        env = os.getenv("ENVIRONMENT", "development").lower()
        self._load_from_file(f"environments/config.{env}.yaml")
        self._load_from_file(f"environments/config.{env}.json")

        # 4. Load from environment variables (highest priority)
        self._load_from_environment()

        # 5. Validate configuration
        self._validate_configuration()

    def _load_from_file(self, filename: str):
        """Load configuration from YAML/JSON file"""
        file_path = self.config_dir / filename
        if not file_path.exists():
            return

        try:
            with open(file_path, "r") as f:
                if filename.endswith(".yaml") or filename.endswith(".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            self.logger.warning(f"Failed to load configuration from {filename}: {e}")
            return

        if data:
            self._update_config_from_dict(data)
            self.loaded_files.append(str(file_path))
            self.logger.info(f"Loaded configuration from {filename}")

    def _load_from_environment(self):
        """Load configuration from environment variables"""
        env_mappings = {
            # Environment
            "ENVIRONMENT": ("environment", lambda x: Environment(x.lower())),
            "DEBUG": ("debug", _parse_bool),
            # Logging
            "LOG_LEVEL": ("logging.level", lambda x: LogLevel(x.upper())),
            "LOG_FORMAT": ("logging.format", str),
            # Transfer
            "TRANSFER_DEFAULT_FORMAT": ("transfer.default_format", lambda x: x.lower()),
            "TRANSFER_CSV_FIELDS": ("transfer.csv_fields", _parse_csv_list),
            "TRANSFER_ARCHIVE_COMPRESSION": (
                "transfer.archive_compression",
                lambda x: ArchiveCompression(x.lower()),
            ),
            # Storage
            "STORAGE_BACKEND": ("storage.backend", lambda x: StorageBackendType(x.lower())),
            "SQLITE_DATABASE_PATH": ("storage.sqlite.database_path", str),
        }

        for env_var, (config_path, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    converted_value = converter(value)
                    self._set_nested_attr(self.config, config_path, converted_value)
                except (ValueError, TypeError) as e:
                    self.logger.warning(f"Invalid value for {env_var}: {value}, error: {e}")

    def _update_config_from_dict(self, data: Dict[str, Any], prefix: str = ""):
        """Update configuration from dictionary recursively"""
        for key, value in data.items():
            config_path = f"{prefix}.{key}" if prefix else key

            if config_path == "collections":
                self.config.collections = [
                    CollectionConfig.from_dict(item) for item in (value or [])
                ]
            elif isinstance(value, dict):
                self._update_config_from_dict(value, config_path)
            else:
                try:
                    # Handle enum conversions for file-based config
                    if config_path == "environment" and isinstance(value, str):
                        value = Environment(value.lower())
                    elif config_path == "logging.level" and isinstance(value, str):
                        value = LogLevel(value.upper())
                    elif config_path == "storage.backend" and isinstance(value, str):
                        value = StorageBackendType(value.lower())
                    elif config_path == "transfer.archive_compression" and isinstance(value, str):
                        value = ArchiveCompression(value.lower())

                    self._set_nested_attr(self.config, config_path, value)
                except AttributeError:
                    self.logger.warning(f"Unknown configuration key: {config_path}")
                except ValueError as e:
                    self.logger.warning(f"Invalid value for {config_path}: {value}, error: {e}")

    def _set_nested_attr(self, obj: Any, path: str, value: Any):
        """Set nested attribute using dot notation"""
        parts = path.split(".")
        for part in parts[:-1]:
            obj = getattr(obj, part)
        if not hasattr(obj, parts[-1]):
            raise AttributeError(path)
        setattr(obj, parts[-1], value)

    def _validate_configuration(self):
        """Validate configuration settings"""
        errors = []

        if not isinstance(self.config.storage.backend, StorageBackendType):
            errors.append(f"Unknown storage backend: {self.config.storage.backend}")

        if not isinstance(self.config.transfer.archive_compression, ArchiveCompression):
            errors.append(
                f"Unknown archive compression: {self.config.transfer.archive_compression}"
            )

        if not self.config.transfer.csv_fields:
            errors.append("transfer.csv_fields must name at least one field")

        if not self.config.transfer.id_field:
            errors.append("transfer.id_field is required")

        if (
            self.config.storage.backend == StorageBackendType.SQLITE
            and not self.config.storage.sqlite.database_path
        ):
            errors.append("SQLITE_DATABASE_PATH is required for the sqlite backend")

        # Validate the declared collection graph
        declared = [c.name for c in self.config.collections]
        seen = set()
        for collection in self.config.collections:
            if not collection.name:
                errors.append("Every collection needs a name")
                continue
            if collection.name in seen:
                errors.append(f"Collection '{collection.name}' is declared twice")
            seen.add(collection.name)

            for relation in collection.export_with:
                if relation.target_collection not in declared:
                    errors.append(
                        f"Collection '{collection.name}' relates to undeclared "
                        f"collection '{relation.target_collection}'"
                    )
                if bool(relation.foreign_field) == bool(relation.local_field):
                    errors.append(
                        f"Relation {collection.name} -> {relation.target_collection} "
                        "must set exactly one of foreign_field or local_field"
                    )

        if errors:
            raise ConfigValidationError(f"Configuration validation failed: {'; '.join(errors)}")

        self.logger.info("Configuration validation passed")

    def reload_configuration(self):
        """Reload configuration from all sources"""
        try:
            self._load_configuration()
            self.logger.info("Configuration reloaded successfully")
        except ConfigValidationError as e:
            self.logger.error(f"Failed to reload configuration: {e}")
            raise

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        try:
            obj = self.config
            for part in path.split("."):
                obj = getattr(obj, part)
            return obj
        except AttributeError:
            return default

    def set(self, path: str, value: Any):
        """Set configuration value using dot notation"""
        self._set_nested_attr(self.config, path, value)
        self._validate_configuration()

    def get_collection(self, name: str) -> Optional[CollectionConfig]:
        """Return the declaration of a collection, if any."""
        for collection in self.config.collections:
            if collection.name == name:
                return collection
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""

        def _asdict_recursive(obj):
            if isinstance(obj, Enum):
                return obj.value
            if isinstance(obj, list):
                return [_asdict_recursive(item) for item in obj]
            if hasattr(obj, "__dict__"):
                return {key: _asdict_recursive(value) for key, value in obj.__dict__.items()}
            return obj

        return _asdict_recursive(self.config)

    def save_to_file(self, filename: str, format: str = "yaml"):
        """Save current configuration to file"""
        file_path = self.config_dir / filename
        config_dict = self.to_dict()

        with open(file_path, "w") as f:
            if format.lower() == "yaml":
                yaml.dump(config_dict, f, default_flow_style=False, indent=2)
            else:
                json.dump(config_dict, f, indent=2)

        self.logger.info(f"Configuration saved to {filename}")


# Global configuration instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get the global configuration manager instance"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def init_config(config_dir: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Initialize the global configuration manager"""
    global _config_manager
    _config_manager = ConfigManager(config_dir)
    return _config_manager
