"""
Configuration file for pytest.

This file configures pytest to properly load environment variables
and keeps the configuration singleton from leaking between tests.
"""
import pytest
import dotenv

# Load environment variables from .env file
dotenv.load_dotenv()


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Drop the global ConfigManager so every test loads its own configuration."""
    import transfer_core.config.config_manager as config_module

    config_module.ConfigManager._instance = None
    config_module._config_manager = None
    yield
    config_module.ConfigManager._instance = None
    config_module._config_manager = None
