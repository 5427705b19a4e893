"""Unit tests for configuration."""

import logging

import pytest

from src.utils import config as config_module
from src.utils.config import DEFAULT_DB_TIMEOUT, Config, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    for name in ("CAFE_BACKOFFICE_ENV", "CAFE_BACKOFFICE_DB_URL", "CAFE_BACKOFFICE_DB_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


def test_development_uses_project_data_dir():
    config = Config("development")
    assert config.is_development
    assert config.database_path.parent.name == "data"
    assert config.database_url.startswith("sqlite:///")
    assert config.database_url.endswith("cafe_backoffice.db")


def test_production_uses_documents_dir():
    config = Config("production")
    assert config.is_production
    assert config.database_path.parent.name == "CafeBackOffice"


def test_database_url_override(monkeypatch):
    monkeypatch.setenv("CAFE_BACKOFFICE_DB_URL", "sqlite:///:memory:")
    config = Config("production")
    assert config.database_url == "sqlite:///:memory:"
    assert config.uses_memory_database
    assert config.database_exists()


def test_timeout_default_and_override(monkeypatch):
    assert Config().db_timeout == DEFAULT_DB_TIMEOUT
    monkeypatch.setenv("CAFE_BACKOFFICE_DB_TIMEOUT", "5")
    assert Config().db_timeout == 5


@pytest.mark.parametrize("raw", ["soon", "0", "-3"])
def test_invalid_timeout_falls_back_with_warning(monkeypatch, caplog, raw):
    monkeypatch.setenv("CAFE_BACKOFFICE_DB_TIMEOUT", raw)
    with caplog.at_level(logging.WARNING, logger=config_module.__name__):
        assert Config().db_timeout == DEFAULT_DB_TIMEOUT
    assert "Invalid CAFE_BACKOFFICE_DB_TIMEOUT" in caplog.text


def test_get_config_reads_environment(monkeypatch):
    monkeypatch.setenv("CAFE_BACKOFFICE_ENV", "development")
    assert get_config().is_development


def test_get_config_is_singleton(caplog):
    first = get_config("development")
    with caplog.at_level(logging.WARNING, logger=config_module.__name__):
        second = get_config("production")
    assert second is first
    assert second.is_development
    assert "Returning existing singleton" in caplog.text


def test_app_metadata():
    config = Config("development")
    assert config.app_name == "Cafe Back Office"
    assert config.app_version == "0.1.0"
    assert config.database_version == "1.0"
    assert "development" in repr(config)
