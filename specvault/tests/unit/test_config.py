import json
import logging
from pathlib import Path

import pytest

from specvault.src.services import config as config_module
from specvault.src.services.errors import VaultStorageError


@pytest.fixture(autouse=True)
def restore_config_cache(monkeypatch):
    """
    Ensure configuration cache is cleared between tests.
    """
    for key in ("SPECVAULT_STORAGE_PATH", "SPECVAULT_DEFAULT_REPO", "SPECVAULT_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    config_module.get_config.cache_clear()
    yield
    config_module.get_config.cache_clear()


def test_get_config_reads_storage_path_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SPECVAULT_STORAGE_PATH", str(tmp_path / "store"))
    monkeypatch.setenv("SPECVAULT_LOG_LEVEL", "debug")

    cfg = config_module.reload_config()

    assert cfg.storage_path == (tmp_path / "store").resolve()
    assert cfg.project_dir == tmp_path.resolve()
    assert cfg.log_level == "DEBUG"
    assert cfg.default_repo is None


def test_get_config_defaults_to_local_storage_dir(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)

    cfg = config_module.reload_config()

    assert cfg.storage_path == (tmp_path / ".specvault").resolve()


def test_get_config_rejects_unknown_log_level(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SPECVAULT_STORAGE_PATH", str(tmp_path))
    monkeypatch.setenv("SPECVAULT_LOG_LEVEL", "chatty")

    with pytest.raises(ValueError):
        config_module.reload_config()


def test_resolve_storage_dir_follows_data_redirect(tmp_path: Path) -> None:
    shared = tmp_path / "shared-data"
    shared.mkdir()
    local = tmp_path / ".specvault"
    local.mkdir()
    (local / "local-metadata.json").write_text(json.dumps({"data-redirect": "shared-data"}))

    assert config_module.resolve_storage_dir(tmp_path) == shared


def test_resolve_storage_dir_rejects_missing_redirect_target(tmp_path: Path) -> None:
    local = tmp_path / ".specvault"
    local.mkdir()
    (local / "local-metadata.json").write_text(json.dumps({"data-redirect": "/does/not/exist"}))

    with pytest.raises(VaultStorageError):
        config_module.resolve_storage_dir(tmp_path)


def test_resolve_storage_dir_without_metadata(tmp_path: Path) -> None:
    assert config_module.resolve_storage_dir(tmp_path) == tmp_path / ".specvault"


def test_configure_logging_sets_root_level(tmp_path: Path) -> None:
    root = logging.getLogger()
    previous = root.level
    try:
        config_module.configure_logging(
            config_module.AppConfig(storage_path=tmp_path, log_level="warning")
        )
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous)
