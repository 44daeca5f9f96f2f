import json

import pytest

from photofolio.config import load_user_config
from photofolio.errors import ConfigError


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_defaults_apply_without_files():
    settings = load_user_config(environ={}, search_files=())

    assert settings.get_int("sync.max_tag_bytes", 0) == 1024
    assert settings.get("drive.folder_id") is None
    assert settings.get("drive.folder_id", "fallback") == "fallback"


def test_files_are_layered_in_order(tmp_path):
    user = _write(tmp_path / "user.json", {"drive": {"folder_id": "user"}, "sync": {"workers": 2}})
    local = _write(tmp_path / "local.json", {"drive": {"folder_id": "local"}})
    explicit = _write(tmp_path / "explicit.json", {"sync": {"workers": 8}})

    settings = load_user_config(str(explicit), environ={}, search_files=(user, local))

    assert settings.get("drive.folder_id") == "local"
    assert settings.get_int("sync.workers", 1) == 8
    assert settings.get("drive.token_file").endswith("token.pickle")


def test_environment_overrides_files(tmp_path):
    local = _write(tmp_path / "local.json", {"deploy": {"site_url": "https://old.example"}})

    settings = load_user_config(
        environ={"PHOTOFOLIO_DEPLOY__SITE_URL": "https://new.example", "OTHER": "x"},
        search_files=(local,),
    )

    assert settings.require("deploy.site_url") == "https://new.example"


def test_missing_required_setting_names_variable():
    settings = load_user_config(environ={}, search_files=())

    with pytest.raises(ConfigError, match="PHOTOFOLIO_DEPLOY__BUILD_HOOK_URL"):
        settings.require("deploy.build_hook_url")


def test_explicit_settings_file_must_exist(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_user_config(str(tmp_path / "missing.json"), environ={}, search_files=())


def test_invalid_settings_file(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_user_config(str(broken), environ={}, search_files=())


def test_non_integer_setting(tmp_path):
    settings = load_user_config(environ={"PHOTOFOLIO_SYNC__WORKERS": "many"}, search_files=())

    with pytest.raises(ConfigError, match="integer"):
        settings.get_int("sync.workers", 1)
