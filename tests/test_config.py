import json

import pytest

from gator.config import Config, config_file_path, read, write


def test_config_file_path_is_in_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert config_file_path() == tmp_path / ".gatorconfig.json"


def test_write_then_read_round_trip(tmp_path):
    target = tmp_path / "cfg.json"
    cfg = Config(db_url="sqlite:///feeds.db", current_user_name="alice")
    write(cfg, target)
    loaded = read(target)
    assert loaded == cfg
    assert loaded.path == target


def test_written_file_uses_json_keys(tmp_path):
    target = tmp_path / "cfg.json"
    write(Config(db_url="x", current_user_name="bob"), target)
    assert json.loads(target.read_text(encoding="utf-8")) == {
        "db_url": "x",
        "current_user_name": "bob",
    }


def test_missing_keys_default_to_empty(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text('{"db_url": "sqlite://"}', encoding="utf-8")
    cfg = read(target)
    assert cfg.db_url == "sqlite://"
    assert cfg.current_user_name == ""


def test_set_user_writes_back_to_source_file(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text('{"db_url": "sqlite://", "current_user_name": ""}', encoding="utf-8")
    cfg = read(target)
    cfg.set_user("carol")
    assert cfg.current_user_name == "carol"
    assert read(target).current_user_name == "carol"
    assert read(target).db_url == "sqlite://"


def test_set_user_uses_home_when_no_path(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    cfg = Config(db_url="db")
    cfg.set_user("dave")
    assert read().current_user_name == "dave"


def test_read_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read(tmp_path / "absent.json")


def test_read_invalid_json_raises(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        read(target)


def test_read_non_object_raises(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        read(target)


def test_read_wrong_type_raises(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text('{"db_url": 5}', encoding="utf-8")
    with pytest.raises(ValueError):
        read(target)