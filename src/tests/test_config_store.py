import json
import sys
from pathlib import Path
import pytest

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from utils import config_store
from utils.config_store import ConfigStore, PersistenceError, SavedConnection
from utils.settings import DEFAULT_SETTINGS, load_app_settings, load_app_state, save_app_state


def _conn(name="local", **kw):
    return SavedConnection(name=name, driver="postgres", host="localhost", port=5432,
                           username="me", password="s3cret", database="app", **kw)


def test_missing_file_loads_empty(tmp_path):
    store = ConfigStore("pw", tmp_path / "config.encrypted")
    assert not store.exists()
    config = store.load()
    assert config.connections == []


def test_round_trip_and_no_plaintext(tmp_path):
    path = tmp_path / "config.encrypted"
    store = ConfigStore("pw", path)
    store.load()
    conn = _conn()
    store.add_connection(conn)

    raw = path.read_text(encoding="utf-8")
    assert "s3cret" not in raw
    envelope = json.loads(raw)
    assert set(envelope) >= {"version", "salt", "data"}

    other = ConfigStore("pw", path)
    loaded = other.load()
    assert [c.to_dict() for c in loaded.connections] == [conn.to_dict()]


def test_wrong_password_is_persistence_error(tmp_path):
    path = tmp_path / "config.encrypted"
    store = ConfigStore("right", path)
    store.load()
    store.add_connection(_conn())
    with pytest.raises(PersistenceError, match="wrong password"):
        ConfigStore("wrong", path).load()


def test_corrupt_file_is_persistence_error(tmp_path):
    path = tmp_path / "config.encrypted"
    path.write_text("not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        ConfigStore("pw", path).load()


def test_update_upsert_delete(tmp_path):
    store = ConfigStore("pw", tmp_path / "c.enc")
    store.load()
    conn = _conn()
    assert store.upsert_connection(conn) is True
    conn.name = "renamed"
    assert store.upsert_connection(conn) is False
    assert store.get_connection(conn.id).name == "renamed"
    with pytest.raises(KeyError):
        store.update_connection(_conn("ghost"))
    store.delete_connection(conn.id)
    assert store.list_connections() == []


def test_failed_write_leaves_connections_unchanged(tmp_path, monkeypatch):
    path = tmp_path / "c.enc"
    store = ConfigStore("pw", path)
    store.load()
    kept = _conn("kept")
    store.add_connection(kept)

    def _disk_full(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(config_store.os, "replace", _disk_full)
    with pytest.raises(OSError):
        store.add_connection(_conn("ghost"))
    with pytest.raises(OSError):
        store.update_connection(SavedConnection(id=kept.id, name="renamed", driver="sqlite", database="x"))
    with pytest.raises(OSError):
        store.delete_connection(kept.id)
    monkeypatch.undo()

    assert [c.name for c in store.list_connections()] == ["kept"]
    assert [c.name for c in ConfigStore("pw", path).load().connections] == ["kept"]
    store.add_connection(_conn("next"))
    assert [c.name for c in ConfigStore("pw", path).load().connections] == ["kept", "next"]


def test_change_password(tmp_path):
    path = tmp_path / "c.enc"
    store = ConfigStore("old", path)
    store.load()
    store.add_connection(_conn())
    with pytest.raises(ValueError):
        store.change_password("")
    store.change_password("new")
    assert len(ConfigStore("new", path).load().connections) == 1
    with pytest.raises(PersistenceError):
        ConfigStore("old", path).load()


def test_saved_connection_ids_are_unique():
    assert _conn().id != _conn().id
    assert "s3cret" not in _conn().describe()


def test_settings_fall_back_per_value(tmp_path):
    p = tmp_path / "settings.json"
    p.write_text(json.dumps({"page_size": 50, "query_timeout": "x", "log_level": "debug"}), encoding="utf-8")
    settings = load_app_settings(p)
    assert settings["page_size"] == 50
    assert settings["query_timeout"] == DEFAULT_SETTINGS["query_timeout"]
    assert settings["log_level"] == "DEBUG"
    assert load_app_settings(tmp_path / "missing.json") == DEFAULT_SETTINGS


def test_app_state_round_trip(tmp_path):
    p = tmp_path / "state.json"
    assert load_app_state(p) == {}
    save_app_state({"drafts": {"id": "select 1"}}, p)
    assert load_app_state(p) == {"drafts": {"id": "select 1"}}
