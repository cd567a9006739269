"""Whole-file JSON persistence, runtime settings and activity database tests."""

import json

import pytest

from weephub.core.database import ActivityLogger
from weephub.core.errors import PersistenceError, ValidationError
from weephub.core.settings_store import RuntimeSettingsStore
from weephub.core.storage import read_json, write_json_atomic


def test_read_json_missing_file_returns_copy_of_default(tmp_path):
    default = {"routines": []}
    loaded = read_json(tmp_path / "absent.json", default)
    loaded["routines"].append(1)
    assert default == {"routines": []}


def test_read_json_rejects_corrupt_file(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json")
    with pytest.raises(PersistenceError):
        read_json(path, {})

    path.write_text("[1, 2]")
    with pytest.raises(PersistenceError):
        read_json(path, {})


def test_write_json_atomic_leaves_no_temp_file(tmp_path):
    path = tmp_path / "nested" / "state.json"
    write_json_atomic(path, {"a": 1})
    write_json_atomic(path, {"a": 2})

    assert json.loads(path.read_text()) == {"a": 2}
    assert [p.name for p in path.parent.iterdir()] == ["state.json"]


def test_failed_write_keeps_routines_unchanged(tmp_path, routine_store, monkeypatch):
    routine = routine_store.create({
        "name": "Keep",
        "trigger": {"everyMinutes": 5},
        "actions": [{"deviceId": "lamp", "on": True}],
    })

    def broken_write(path, payload):
        raise PersistenceError("disk full")

    monkeypatch.setattr("weephub.core.routines.write_json_atomic", broken_write)

    with pytest.raises(PersistenceError):
        routine_store.update(routine.id, {"name": "Changed"})
    assert routine_store.get(routine.id).name == "Keep"


# ─── Runtime settings ──────────────────────────────────────────────────


def test_interval_defaults_and_clamps(tmp_path):
    store = RuntimeSettingsStore(tmp_path / "settings.json")
    assert store.routine_check_interval_ms == 30000

    assert store.set_routine_check_interval_ms(10) == 5000
    assert store.set_routine_check_interval_ms(999999) == 300000
    assert store.set_routine_check_interval_ms(12345.9) == 12345


def test_interval_persisted(tmp_path):
    RuntimeSettingsStore(tmp_path / "settings.json").set_routine_check_interval_ms(60000)

    assert json.loads((tmp_path / "settings.json").read_text()) == {"routineCheckIntervalMs": 60000}
    assert RuntimeSettingsStore(tmp_path / "settings.json").routine_check_interval_ms == 60000


@pytest.mark.parametrize("value", ["10", None, True, float("nan"), float("inf")])
def test_interval_rejects_non_numbers(tmp_path, value):
    store = RuntimeSettingsStore(tmp_path / "settings.json")
    with pytest.raises(ValidationError):
        store.set_routine_check_interval_ms(value)
    assert store.routine_check_interval_ms == 30000


def test_invalid_stored_interval_falls_back(tmp_path):
    (tmp_path / "settings.json").write_text(json.dumps({"routineCheckIntervalMs": "soon"}))
    store = RuntimeSettingsStore(tmp_path / "settings.json", default_interval_ms=20000)
    assert store.routine_check_interval_ms == 20000


# ─── Activity database ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_activity_newest_first(db):
    await db.add_activity("Lamp", "on", timestamp=1)
    await db.add_activity("Lamp", "off", timestamp=2)

    entries = await db.get_recent_activity()
    assert [(e.action, e.timestamp) for e in entries] == [("off", 2), ("on", 1)]
    assert await db.check_integrity() is True


@pytest.mark.asyncio
async def test_clear_activity_returns_count(db):
    for _ in range(3):
        await db.add_activity("Lamp", "on")
    assert await db.clear_activity() == 3
    assert await db.get_recent_activity() == []


@pytest.mark.asyncio
async def test_activity_logger_swallows_write_failures(db):
    logger = ActivityLogger(db)
    await db.close()

    await logger.record("Lamp", "on")
