from pathlib import Path

from beyond_epic.persistence import storage


def test_export_writes_named_file_atomically(tmp_path: Path):
    path = storage.export_snapshot('{"points": 1}', tmp_path / "exports")
    assert path == tmp_path / "exports" / "beyond-epic-save.json"
    assert storage.read_snapshot(path) == '{"points": 1}'

    storage.export_snapshot('{"points": 2}', tmp_path / "exports")
    assert storage.read_snapshot(path) == '{"points": 2}'
    # no temp files are left behind
    assert [p.name for p in (tmp_path / "exports").iterdir()] == ["beyond-epic-save.json"]


def test_save_dir_env_override(tmp_path: Path, monkeypatch):
    monkeypatch.setenv(storage.SAVE_DIR_ENV, str(tmp_path))
    assert storage.default_save_dir() == tmp_path
    path = storage.export_snapshot("{}")
    assert path.parent == tmp_path


def test_default_save_dir_uses_platform_dirs(monkeypatch):
    monkeypatch.delenv(storage.SAVE_DIR_ENV, raising=False)
    assert "BeyondEpic" in str(storage.default_save_dir())
