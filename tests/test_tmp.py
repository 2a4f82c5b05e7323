import os

import pytest

from mare.tmp import force_delete, pending_on_exit, scratch_paths, unique_path


def test_unique_path(tmp_path) -> None:
    a, b = unique_path(tmp_path), unique_path(tmp_path, prefix=".temporary_")
    assert a != b
    assert a.parent == tmp_path and a.name.startswith("mare_")
    assert b.name.startswith(".temporary_")
    assert not a.exists()


def test_force_delete(tmp_path) -> None:
    (tmp_path / "d" / "e").mkdir(parents=True)
    (tmp_path / "d" / "e" / "f").write_text("x")
    (tmp_path / "g").write_text("y")
    os.mkfifo(tmp_path / "p")
    for name in ["d", "g", "p", "never-existed"]:
        force_delete(tmp_path / name)
    assert list(tmp_path.iterdir()) == []


def test_scratch_paths_deleted_on_success(tmp_path) -> None:
    with scratch_paths(tmp_path, 2) as (a, b):
        a.write_text("a")
        b.mkdir()
        assert {a, b} <= pending_on_exit()
    assert list(tmp_path.iterdir()) == []
    assert not {a, b} & pending_on_exit()


def test_scratch_paths_deleted_on_failure(tmp_path) -> None:
    with pytest.raises(RuntimeError):
        with scratch_paths(tmp_path, 3) as (a, _, _):
            a.write_text("a")
            raise RuntimeError("boom")
    assert list(tmp_path.iterdir()) == []
