"""Tests for core.storage -- both stores share the same contract."""

import json
import os

import pytest

from core.storage import (
    METADATA_FILE,
    FileSystemStore,
    InMemoryStore,
    VersionConflict,
    check_project_id,
)


@pytest.fixture(params=["memory", "filesystem"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    return FileSystemStore(root=str(tmp_path / "projects"))


def test_unknown_project_is_empty(store):
    project = store.load("bakery")
    assert project.files == {}
    assert project.version == 0
    assert not project.exists


def test_store_and_load(store):
    version = store.store("bakery", {"index.html": "<h1>Crumbs</h1>", "css/style.css": "body {}"})
    assert version == 1
    project = store.load("bakery")
    assert project.files == {"index.html": "<h1>Crumbs</h1>", "css/style.css": "body {}"}
    assert project.version == 1
    assert project.exists
    assert store.project_ids() == ["bakery"]


def test_versions_increase(store):
    store.store("bakery", {"index.html": "v1"})
    assert store.store("bakery", {"index.html": "v2"}, expected_version=1) == 2
    assert store.load("bakery").files == {"index.html": "v2"}


def test_stale_write_rejected(store):
    store.store("bakery", {"index.html": "v1"})
    store.store("bakery", {"index.html": "v2"}, expected_version=1)
    with pytest.raises(VersionConflict) as exc:
        store.store("bakery", {"index.html": "late"}, expected_version=1)
    assert exc.value.expected == 1
    assert exc.value.actual == 2
    assert store.load("bakery").files == {"index.html": "v2"}


def test_first_write_with_expected_zero(store):
    assert store.store("fresh", {"index.html": "x"}, expected_version=0) == 1
    with pytest.raises(VersionConflict):
        store.store("fresh", {"index.html": "y"}, expected_version=0)


def test_store_replaces_file_set(store):
    store.store("bakery", {"index.html": "a", "about.html": "b"})
    store.store("bakery", {"index.html": "a2"})
    assert store.load("bakery").files == {"index.html": "a2"}


@pytest.mark.parametrize("project_id", ["", "../etc", "Bakery", "a/b", "-lead"])
def test_invalid_project_id(store, project_id):
    with pytest.raises(ValueError):
        store.load(project_id)


def test_check_project_id():
    assert check_project_id("my-site_2") == "my-site_2"
    with pytest.raises(ValueError):
        check_project_id("x" * 101)


# --- filesystem specifics ---

def test_filesystem_layout(tmp_path):
    store = FileSystemStore(root=str(tmp_path))
    store.store("bakery", {"index.html": "<h1>x</h1>", "js/app.js": "go();"})

    assert (tmp_path / "bakery" / "index.html").read_text() == "<h1>x</h1>"
    assert (tmp_path / "bakery" / "js" / "app.js").read_text() == "go();"
    meta = json.loads((tmp_path / "bakery" / METADATA_FILE).read_text())
    assert meta == {"version": 1, "files": ["index.html", "js/app.js"]}


def test_filesystem_removes_stale_files(tmp_path):
    store = FileSystemStore(root=str(tmp_path))
    store.store("bakery", {"index.html": "a", "old.html": "b"})
    store.store("bakery", {"index.html": "a"})
    assert not (tmp_path / "bakery" / "old.html").exists()


def test_filesystem_rejects_escaping_path_before_writing(tmp_path):
    store = FileSystemStore(root=str(tmp_path / "projects"))
    with pytest.raises(ValueError):
        store.store("bakery", {"index.html": "a", "../../evil.txt": "x"})
    assert not (tmp_path / "evil.txt").exists()
    assert not os.path.exists(tmp_path / "projects" / "bakery" / "index.html")


@pytest.mark.parametrize("name", [METADATA_FILE, f"./{METADATA_FILE}", f"css/../{METADATA_FILE}"])
def test_filesystem_rejects_metadata_file_name(tmp_path, name):
    store = FileSystemStore(root=str(tmp_path))
    assert store.store("bakery", {"index.html": "<h1>x</h1>"}) == 1
    with pytest.raises(ValueError, match="Reserved"):
        store.store("bakery", {"index.html": "<h1>y</h1>", name: '{"version": 99, "files": []}'})
    project = store.load("bakery")
    assert project.version == 1
    assert project.files == {"index.html": "<h1>x</h1>"}


def test_filesystem_allows_metadata_name_in_subfolder(tmp_path):
    store = FileSystemStore(root=str(tmp_path))
    store.store("bakery", {f"docs/{METADATA_FILE}": "{}"})
    assert store.load("bakery").files == {f"docs/{METADATA_FILE}": "{}"}


def test_filesystem_ignores_foreign_directories(tmp_path):
    (tmp_path / "notes").mkdir()
    store = FileSystemStore(root=str(tmp_path))
    store.store("bakery", {"index.html": "a"})
    assert store.project_ids() == ["bakery"]


def test_filesystem_missing_root_has_no_projects(tmp_path):
    assert FileSystemStore(root=str(tmp_path / "nope")).project_ids() == []
