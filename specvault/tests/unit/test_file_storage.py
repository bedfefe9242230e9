from pathlib import Path

import pytest

from specvault.src.models import NodeType, create_node, organize_children
from specvault.src.services.config import AppConfig
from specvault.src.services.errors import (
    VaultConflictError,
    VaultNotFoundError,
    VaultValidationError,
)
from specvault.src.services.file_storage import FileStorage, NodeFileRecord, validate_node_path


@pytest.fixture
def storage_config(tmp_path: Path) -> AppConfig:
    return AppConfig(storage_path=tmp_path / ".specvault")


@pytest.fixture
def storage(storage_config: AppConfig) -> FileStorage:
    return FileStorage(config=storage_config)


def test_initialize_creates_layout(storage: FileStorage, storage_config: AppConfig) -> None:
    base = storage_config.storage_path

    assert (base / "nodes").is_dir()
    for name in ("spec-links.csv", "commit-links.csv", "node-files.csv", "project_metadata.json"):
        assert (base / name).is_file()
    assert storage.list() == []


def test_write_and_read_round_trip_for_every_type(storage: FileStorage) -> None:
    nodes = [
        create_node(NodeType.SPECIFICATION, "Login", "Users can log in", slug="login"),
        create_node(NodeType.PROJECT, "Root", "Top level"),
        create_node(
            NodeType.IMPLEMENTATION,
            "API",
            "Python service",
            repo_url="https://example.com/api.git",
            branch="main",
            folder_path="src",
        ),
    ]

    for node in nodes:
        path = storage.write(node)
        assert path == storage.node_path(node.id)
        assert path.name == f"{node.id}.md"

    for node in nodes:
        assert storage.read(node.id) == node
    assert [n.id for n in storage.list()] == sorted(n.id for n in nodes)


def test_node_files_table_is_sorted_by_id(storage: FileStorage, storage_config: AppConfig) -> None:
    storage.write(create_node(NodeType.SPECIFICATION, "B", "b", id="b-node"))
    storage.write(create_node(NodeType.SPECIFICATION, "A", "a", id="a-node"))

    lines = (storage_config.storage_path / "node-files.csv").read_text().splitlines()

    assert lines == [
        "node_id,file_path",
        "a-node,.specvault/nodes/a-node.md",
        "b-node,.specvault/nodes/b-node.md",
    ]


def test_read_missing_node_raises(storage: FileStorage) -> None:
    with pytest.raises(VaultNotFoundError):
        storage.read("missing")
    assert not storage.exists("missing")


def test_write_with_children_appends_relative_links(storage: FileStorage) -> None:
    parent = create_node(NodeType.SPECIFICATION, "Parent", "Parent body")
    child = create_node(NodeType.SPECIFICATION, "Child", "Child body")
    storage.write(child)

    path = storage.write_with_children(parent, organize_children([child]))

    text = path.read_text()
    assert "## Child Specifications" in text
    assert f"- [Child]({child.id}.md)" in text
    assert storage.read(parent.id) == parent


def test_move_relocates_file_and_keeps_lookups_working(
    storage: FileStorage, tmp_path: Path
) -> None:
    node = create_node(NodeType.SPECIFICATION, "Login", "Users can log in")
    old_path = storage.write(node)

    new_path = storage.move(node.id, "docs/auth/login.md")

    assert new_path == (tmp_path / "docs/auth/login.md").resolve()
    assert not old_path.exists()
    assert storage.node_file_links()[node.id] == "docs/auth/login.md"
    assert storage.read(node.id) == node

    node.content = "Updated after move"
    storage.write(node)
    assert new_path.read_text().endswith("Updated after move\n")

    storage.delete(node.id)
    assert not new_path.exists()
    assert not (tmp_path / "docs").exists()
    assert node.id not in storage.node_file_links()


def test_move_to_current_location_is_a_no_op(storage: FileStorage) -> None:
    node = create_node(NodeType.SPECIFICATION, "Same", "Body")
    path = storage.write(node)

    assert storage.move(node.id, storage.relative_node_path(node.id)) == path
    assert path.exists()


def test_move_rejects_occupied_target(storage: FileStorage) -> None:
    first = create_node(NodeType.SPECIFICATION, "First", "1")
    second = create_node(NodeType.SPECIFICATION, "Second", "2")
    storage.write(first)
    storage.write(second)
    storage.move(first.id, "docs/taken.md")

    with pytest.raises(VaultConflictError):
        storage.move(second.id, "docs/taken.md")
    assert storage.read(second.id) == second


@pytest.mark.parametrize("bad_path", ["../outside.md", "/abs/path.md", "docs/notes.txt", "a\\b.md"])
def test_move_rejects_invalid_paths(storage: FileStorage, bad_path: str) -> None:
    node = create_node(NodeType.SPECIFICATION, "Node", "Body")
    storage.write(node)

    with pytest.raises(VaultValidationError):
        storage.move(node.id, bad_path)


def test_move_unknown_node_raises(storage: FileStorage) -> None:
    with pytest.raises(VaultNotFoundError):
        storage.move("missing", "docs/missing.md")


def test_list_skips_unreadable_files(storage: FileStorage) -> None:
    good = create_node(NodeType.SPECIFICATION, "Good", "Fine")
    bad = create_node(NodeType.SPECIFICATION, "Bad", "Broken soon")
    storage.write(good)
    storage.write(bad).write_text("no front matter here")

    assert [n.id for n in storage.list()] == [good.id]


def test_list_skips_rows_pointing_outside_the_project(storage: FileStorage) -> None:
    good = create_node(NodeType.SPECIFICATION, "Good", "Fine")
    storage.write(good)
    storage.node_files_table.append(NodeFileRecord(node_id="zzz", file_path="../outside.md"))

    assert [n.id for n in storage.list()] == [good.id]


def test_project_metadata_persists_root(storage: FileStorage, storage_config: AppConfig) -> None:
    assert storage.get_project_metadata().root_spec_id is None

    storage.set_root_spec_id("root-id")

    reopened = FileStorage(config=storage_config)
    assert reopened.get_project_metadata().root_spec_id == "root-id"


def test_validate_node_path() -> None:
    assert validate_node_path("docs/a/index.md") == (True, "")
    assert validate_node_path("")[0] is False
    assert validate_node_path("docs/a:b.md")[0] is False
