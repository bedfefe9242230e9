from pathlib import Path

import pytest

from specvault.src.models import NodeType, create_node
from specvault.src.services.config import AppConfig
from specvault.src.services.dag import LinkManager
from specvault.src.services.errors import (
    VaultConflictError,
    VaultNotFoundError,
    VaultValidationError,
)
from specvault.src.services.file_storage import FileStorage


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    return FileStorage(config=AppConfig(storage_path=tmp_path / ".specvault"))


@pytest.fixture
def links(storage: FileStorage) -> LinkManager:
    return LinkManager(storage)


def _make(storage: FileStorage, *ids: str) -> None:
    for node_id in ids:
        storage.write(create_node(NodeType.SPECIFICATION, node_id.upper(), "body", id=node_id))


def test_create_edge_records_parent_and_child(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "x", "y")

    link = links.create_edge("x", "y")

    assert link.link_type == "child"
    assert storage.spec_links() == [link]
    assert links.children_of("x") == ["y"]
    assert links.parents_of("y") == ["x"]


def test_self_link_is_rejected_without_touching_the_table(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "x")
    before = storage.spec_links_table.path.read_bytes()

    with pytest.raises(VaultValidationError):
        links.create_edge("x", "x")

    assert storage.spec_links_table.path.read_bytes() == before


def test_reverse_edge_is_a_cycle(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "x", "y")
    links.create_edge("x", "y")

    with pytest.raises(VaultConflictError):
        links.create_edge("y", "x")

    assert len(storage.spec_links()) == 1


def test_transitive_cycle_is_rejected(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "a", "b", "c")
    links.create_edge("a", "b")
    links.create_edge("b", "c")

    assert links.would_create_cycle("c", "a")
    with pytest.raises(VaultConflictError):
        links.create_edge("c", "a")


def test_duplicate_edge_is_rejected(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "x", "y")
    links.create_edge("x", "y")

    with pytest.raises(VaultConflictError):
        links.create_edge("x", "y")


def test_edge_to_missing_node_is_rejected(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "x")

    with pytest.raises(VaultNotFoundError):
        links.create_edge("x", "ghost")


def test_diamond_is_allowed(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "root", "left", "right", "leaf")
    for parent, child in [("root", "left"), ("root", "right"), ("left", "leaf"), ("right", "leaf")]:
        links.create_edge(parent, child)

    assert sorted(links.parents_of("leaf")) == ["left", "right"]
    assert links.descendants_of("root") == ["left", "right", "leaf"]


def test_delete_edge(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "x", "y")
    links.create_edge("x", "y")

    links.delete_edge("x", "y")

    assert storage.spec_links() == []
    with pytest.raises(VaultNotFoundError):
        links.delete_edge("x", "y")


def test_delete_node_edges_removes_both_directions(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "a", "b", "c")
    links.create_edge("a", "b")
    links.create_edge("b", "c")
    links.create_edge("a", "c")

    assert links.delete_node_edges("b") == 2
    assert [(link.from_spec_id, link.to_spec_id) for link in storage.spec_links()] == [("a", "c")]
    assert links.delete_node_edges("b") == 0


def test_orphans_are_nodes_without_parents(storage: FileStorage, links: LinkManager) -> None:
    _make(storage, "a", "b", "c")
    links.create_edge("a", "b")

    assert links.orphans(["a", "b", "c"]) == ["a", "c"]
