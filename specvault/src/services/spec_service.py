"""High-level operations on the node graph used by CLI and UI front ends."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from ..models.child_group import ChildGroup, grouping_rules_for, organize_children
from ..models.links import CHILD_LINK, CommitLink, SpecLink
from ..models.node import NodeBase, NodeType, create_node
from .commit_links import CommitLinkService
from .config import AppConfig, get_config
from .dag import LinkManager
from .errors import VaultNotFoundError, VaultValidationError
from .file_storage import FileStorage
from .organizer import OrganizeResult, Organizer

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_CONTENT_BYTES = 50 * 1024
DEFAULT_ROOT_TITLE = "New Project"
DEFAULT_ROOT_CONTENT = "Requirement: This project should exist."


def _validate_node_input(title: str, content: str) -> None:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title:
        raise VaultValidationError("Title cannot be empty")
    if "\n" in title or "\r" in title:
        raise VaultValidationError("Title must be a single line")
    if len(title) > MAX_TITLE_LENGTH:
        raise VaultValidationError(f"Title cannot exceed {MAX_TITLE_LENGTH} characters")
    if not content:
        raise VaultValidationError("Content cannot be empty")
    if len(content.encode("utf-8")) > MAX_CONTENT_BYTES:
        raise VaultValidationError("Content cannot exceed 50KB")


def _require_id(node_id: str, what: str = "Node") -> None:
    if not node_id:
        raise VaultValidationError(f"{what} ID cannot be empty")


class SpecService:
    """Facade tying storage, the link DAG, commit links and the organizer together.

    Parent files carry a generated list of their children, so every change to
    a node or its links rewrites the affected parents as well.
    """

    def __init__(self, storage: FileStorage | None = None, config: AppConfig | None = None) -> None:
        self.config = config or (storage.config if storage is not None else get_config())
        self.storage = storage or FileStorage(self.config)
        self.links = LinkManager(self.storage)
        self.commits = CommitLinkService(self.storage, self.config)
        self.organizer = Organizer(self.storage, self.links)

    # Nodes

    def create_node(
        self, node_type: NodeType | str, title: str, content: str, **fields: Any
    ) -> NodeBase:
        _validate_node_input(title, content)
        try:
            node = create_node(node_type, title, content, **fields)
        except (KeyError, ValueError) as exc:
            raise VaultValidationError("Invalid node", str(exc)) from exc
        self.storage.write(node)
        logger.info("Created node", extra={"node_id": node.id, "node_type": node.type})
        return node

    def create_spec(self, title: str, content: str) -> NodeBase:
        return self.create_node(NodeType.SPECIFICATION, title, content)

    def create_project(self, title: str, content: str) -> NodeBase:
        return self.create_node(NodeType.PROJECT, title, content)

    def create_implementation(
        self,
        title: str,
        content: str,
        repo_url: Optional[str] = None,
        branch: Optional[str] = None,
        folder_path: Optional[str] = None,
    ) -> NodeBase:
        return self.create_node(
            NodeType.IMPLEMENTATION,
            title,
            content,
            repo_url=repo_url,
            branch=branch,
            folder_path=folder_path,
        )

    def get_node(self, node_id: str) -> NodeBase:
        _require_id(node_id)
        return self.storage.read(node_id)

    def list_nodes(self) -> List[NodeBase]:
        return self.storage.list()

    def update_node(
        self,
        node_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        **fields: Any,
    ) -> NodeBase:
        """Change title, content, slug or variant fields; omitted values are kept."""
        node = self.get_node(node_id)
        new_title = node.title if title is None else title
        new_content = node.content if content is None else content
        _validate_node_input(new_title, new_content)
        updates = dict(fields, title=new_title, content=new_content)
        try:
            for key, value in updates.items():
                setattr(node, key, value)
        except ValueError as exc:
            raise VaultValidationError("Invalid update", str(exc)) from exc

        self.refresh_node(node)
        for parent_id in self.links.parents_of(node_id):
            self.refresh_node(parent_id)
        return node

    def delete_node(self, node_id: str) -> None:
        """Delete a node with its edges, commit links and root designation."""
        _require_id(node_id)
        if not self.storage.exists(node_id):
            raise VaultNotFoundError("Node not found", node_id)
        parents = self.links.parents_of(node_id)
        self.links.delete_node_edges(node_id)
        self.commits.delete_links_for_spec(node_id)
        if self.storage.get_project_metadata().root_spec_id == node_id:
            self.storage.set_root_spec_id(None)
        self.storage.delete(node_id)
        for parent_id in parents:
            self.refresh_node(parent_id)
        logger.info("Deleted node", extra={"node_id": node_id, "parents": len(parents)})

    # Hierarchy

    def add_child(self, parent_id: str, child_id: str, link_type: str = CHILD_LINK) -> SpecLink:
        _require_id(parent_id, "Parent")
        _require_id(child_id, "Child")
        link = self.links.create_edge(parent_id, child_id, link_type)
        self.refresh_node(parent_id)
        return link

    def remove_child(self, parent_id: str, child_id: str) -> None:
        _require_id(parent_id, "Parent")
        _require_id(child_id, "Child")
        self.links.delete_edge(parent_id, child_id)
        self.refresh_node(parent_id)

    def _read_existing(self, node_ids: Iterable[str]) -> List[NodeBase]:
        nodes: List[NodeBase] = []
        for node_id in node_ids:
            try:
                nodes.append(self.storage.read(node_id))
            except VaultNotFoundError:
                logger.warning("Link points at missing node", extra={"node_id": node_id})
        return nodes

    def list_children(self, node_id: str) -> List[NodeBase]:
        _require_id(node_id)
        return self._read_existing(self.links.children_of(node_id))

    def list_parents(self, node_id: str) -> List[NodeBase]:
        _require_id(node_id)
        return self._read_existing(self.links.parents_of(node_id))

    def list_orphans(self) -> List[NodeBase]:
        nodes = self.storage.list()
        orphan_ids = set(self.links.orphans(node.id for node in nodes))
        return [node for node in nodes if node.id in orphan_ids]

    def get_child_group(self, node: NodeBase | str, ungrouped_label: Optional[str] = None) -> ChildGroup:
        if isinstance(node, str):
            node = self.get_node(node)
        return organize_children(
            self.list_children(node.id), grouping_rules_for(node), ungrouped_label
        )

    def refresh_node(self, node: NodeBase | str) -> None:
        """Rewrite a node file, regenerating its children section."""
        if isinstance(node, str):
            node = self.get_node(node)
        group = self.get_child_group(node)
        if group.is_empty():
            self.storage.write(node)
        else:
            self.storage.write_with_children(node, group)

    # Root

    def get_root(self) -> NodeBase:
        root_id = self.storage.get_project_metadata().root_spec_id
        if not root_id:
            raise VaultNotFoundError("Root node is not set in project metadata")
        return self.storage.read(root_id)

    def set_root(self, node_id: str) -> None:
        _require_id(node_id)
        if not self.storage.exists(node_id):
            raise VaultNotFoundError("Node not found", node_id)
        self.storage.set_root_spec_id(node_id)

    def initialize_root(self) -> NodeBase:
        """Return the root node, creating a default project node if none is set."""
        try:
            return self.get_root()
        except VaultNotFoundError:
            pass
        root = self.create_project(DEFAULT_ROOT_TITLE, DEFAULT_ROOT_CONTENT)
        self.storage.set_root_spec_id(root.id)
        return root

    # Commits

    def link_commit(
        self,
        spec_id: str,
        commit_id: str,
        repo_path: Optional[str] = None,
        link_type: str = "implements",
    ) -> CommitLink:
        return self.commits.link_spec_to_commit(spec_id, commit_id, repo_path, link_type)

    def unlink_commit(self, spec_id: str, commit_id: str, repo_path: Optional[str] = None) -> int:
        return self.commits.unlink_spec_from_commit(spec_id, commit_id, repo_path)

    def get_commits(self, spec_id: str) -> List[CommitLink]:
        return self.commits.get_commits_for_spec(spec_id)

    # Layout

    def organize(self, node_id: Optional[str] = None) -> OrganizeResult:
        """Move files into the hierarchical layout and regenerate child links."""
        return self.organizer.organize(node_id)


__all__ = ["SpecService", "MAX_TITLE_LENGTH", "MAX_CONTENT_BYTES"]
