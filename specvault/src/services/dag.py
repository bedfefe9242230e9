"""Parent/child edges between nodes, kept acyclic."""

from __future__ import annotations

from collections import deque
import logging
from typing import Dict, Iterable, List, Set

from ..models.links import CHILD_LINK, SpecLink
from .errors import VaultConflictError, VaultNotFoundError, VaultValidationError
from .file_storage import FileStorage

logger = logging.getLogger(__name__)


def _children_index(links: Iterable[SpecLink]) -> Dict[str, List[str]]:
    index: Dict[str, List[str]] = {}
    for link in links:
        index.setdefault(link.from_spec_id, []).append(link.to_spec_id)
    return index


def reachable(links: Iterable[SpecLink], start_id: str, target_id: str) -> bool:
    """True if ``target_id`` can be reached from ``start_id`` along parent->child edges."""
    index = _children_index(links)
    seen: Set[str] = {start_id}
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        if current == target_id:
            return True
        for child_id in index.get(current, []):
            if child_id not in seen:
                seen.add(child_id)
                queue.append(child_id)
    return False


class LinkManager:
    """
    Maintain the spec-links table as a DAG.

    Every mutation either keeps the table acyclic, free of self loops and free
    of duplicate (parent, child) pairs, or raises without touching the file.
    """

    def __init__(self, storage: FileStorage) -> None:
        self.storage = storage

    def would_create_cycle(self, parent_id: str, child_id: str) -> bool:
        if parent_id == child_id:
            return True
        return reachable(self.storage.spec_links(), child_id, parent_id)

    def create_edge(self, parent_id: str, child_id: str, link_type: str = CHILD_LINK) -> SpecLink:
        if not parent_id or not child_id:
            raise VaultValidationError("Parent and child ids are required")
        if parent_id == child_id:
            raise VaultValidationError("Cannot link a node to itself", f"{parent_id} -> {child_id}")
        for node_id in (parent_id, child_id):
            if not self.storage.exists(node_id):
                raise VaultNotFoundError("Node not found", node_id)

        links = self.storage.spec_links()
        if any(link.from_spec_id == parent_id and link.to_spec_id == child_id for link in links):
            raise VaultConflictError("Link already exists", f"{parent_id} -> {child_id}")
        if reachable(links, child_id, parent_id):
            raise VaultConflictError(
                "Link would create a cycle", f"{parent_id} -> {child_id}"
            )

        link = SpecLink(
            from_spec_id=parent_id, to_spec_id=child_id, link_type=link_type or CHILD_LINK
        )
        links.append(link)
        self.storage.write_spec_links(links)
        logger.info("Created link", extra={"parent_id": parent_id, "child_id": child_id})
        return link

    def delete_edge(self, parent_id: str, child_id: str) -> None:
        links = self.storage.spec_links()
        kept = [
            link
            for link in links
            if not (link.from_spec_id == parent_id and link.to_spec_id == child_id)
        ]
        if len(kept) == len(links):
            raise VaultNotFoundError("Link not found", f"{parent_id} -> {child_id}")
        self.storage.write_spec_links(kept)
        logger.info("Deleted link", extra={"parent_id": parent_id, "child_id": child_id})

    def delete_node_edges(self, node_id: str) -> int:
        """Drop every edge touching ``node_id``; returns how many were removed."""
        links = self.storage.spec_links()
        kept = [link for link in links if node_id not in (link.from_spec_id, link.to_spec_id)]
        removed = len(links) - len(kept)
        if removed:
            self.storage.write_spec_links(kept)
            logger.info("Deleted node links", extra={"node_id": node_id, "count": removed})
        return removed

    def children_of(self, node_id: str) -> List[str]:
        return [link.to_spec_id for link in self.storage.spec_links() if link.from_spec_id == node_id]

    def parents_of(self, node_id: str) -> List[str]:
        return [link.from_spec_id for link in self.storage.spec_links() if link.to_spec_id == node_id]

    def children_index(self) -> Dict[str, List[str]]:
        return _children_index(self.storage.spec_links())

    def descendants_of(self, node_id: str) -> List[str]:
        """All nodes below ``node_id``, breadth first, without duplicates."""
        index = self.children_index()
        seen: Set[str] = {node_id}
        ordered: List[str] = []
        queue = deque([node_id])
        while queue:
            for child_id in index.get(queue.popleft(), []):
                if child_id not in seen:
                    seen.add(child_id)
                    ordered.append(child_id)
                    queue.append(child_id)
        return ordered

    def orphans(self, node_ids: Iterable[str]) -> List[str]:
        """The subset of ``node_ids`` that is nobody's child."""
        has_parent = {link.to_spec_id for link in self.storage.spec_links()}
        return [node_id for node_id in node_ids if node_id not in has_parent]


__all__ = ["LinkManager", "reachable"]
