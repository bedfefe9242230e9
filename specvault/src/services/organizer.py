"""Move node files so the folder layout mirrors the parent/child graph.

The project root lives at ``docs/index.md``. Below it every node is placed
under its parent's folder by slug: as ``<slug>/index.md`` when it has
children of its own, otherwise as ``<slug>.md``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging
import posixpath
import re
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from ..models.child_group import grouping_rules_for, organize_children
from ..models.node import NodeBase
from .dag import LinkManager
from .errors import VaultConflictError, VaultNotFoundError, VaultValidationError
from .file_storage import NODE_SUFFIX, FileStorage

logger = logging.getLogger(__name__)

ROOT_PATH = "docs/index.md"
INDEX_FILENAME = f"index{NODE_SUFFIX}"
DEFAULT_SLUG = "untitled"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str | None) -> str:
    """Lower-case ``text`` and collapse every non-alphanumeric run into one '-'."""
    slug = _NON_ALNUM.sub("-", (text or "").lower()).strip("-")
    return slug or DEFAULT_SLUG


class NodeMove(BaseModel):
    node_id: str
    from_path: str
    to_path: str


class OrganizeResult(BaseModel):
    """What an organize pass changed."""

    moves: List[NodeMove] = Field(default_factory=list)
    slugs_generated: List[str] = Field(default_factory=list, description="Node ids")
    organized: List[str] = Field(default_factory=list, description="Node ids in scope")


@dataclass
class Layout:
    """Computed placement for one organize run; building it touches nothing on disk."""

    nodes: Dict[str, NodeBase]
    children: Dict[str, List[str]]
    targets: Dict[str, str]
    scope: List[str]
    current: Dict[str, str]
    evictions: List[str] = field(default_factory=list)


class Organizer:
    """Compute target paths from the graph and move files to match.

    Files of nodes outside the scope stay where they are and computed paths
    step around them. After the moves, every node in scope and every parent of
    a moved node is rewritten, which persists generated slugs and refreshes
    the children sections.
    """

    def __init__(self, storage: FileStorage, links: LinkManager) -> None:
        self.storage = storage
        self.links = links

    def _root_id(self) -> str:
        root_id = self.storage.get_project_metadata().root_spec_id
        if not root_id:
            raise VaultNotFoundError("Root node is not set in project metadata")
        return root_id

    def _current_path(self, current: Dict[str, str], node_id: str) -> str:
        return current.get(node_id) or self.storage.default_relative_path(node_id)

    def _compute(self, node_id: Optional[str] = None) -> Layout:
        nodes = {node.id: node for node in self.storage.list()}
        root_id = self._root_id()
        if root_id not in nodes:
            raise VaultNotFoundError("Root node not found", root_id)
        index = self.links.children_index()
        children = {
            parent_id: [child_id for child_id in child_ids if child_id in nodes]
            for parent_id, child_ids in index.items()
            if parent_id in nodes
        }

        def subtree(start_id: str) -> List[str]:
            ordered = [start_id]
            seen = {start_id}
            queue = deque([start_id])
            while queue:
                for child_id in children.get(queue.popleft(), []):
                    if child_id not in seen:
                        seen.add(child_id)
                        ordered.append(child_id)
                        queue.append(child_id)
            return ordered

        reachable = subtree(root_id)
        if node_id is None:
            scope = reachable
        elif node_id not in reachable:
            raise VaultValidationError("Node is not reachable from the project root", node_id)
        else:
            scope = subtree(node_id)
        in_scope = set(scope)

        current = self.storage.node_file_links()
        movable = {self._current_path(current, candidate) for candidate in scope}
        held = {path: holder for holder, path in current.items() if holder not in in_scope}

        def blocked(path: str, owner_id: str) -> bool:
            if path in movable or path == self._current_path(current, owner_id):
                return False
            return path in held or self.storage.is_occupied(path)

        def slug_of(candidate: str) -> str:
            node = nodes[candidate]
            return node.slug or slugify(node.title)

        def child_path(parent_dir: str, slug: str, candidate: str) -> str:
            if children.get(candidate):
                return posixpath.join(parent_dir, slug, INDEX_FILENAME)
            return posixpath.join(parent_dir, f"{slug}{NODE_SUFFIX}")

        targets: Dict[str, str] = {}

        def place(candidate: str, path: str) -> None:
            targets[candidate] = path
            parent_dir = posixpath.dirname(path)
            used: Set[str] = {posixpath.splitext(INDEX_FILENAME)[0]}
            for child_id in children.get(candidate, []):
                # first parent reached wins for nodes with several parents
                if child_id in targets:
                    continue
                slug = base = slug_of(child_id)
                suffix = 2
                path_for_child = child_path(parent_dir, slug, child_id)
                while slug in used or blocked(path_for_child, child_id):
                    slug = f"{base}-{suffix}"
                    suffix += 1
                    path_for_child = child_path(parent_dir, slug, child_id)
                used.add(slug)
                place(child_id, path_for_child)

        place(root_id, ROOT_PATH)

        evictions: List[str] = []
        if root_id in in_scope and blocked(ROOT_PATH, root_id):
            holder = held.get(ROOT_PATH)
            if holder is None:
                raise VaultConflictError("Root path is taken by an untracked file", ROOT_PATH)
            evictions.append(holder)

        ordered_scope = [candidate for candidate in targets if candidate in in_scope]
        return Layout(nodes, children, targets, ordered_scope, current, evictions)

    def plan(self, node_id: Optional[str] = None) -> Dict[str, str]:
        """Target path of every node in scope, without touching the disk."""
        layout = self._compute(node_id)
        return {candidate: layout.targets[candidate] for candidate in layout.scope}

    def organize(self, node_id: Optional[str] = None) -> OrganizeResult:
        """Converge on-disk paths to the computed layout for the whole graph or one subtree."""
        layout = self._compute(node_id)
        result = OrganizeResult(organized=list(layout.scope))

        for holder in layout.evictions:
            from_path = self._current_path(layout.current, holder)
            to_path = self.storage.default_relative_path(holder)
            self.storage.move(holder, to_path)
            result.moves.append(NodeMove(node_id=holder, from_path=from_path, to_path=to_path))

        pending = {
            candidate: layout.targets[candidate]
            for candidate in layout.scope
            if self._current_path(layout.current, candidate) != layout.targets[candidate]
        }
        while pending:
            current = self.storage.node_file_links()
            occupied = {self._current_path(current, candidate) for candidate in pending}
            ready = [candidate for candidate, target in pending.items() if target not in occupied]
            if not ready:
                # files swapping places: park one at its default location first
                parked = next(iter(pending))
                self.storage.move(parked, self.storage.default_relative_path(parked))
                continue
            for candidate in ready:
                target = pending.pop(candidate)
                from_path = self._current_path(current, candidate)
                self.storage.move(candidate, target)
                result.moves.append(NodeMove(node_id=candidate, from_path=from_path, to_path=target))

        moved = {move.node_id for move in result.moves}
        rewrite = list(layout.scope) + [h for h in layout.evictions if h not in layout.scope]
        for parent_id, child_ids in layout.children.items():
            if parent_id not in rewrite and moved.intersection(child_ids):
                rewrite.append(parent_id)
        for candidate in rewrite:
            node = layout.nodes[candidate]
            if candidate in layout.scope and node.slug is None:
                node.slug = slugify(node.title)
                result.slugs_generated.append(candidate)
            self._write(node, layout)

        logger.info(
            "Organized nodes",
            extra={
                "scope_root": node_id,
                "nodes": len(layout.scope),
                "moves": len(result.moves),
                "slugs_generated": len(result.slugs_generated),
            },
        )
        return result

    def _write(self, node: NodeBase, layout: Layout) -> None:
        child_nodes = [layout.nodes[child_id] for child_id in layout.children.get(node.id, [])]
        group = organize_children(child_nodes, grouping_rules_for(node))
        if group.is_empty():
            self.storage.write(node)
        else:
            self.storage.write_with_children(node, group)


__all__ = ["Organizer", "OrganizeResult", "NodeMove", "Layout", "slugify", "ROOT_PATH"]
