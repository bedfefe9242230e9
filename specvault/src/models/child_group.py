"""Grouped, renderable view of a node's children.

A ``ChildGroup`` is a small tree: a bucket of ungrouped children plus an
ordered list of labelled sub-groups. It is never persisted; callers build one
from DAG queries whenever they need to display or render children.

Traversal order (``all_nodes``, ``node_at`` and ``render``) is always nested
groups first, in list order, followed by the ungrouped children.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from .node import NodeBase, is_implementation, is_project

NodePredicate = Callable[[NodeBase], bool]
RegroupRule = Tuple[str, NodePredicate]

IMPLEMENTATIONS_LABEL = "Implementations"


class ChildGroupRenderer(Protocol):
    """Visitor receiving render events from ``ChildGroup.render``."""

    def render_group_start(self, nesting_level: int, label: str) -> None: ...

    def render_group_end(self, nesting_level: int) -> None: ...

    def render_node(self, nesting_level: int, node: NodeBase) -> None: ...


class ChildGroup:
    """Children partitioned into an ungrouped bucket and named sub-groups."""

    def __init__(
        self,
        children: Iterable[NodeBase] | None = None,
        groups: Iterable[Tuple[str, "ChildGroup"]] | None = None,
        ungrouped_label: Optional[str] = None,
    ) -> None:
        self.children: List[NodeBase] = list(children or [])
        self.groups: List[Tuple[str, ChildGroup]] = list(groups or [])
        self.ungrouped_label = ungrouped_label

    def __repr__(self) -> str:
        labels = [label for label, _ in self.groups]
        return f"ChildGroup(children={len(self.children)}, groups={labels!r})"

    def group(self, label: str) -> Optional["ChildGroup"]:
        for group_label, sub_group in self.groups:
            if group_label == label:
                return sub_group
        return None

    def contains(self, node: NodeBase) -> bool:
        if any(child.id == node.id for child in self.children):
            return True
        return any(sub_group.contains(node) for _, sub_group in self.groups)

    def size(self) -> int:
        return len(self.children) + sum(sub_group.size() for _, sub_group in self.groups)

    def is_empty(self) -> bool:
        return not self.children and not self.groups

    def all_nodes(self) -> List[NodeBase]:
        """Flatten depth-first: nested groups first, then ungrouped children."""
        nodes: List[NodeBase] = []
        for _, sub_group in self.groups:
            nodes.extend(sub_group.all_nodes())
        nodes.extend(self.children)
        return nodes

    def node_at(self, index: int) -> Optional[NodeBase]:
        """Return the node at ``index`` in ``all_nodes()`` order, or None."""
        if index < 0 or index >= self.size():
            return None
        for _, sub_group in self.groups:
            if index < sub_group.size():
                return sub_group.node_at(index)
            index -= sub_group.size()
        return self.children[index]

    def append_unmatched(self, nodes: Iterable[NodeBase]) -> None:
        """Add every node not already somewhere in the tree to the ungrouped bucket."""
        for node in nodes:
            if not self.contains(node):
                self.children.append(node)

    def remove(self, predicate: NodePredicate) -> List[NodeBase]:
        """Pull matching nodes out of the whole tree, dropping emptied groups."""
        removed = [child for child in self.children if predicate(child)]
        self.children = [child for child in self.children if not predicate(child)]

        kept: List[Tuple[str, ChildGroup]] = []
        for label, sub_group in self.groups:
            removed.extend(sub_group.remove(predicate))
            if not sub_group.is_empty():
                kept.append((label, sub_group))
        self.groups = kept
        return removed

    def regroup(self, label: str, predicate: NodePredicate) -> None:
        """Move every matching node into a new group prepended to ``groups``.

        A remaining group with the same label is folded into the new one.
        Nothing happens when no node matches.
        """
        removed = self.remove(predicate)
        if not removed:
            return
        new_group = ChildGroup(children=removed)
        remaining: List[Tuple[str, ChildGroup]] = []
        for group_label, sub_group in self.groups:
            if group_label == label:
                new_group.children.extend(sub_group.children)
                new_group.groups.extend(sub_group.groups)
            else:
                remaining.append((group_label, sub_group))
        self.groups = [(label, new_group)] + remaining

    def render(self, renderer: ChildGroupRenderer) -> None:
        self._render(0, renderer)

    def _render(self, nesting_level: int, renderer: ChildGroupRenderer) -> None:
        for label, sub_group in self.groups:
            renderer.render_group_start(nesting_level, label)
            sub_group._render(nesting_level + 1, renderer)
            renderer.render_group_end(nesting_level)

        if self.ungrouped_label and self.children:
            renderer.render_group_start(nesting_level, self.ungrouped_label)
            for child in self.children:
                renderer.render_node(nesting_level + 1, child)
            renderer.render_group_end(nesting_level)
        else:
            for child in self.children:
                renderer.render_node(nesting_level, child)


def organize_children(
    all_children: Iterable[NodeBase],
    regroup_rules: Sequence[RegroupRule] = (),
    ungrouped_label: Optional[str] = None,
) -> ChildGroup:
    """Start with every child ungrouped, then apply each rule in order."""
    group = ChildGroup(ungrouped_label=ungrouped_label)
    group.append_unmatched(all_children)
    for label, predicate in regroup_rules:
        group.regroup(label, predicate)
    return group


def grouping_rules_for(node: NodeBase) -> List[RegroupRule]:
    """Default rules: a project lists its implementations separately."""
    if is_project(node):
        return [(IMPLEMENTATIONS_LABEL, is_implementation)]
    return []


__all__ = [
    "ChildGroup",
    "ChildGroupRenderer",
    "IMPLEMENTATIONS_LABEL",
    "NodePredicate",
    "RegroupRule",
    "organize_children",
    "grouping_rules_for",
]
