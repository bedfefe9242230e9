"""Pydantic models for nodes, links and the child-grouping view."""

from .child_group import (
    IMPLEMENTATIONS_LABEL,
    ChildGroup,
    ChildGroupRenderer,
    grouping_rules_for,
    organize_children,
)
from .links import (
    CHILD_LINK,
    COMMIT_LINK_LABELS,
    CommitLink,
    ProjectMetadata,
    SpecLink,
    display_label,
)
from .node import (
    NODE_CLASSES,
    Implementation,
    Node,
    NodeBase,
    NodeType,
    Project,
    Spec,
    create_node,
    is_implementation,
    is_project,
    node_from_metadata,
)

__all__ = [
    "NodeType",
    "NodeBase",
    "Node",
    "Spec",
    "Project",
    "Implementation",
    "NODE_CLASSES",
    "create_node",
    "node_from_metadata",
    "is_implementation",
    "is_project",
    "CHILD_LINK",
    "COMMIT_LINK_LABELS",
    "SpecLink",
    "CommitLink",
    "ProjectMetadata",
    "display_label",
    "ChildGroup",
    "ChildGroupRenderer",
    "IMPLEMENTATIONS_LABEL",
    "organize_children",
    "grouping_rules_for",
]
