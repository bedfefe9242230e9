"""Node models: specifications, projects and implementations."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

# Keys that live in the markdown body rather than the front matter.
BODY_FIELDS = frozenset({"title", "content"})


class NodeType(str, Enum):
    """Discriminator values written to the ``type`` front-matter key."""

    SPECIFICATION = "specification"
    PROJECT = "project"
    IMPLEMENTATION = "implementation"


def _new_node_id() -> str:
    return str(uuid4())


class NodeBase(BaseModel):
    """Fields shared by every node variant."""

    model_config = ConfigDict(
        validate_assignment=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )

    id: str = Field(default_factory=_new_node_id, frozen=True, description="Stable UUID")
    title: str = Field("", description="Short human-readable label")
    content: str = Field("", description="Markdown body")
    type: str = Field(..., frozen=True, description="Variant discriminator")
    slug: Optional[str] = Field(None, description="Path segment used by organize")

    @field_validator("title")
    @classmethod
    def _single_line_title(cls, value: str) -> str:
        if "\n" in value or "\r" in value:
            raise ValueError("title must be a single line")
        return value

    @field_validator("slug", mode="before")
    @classmethod
    def _blank_slug_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_metadata(self) -> Dict[str, Any]:
        """Front-matter mapping: identity, type, slug and variant fields.

        Unset optional fields are omitted rather than written as null.
        """
        return self.model_dump(mode="json", exclude=set(BODY_FIELDS), exclude_none=True)


class Spec(NodeBase):
    """A generic specification node."""

    type: Literal["specification"] = Field("specification", frozen=True)


class Project(NodeBase):
    """A project node, usually the root of the graph."""

    type: Literal["project"] = Field("project", frozen=True)


class Implementation(NodeBase):
    """A node describing where a specification is implemented."""

    type: Literal["implementation"] = Field("implementation", frozen=True)
    repo_url: Optional[str] = None
    branch: Optional[str] = None
    folder_path: Optional[str] = None


Node = Annotated[Union[Spec, Project, Implementation], Field(discriminator="type")]

NODE_CLASSES: Dict[NodeType, type[NodeBase]] = {
    NodeType.SPECIFICATION: Spec,
    NodeType.PROJECT: Project,
    NodeType.IMPLEMENTATION: Implementation,
}

_NODE_ADAPTER: TypeAdapter[Node] = TypeAdapter(Node)


def create_node(node_type: NodeType | str, title: str, content: str, **fields: Any) -> NodeBase:
    """Build a new node of ``node_type`` with a freshly assigned id.

    Raises ValueError for an unknown type and pydantic's ValidationError for
    bad field values.
    """
    node_cls = NODE_CLASSES[NodeType(node_type)]
    return node_cls(title=title, content=content, **fields)


def node_from_metadata(metadata: Dict[str, Any], title: str, content: str) -> NodeBase:
    """Decode a node from its front matter plus heading and body text."""
    payload = dict(metadata)
    payload["title"] = title
    payload["content"] = content
    return _NODE_ADAPTER.validate_python(payload)


def is_implementation(node: NodeBase) -> bool:
    return node.type == NodeType.IMPLEMENTATION


def is_project(node: NodeBase) -> bool:
    return node.type == NodeType.PROJECT


__all__ = [
    "BODY_FIELDS",
    "NodeType",
    "NodeBase",
    "Spec",
    "Project",
    "Implementation",
    "Node",
    "NODE_CLASSES",
    "create_node",
    "node_from_metadata",
    "is_implementation",
    "is_project",
]
