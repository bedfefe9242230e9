"""Markdown encoding for nodes: YAML front matter, title heading, body.

A node file looks like::

    ---
    id: 7c9e...
    type: specification
    slug: login-flow
    ---

    # Login flow

    Body text...

    ---

    ## Child Specifications

    <!-- specvault:children -->

    - [Password reset](login-flow/password-reset.md)

The trailing children section is generated output. It is recognised by the
marker comment under its heading and dropped again when the file is parsed,
so a body that merely contains the same heading is kept intact.
"""

from __future__ import annotations

import posixpath
import re
from typing import Callable, List

import frontmatter
from pydantic import ValidationError
import yaml

from ..models.child_group import ChildGroup
from ..models.node import NodeBase, node_from_metadata
from .errors import VaultStorageError

CHILDREN_HEADING = "## Child Specifications"
CHILDREN_MARKER = "<!-- specvault:children -->"
CHILDREN_SECTION_PATTERN = re.compile(
    r"(?:^|\n)---\n+"
    + re.escape(CHILDREN_HEADING)
    + r"\n+"
    + re.escape(CHILDREN_MARKER)
    + r"\n.*\Z",
    re.DOTALL,
)
TITLE_PREFIX = "# "

PathLookup = Callable[[str], str]


class MarkdownChildrenRenderer:
    """Render a ChildGroup as a nested markdown list of relative links."""

    def __init__(self, origin_dir: str, path_for: PathLookup) -> None:
        self.origin_dir = origin_dir or "."
        self.path_for = path_for
        self.lines: List[str] = []

    def render_group_start(self, nesting_level: int, label: str) -> None:
        self.lines.append(f"{'  ' * nesting_level}- {label}")

    def render_group_end(self, nesting_level: int) -> None:
        pass

    def render_node(self, nesting_level: int, node: NodeBase) -> None:
        target = self.path_for(node.id)
        link = posixpath.relpath(target, self.origin_dir)
        self.lines.append(f"{'  ' * nesting_level}- [{node.title}]({link})")

    def text(self) -> str:
        return "\n".join(self.lines) + ("\n" if self.lines else "")


def render_children_section(group: ChildGroup, origin_dir: str, path_for: PathLookup) -> str:
    """Build the divider, heading and link list appended after a node body.

    ``origin_dir`` and the paths returned by ``path_for`` must share a base
    (both relative to the project directory, POSIX separators).
    """
    renderer = MarkdownChildrenRenderer(origin_dir, path_for)
    group.render(renderer)
    return f"\n---\n\n{CHILDREN_HEADING}\n\n{CHILDREN_MARKER}\n\n{renderer.text()}"


def render_node_markdown(node: NodeBase, children_section: str = "") -> str:
    parts = []
    if node.title:
        parts.append(f"{TITLE_PREFIX}{node.title}")
    if node.content:
        parts.append(node.content)
    post = frontmatter.Post("\n\n".join(parts), **node.to_metadata())
    return frontmatter.dumps(post, sort_keys=False) + "\n" + children_section


def _split_title(body: str) -> tuple[str, str]:
    if not body.startswith(TITLE_PREFIX):
        return "", body
    heading, _, rest = body.partition("\n")
    return heading[len(TITLE_PREFIX):].strip(), rest.strip()


def parse_node_markdown(text: str, source: str = "<string>") -> NodeBase:
    """Decode a node file; raises VaultStorageError when it cannot be read."""
    if not frontmatter.checks(text):
        raise VaultStorageError("Invalid node file: missing front matter", source)
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as exc:
        raise VaultStorageError("Invalid node file: malformed front matter", source) from exc

    body = CHILDREN_SECTION_PATTERN.sub("", post.content.strip()).strip()
    title, content = _split_title(body)
    try:
        return node_from_metadata(dict(post.metadata), title, content)
    except ValidationError as exc:
        raise VaultStorageError("Invalid node file: bad metadata", f"{source}: {exc}") from exc


__all__ = [
    "CHILDREN_HEADING",
    "CHILDREN_MARKER",
    "MarkdownChildrenRenderer",
    "render_children_section",
    "render_node_markdown",
    "parse_node_markdown",
]
