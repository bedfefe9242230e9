"""File-backed storage: one markdown file per node plus CSV edge tables."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from pathlib import Path, PurePosixPath
import posixpath
from typing import Dict, List, Tuple

from pydantic import BaseModel, Field, ValidationError

from ..models.child_group import ChildGroup
from ..models.links import CommitLink, ProjectMetadata, SpecLink
from ..models.node import NodeBase
from .config import AppConfig, get_config
from .errors import (
    SpecVaultError,
    VaultConflictError,
    VaultNotFoundError,
    VaultStorageError,
    VaultValidationError,
)
from .markdown import parse_node_markdown, render_children_section, render_node_markdown
from .tables import CsvTable, atomic_write_text

logger = logging.getLogger(__name__)

NODES_DIRNAME = "nodes"
NODE_SUFFIX = ".md"
SPEC_LINKS_FILENAME = "spec-links.csv"
COMMIT_LINKS_FILENAME = "commit-links.csv"
NODE_FILES_FILENAME = "node-files.csv"
PROJECT_METADATA_FILENAME = "project_metadata.json"

INVALID_PATH_CHARS = {'<', '>', ':', '"', '|', '?', '*'}


class NodeFileRecord(BaseModel):
    """Row of the path-tracking table."""

    node_id: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1, description="Relative to the project directory")


def validate_node_path(node_path: str) -> Tuple[bool, str]:
    """
    Validate a relative markdown path for a node file.

    Returns (is_valid, message). Message is empty when valid.
    """
    if not node_path or len(node_path) > 512:
        return False, "Path must be 1-512 characters"
    if not node_path.endswith(NODE_SUFFIX):
        return False, f"Path must end with {NODE_SUFFIX}"
    if "\\" in node_path:
        return False, "Path must use Unix separators (/)"
    if node_path.startswith("/"):
        return False, "Path must be relative (no leading /)"
    if ".." in PurePosixPath(node_path).parts:
        return False, "Path must not contain '..'"
    if any(char in INVALID_PATH_CHARS for char in node_path):
        return False, "Path contains invalid characters"
    return True, ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class FileStorage:
    """
    Persist nodes, edges and project metadata under a storage directory.

    Node files start in ``<storage>/nodes/<id>.md`` and can later be moved
    anywhere below the project directory (the storage directory's parent).
    ``node-files.csv`` tracks the current location of every node, so lookups
    by id keep working after a move.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or get_config()
        self.base_dir = self.config.storage_path
        self.project_dir = self.base_dir.parent
        self.nodes_dir = self.base_dir / NODES_DIRNAME
        self.spec_links_table = CsvTable(self.base_dir / SPEC_LINKS_FILENAME, SpecLink)
        self.commit_links_table = CsvTable(self.base_dir / COMMIT_LINKS_FILENAME, CommitLink)
        self.node_files_table = CsvTable(self.base_dir / NODE_FILES_FILENAME, NodeFileRecord)
        self.metadata_path = self.base_dir / PROJECT_METADATA_FILENAME
        self.initialize()

    def initialize(self) -> None:
        """Create the directory layout and empty tables if they are missing."""
        try:
            self.nodes_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise VaultStorageError("Failed to create storage directory", str(self.base_dir)) from exc
        for table in (self.spec_links_table, self.commit_links_table, self.node_files_table):
            table.ensure()
        if not self.metadata_path.exists():
            self._write_project_metadata(ProjectMetadata())

    # Path tracking

    def node_file_links(self) -> Dict[str, str]:
        """Map of node id to tracked path, relative to the project directory."""
        return {record.node_id: record.file_path for record in self.node_files_table.read_all()}

    def _write_node_file_links(self, links: Dict[str, str]) -> None:
        records = [
            NodeFileRecord(node_id=node_id, file_path=links[node_id]) for node_id in sorted(links)
        ]
        self.node_files_table.write_all(records)

    def default_relative_path(self, node_id: str) -> str:
        default = self.nodes_dir / f"{node_id}{NODE_SUFFIX}"
        return default.relative_to(self.project_dir).as_posix()

    def relative_node_path(self, node_id: str) -> str:
        return self.node_file_links().get(node_id) or self.default_relative_path(node_id)

    def node_path(self, node_id: str) -> Path:
        return self._resolve(self.relative_node_path(node_id))

    def _resolve(self, relative_path: str) -> Path:
        project = self.project_dir.resolve()
        full_path = (project / relative_path).resolve()
        if full_path != project and project not in full_path.parents:
            raise VaultValidationError("Path escapes project directory", relative_path)
        return full_path

    def _track(self, node_id: str, relative_path: str) -> None:
        links = self.node_file_links()
        if links.get(node_id) == relative_path:
            return
        links[node_id] = relative_path
        self._write_node_file_links(links)

    # Node files

    def exists(self, node_id: str) -> bool:
        return self.node_path(node_id).is_file()

    def is_occupied(self, relative_path: str) -> bool:
        """True if anything already exists at ``relative_path``."""
        return self._resolve(relative_path).exists()

    def write(self, node: NodeBase) -> Path:
        """Create or overwrite the node's file at its tracked location."""
        return self._write_markdown(node, render_node_markdown(node))

    def write_with_children(self, node: NodeBase, child_group: ChildGroup) -> Path:
        """Write the node followed by a generated list of links to its children."""
        links = self.node_file_links()

        def path_for(node_id: str) -> str:
            return links.get(node_id) or self.default_relative_path(node_id)

        origin_dir = posixpath.dirname(path_for(node.id))
        section = ""
        if not child_group.is_empty():
            section = render_children_section(child_group, origin_dir, path_for)
        return self._write_markdown(node, render_node_markdown(node, section))

    def _write_markdown(self, node: NodeBase, text: str) -> Path:
        if not node.id:
            raise VaultValidationError("Node id cannot be empty")
        relative_path = self.relative_node_path(node.id)
        path = self._resolve(relative_path)
        atomic_write_text(path, text)
        self._track(node.id, relative_path)
        logger.info(
            "Wrote node file",
            extra={"node_id": node.id, "node_type": node.type, "path": relative_path},
        )
        return path

    def read(self, node_id: str) -> NodeBase:
        path = self.node_path(node_id)
        if not path.is_file():
            raise VaultNotFoundError("Node not found", node_id)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise VaultStorageError("Failed to read node file", str(path)) from exc
        node = parse_node_markdown(text, source=str(path))
        if node.id != node_id:
            raise VaultStorageError(
                "Node file id does not match tracked id", f"{path}: {node.id} != {node_id}"
            )
        logger.debug("Read node file", extra={"node_id": node_id, "path": str(path)})
        return node

    def delete(self, node_id: str) -> None:
        """Remove the node's file and its path-tracking entry."""
        path = self.node_path(node_id)
        if not path.is_file():
            raise VaultNotFoundError("Node not found", node_id)
        try:
            path.unlink()
        except OSError as exc:
            raise VaultStorageError("Failed to delete node file", str(path)) from exc
        links = self.node_file_links()
        if links.pop(node_id, None) is not None:
            self._write_node_file_links(links)
        self._prune_empty_dirs(path.parent)
        logger.info("Deleted node file", extra={"node_id": node_id, "path": str(path)})

    def list(self) -> List[NodeBase]:
        """Return every readable node sorted by id; unreadable files are skipped."""
        nodes: List[NodeBase] = []
        for node_id in sorted(self.node_file_links()):
            try:
                nodes.append(self.read(node_id))
            except SpecVaultError as exc:
                logger.warning(
                    "Skipping unreadable node file",
                    extra={"node_id": node_id, "error": str(exc)},
                )
        return nodes

    def move(self, node_id: str, new_relative_path: str) -> Path:
        """Relocate a node's file; its content is left untouched."""
        is_valid, message = validate_node_path(new_relative_path)
        if not is_valid:
            raise VaultValidationError(message, new_relative_path)
        new_relative_path = posixpath.normpath(new_relative_path)

        old_relative_path = self.relative_node_path(node_id)
        old_path = self._resolve(old_relative_path)
        new_path = self._resolve(new_relative_path)
        if not old_path.is_file():
            raise VaultNotFoundError("Node file not found", f"{node_id} at {old_relative_path}")
        if new_path == old_path:
            return new_path
        if new_path.exists():
            raise VaultConflictError("Target path already exists", new_relative_path)

        try:
            new_path.parent.mkdir(parents=True, exist_ok=True)
            os.rename(old_path, new_path)
        except OSError as exc:
            raise VaultStorageError(
                "Failed to move node file", f"{old_relative_path} -> {new_relative_path}"
            ) from exc

        try:
            self._track(node_id, new_relative_path)
        except VaultStorageError:
            os.rename(new_path, old_path)
            raise

        self._prune_empty_dirs(old_path.parent)
        logger.info(
            "Moved node file",
            extra={"node_id": node_id, "from": old_relative_path, "to": new_relative_path},
        )
        return new_path

    def _prune_empty_dirs(self, directory: Path) -> None:
        """Remove directories emptied by a move or delete, stopping at fixed roots."""
        stop = {self.project_dir.resolve(), self.base_dir.resolve(), self.nodes_dir.resolve()}
        current = directory.resolve()
        while current not in stop and self.project_dir.resolve() in current.parents:
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent

    # Edge tables

    def spec_links(self) -> List[SpecLink]:
        return self.spec_links_table.read_all()

    def write_spec_links(self, links: List[SpecLink]) -> None:
        self.spec_links_table.write_all(links)

    def add_spec_link(self, link: SpecLink) -> None:
        self.spec_links_table.append(link)

    def commit_links(self) -> List[CommitLink]:
        return self.commit_links_table.read_all()

    def write_commit_links(self, links: List[CommitLink]) -> None:
        self.commit_links_table.write_all(links)

    def add_commit_link(self, link: CommitLink) -> None:
        self.commit_links_table.append(link)

    # Project metadata

    def get_project_metadata(self) -> ProjectMetadata:
        if not self.metadata_path.exists():
            metadata = ProjectMetadata()
            self._write_project_metadata(metadata)
            return metadata
        try:
            return ProjectMetadata.model_validate_json(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            raise VaultStorageError("Failed to read project metadata", str(self.metadata_path)) from exc

    def set_root_spec_id(self, node_id: str | None) -> ProjectMetadata:
        metadata = self.get_project_metadata()
        updated = metadata.model_copy(update={"root_spec_id": node_id, "updated_at": _utcnow()})
        self._write_project_metadata(updated)
        logger.info("Set root node", extra={"root_spec_id": node_id})
        return updated

    def _write_project_metadata(self, metadata: ProjectMetadata) -> None:
        atomic_write_text(self.metadata_path, metadata.model_dump_json(indent=2) + "\n")


__all__ = ["FileStorage", "NodeFileRecord", "validate_node_path", "NODES_DIRNAME", "NODE_SUFFIX"]
