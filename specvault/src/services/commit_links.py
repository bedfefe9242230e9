"""Links between nodes and git commits."""

from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Callable, List, Optional

from ..models.links import CommitLink
from ..models.node import NodeBase
from .config import AppConfig
from .errors import VaultGitError, VaultNotFoundError, VaultValidationError
from .file_storage import FileStorage

logger = logging.getLogger(__name__)

COMMIT_HASH_PATTERN = re.compile(r"^[0-9a-fA-F]+$")
COMMIT_HASH_LENGTHS = (40, 64)

CommitValidator = Callable[[str], str]
RepoChecker = Callable[[str], str]


def validate_commit_hash(commit_id: str) -> str:
    """Return the trimmed hash; SHA-1 (40) or SHA-256 (64) hex digits only."""
    commit_id = (commit_id or "").strip()
    if not commit_id:
        raise VaultValidationError("Commit ID cannot be empty")
    if len(commit_id) not in COMMIT_HASH_LENGTHS:
        raise VaultValidationError("Commit ID must be a 40 or 64 character hex string", commit_id)
    if not COMMIT_HASH_PATTERN.match(commit_id):
        raise VaultValidationError(
            "Commit ID must contain only hexadecimal characters", commit_id
        )
    return commit_id


def validate_repo_path(repo_path: str) -> str:
    """Return the trimmed path after checking it is a git checkout."""
    repo_path = (repo_path or "").strip()
    if not repo_path:
        raise VaultValidationError("Repository path cannot be empty")
    path = Path(repo_path)
    if not path.exists():
        raise VaultValidationError("Repository path does not exist", repo_path)
    if not path.is_dir():
        raise VaultValidationError("Repository path is not a directory", repo_path)
    if not (path / ".git").exists():
        raise VaultGitError("Path is not a Git repository", repo_path)
    return repo_path


class CommitLinkService:
    """Create, query and remove node <-> commit links."""

    def __init__(
        self,
        storage: FileStorage,
        config: AppConfig | None = None,
        commit_validator: CommitValidator = validate_commit_hash,
        repo_checker: RepoChecker = validate_repo_path,
    ) -> None:
        self.storage = storage
        self.config = config or storage.config
        self.commit_validator = commit_validator
        self.repo_checker = repo_checker

    def _repo_or_default(self, repo_path: Optional[str]) -> str:
        if repo_path:
            return repo_path
        if self.config.default_repo is not None:
            return str(self.config.default_repo)
        raise VaultValidationError("Repository path cannot be empty")

    def link_spec_to_commit(
        self,
        spec_id: str,
        commit_id: str,
        repo_path: Optional[str] = None,
        link_type: str = "implements",
    ) -> CommitLink:
        if not spec_id:
            raise VaultValidationError("Spec ID cannot be empty")
        link_type = (link_type or "").strip()
        if not link_type:
            raise VaultValidationError("Link type cannot be empty")
        commit_id = self.commit_validator(commit_id)
        repo_path = self.repo_checker(self._repo_or_default(repo_path))
        if not self.storage.exists(spec_id):
            raise VaultNotFoundError("Node not found", spec_id)

        link = CommitLink(
            spec_id=spec_id, commit_id=commit_id, repo_path=repo_path, link_type=link_type
        )
        self.storage.add_commit_link(link)
        logger.info(
            "Linked commit",
            extra={"spec_id": spec_id, "commit_id": commit_id, "link_type": link_type},
        )
        return link

    def get_commits_for_spec(self, spec_id: str) -> List[CommitLink]:
        if not spec_id:
            raise VaultValidationError("Spec ID cannot be empty")
        if not self.storage.exists(spec_id):
            raise VaultNotFoundError("Node not found", spec_id)
        return [link for link in self.storage.commit_links() if link.spec_id == spec_id]

    def get_specs_for_commit(self, commit_id: str, repo_path: Optional[str] = None) -> List[NodeBase]:
        """Nodes linked to a commit; links whose node no longer exists are skipped."""
        commit_id = self.commit_validator(commit_id)
        repo_path = self._repo_or_default(repo_path)
        nodes: List[NodeBase] = []
        for link in self.storage.commit_links():
            if link.commit_id != commit_id or link.repo_path != repo_path:
                continue
            try:
                nodes.append(self.storage.read(link.spec_id))
            except VaultNotFoundError:
                logger.warning("Commit link points at missing node", extra={"spec_id": link.spec_id})
        return nodes

    def unlink_spec_from_commit(
        self, spec_id: str, commit_id: str, repo_path: Optional[str] = None
    ) -> int:
        """Remove every link for (spec, commit, repo); returns how many were removed."""
        commit_id = self.commit_validator(commit_id)
        repo_path = self._repo_or_default(repo_path)
        links = self.storage.commit_links()
        kept = [
            link
            for link in links
            if not (
                link.spec_id == spec_id
                and link.commit_id == commit_id
                and link.repo_path == repo_path
            )
        ]
        removed = len(links) - len(kept)
        if not removed:
            raise VaultNotFoundError(
                "No link found",
                f"spec {spec_id} and commit {commit_id} in repo {repo_path}",
            )
        self.storage.write_commit_links(kept)
        logger.info("Unlinked commit", extra={"spec_id": spec_id, "commit_id": commit_id})
        return removed

    def delete_links_for_spec(self, spec_id: str) -> int:
        links = self.storage.commit_links()
        kept = [link for link in links if link.spec_id != spec_id]
        removed = len(links) - len(kept)
        if removed:
            self.storage.write_commit_links(kept)
        return removed


__all__ = [
    "CommitLinkService",
    "validate_commit_hash",
    "validate_repo_path",
]
