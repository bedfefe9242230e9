"""Service layer: configuration, file storage, the link DAG and organize."""

from .commit_links import CommitLinkService, validate_commit_hash, validate_repo_path
from .config import AppConfig, configure_logging, get_config, reload_config, resolve_storage_dir
from .dag import LinkManager, reachable
from .errors import (
    ErrorType,
    SpecVaultError,
    VaultConflictError,
    VaultGitError,
    VaultNotFoundError,
    VaultStorageError,
    VaultValidationError,
)
from .file_storage import FileStorage, validate_node_path
from .markdown import parse_node_markdown, render_children_section, render_node_markdown
from .organizer import NodeMove, OrganizeResult, Organizer, slugify
from .spec_service import SpecService
from .tables import CsvTable

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "resolve_storage_dir",
    "configure_logging",
    "ErrorType",
    "SpecVaultError",
    "VaultValidationError",
    "VaultNotFoundError",
    "VaultConflictError",
    "VaultStorageError",
    "VaultGitError",
    "CsvTable",
    "FileStorage",
    "validate_node_path",
    "parse_node_markdown",
    "render_node_markdown",
    "render_children_section",
    "LinkManager",
    "reachable",
    "CommitLinkService",
    "validate_commit_hash",
    "validate_repo_path",
    "Organizer",
    "OrganizeResult",
    "NodeMove",
    "slugify",
    "SpecService",
]
