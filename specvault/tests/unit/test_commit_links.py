from pathlib import Path

import pytest

from specvault.src.models import NodeType, create_node
from specvault.src.services.commit_links import (
    CommitLinkService,
    validate_commit_hash,
    validate_repo_path,
)
from specvault.src.services.config import AppConfig
from specvault.src.services.errors import (
    VaultGitError,
    VaultNotFoundError,
    VaultValidationError,
)
from specvault.src.services.file_storage import FileStorage

SHA1 = "a" * 40
SHA256 = "0123456789abcdef" * 4


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    path = tmp_path / "repo"
    (path / ".git").mkdir(parents=True)
    return path


@pytest.fixture
def storage(tmp_path: Path, repo: Path) -> FileStorage:
    return FileStorage(
        config=AppConfig(storage_path=tmp_path / ".specvault", default_repo=repo)
    )


@pytest.fixture
def service(storage: FileStorage) -> CommitLinkService:
    return CommitLinkService(storage)


@pytest.fixture
def spec_id(storage: FileStorage) -> str:
    node = create_node(NodeType.SPECIFICATION, "Login", "Users can log in")
    storage.write(node)
    return node.id


def test_validate_commit_hash_accepts_sha1_and_sha256() -> None:
    assert validate_commit_hash(f"  {SHA1} ") == SHA1
    assert validate_commit_hash(SHA256) == SHA256


@pytest.mark.parametrize("bad", ["", "abc123", "g" * 40, "a" * 41])
def test_validate_commit_hash_rejects_bad_values(bad: str) -> None:
    with pytest.raises(VaultValidationError):
        validate_commit_hash(bad)


def test_validate_repo_path_requires_git_dir(tmp_path: Path, repo: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()

    assert validate_repo_path(str(repo)) == str(repo)
    with pytest.raises(VaultGitError):
        validate_repo_path(str(plain))
    with pytest.raises(VaultValidationError):
        validate_repo_path(str(tmp_path / "nowhere"))


def test_link_uses_default_repo(service: CommitLinkService, spec_id: str, repo: Path) -> None:
    link = service.link_spec_to_commit(spec_id, SHA1, link_type="fixes")

    assert link.repo_path == str(repo.resolve())
    assert link.display_label == "FIX"
    assert service.get_commits_for_spec(spec_id) == [link]


def test_link_to_missing_node_is_rejected(service: CommitLinkService) -> None:
    with pytest.raises(VaultNotFoundError):
        service.link_spec_to_commit("missing", SHA1)


def test_injected_checkers_replace_git_checks(storage: FileStorage, spec_id: str) -> None:
    service = CommitLinkService(
        storage,
        commit_validator=lambda commit: commit.upper(),
        repo_checker=lambda path: path,
    )

    link = service.link_spec_to_commit(spec_id, "short", "/not/a/repo")

    assert link.commit_id == "SHORT"
    assert link.repo_path == "/not/a/repo"


def test_get_specs_for_commit_skips_missing_nodes(
    service: CommitLinkService, storage: FileStorage, spec_id: str
) -> None:
    service.link_spec_to_commit(spec_id, SHA1)
    other = create_node(NodeType.SPECIFICATION, "Gone", "Soon deleted")
    storage.write(other)
    service.link_spec_to_commit(other.id, SHA1)
    storage.delete(other.id)

    assert [node.id for node in service.get_specs_for_commit(SHA1)] == [spec_id]


def test_unlink_removes_matching_links(service: CommitLinkService, spec_id: str) -> None:
    service.link_spec_to_commit(spec_id, SHA1)
    service.link_spec_to_commit(spec_id, SHA1, link_type="tests")
    service.link_spec_to_commit(spec_id, SHA256)

    assert service.unlink_spec_from_commit(spec_id, SHA1) == 2
    assert [link.commit_id for link in service.get_commits_for_spec(spec_id)] == [SHA256]
    with pytest.raises(VaultNotFoundError):
        service.unlink_spec_from_commit(spec_id, SHA1)


def test_delete_links_for_spec(service: CommitLinkService, spec_id: str) -> None:
    service.link_spec_to_commit(spec_id, SHA1)

    assert service.delete_links_for_spec(spec_id) == 1
    assert service.get_commits_for_spec(spec_id) == []
