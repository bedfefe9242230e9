"""Edge records and project-level metadata."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

CHILD_LINK = "child"

COMMIT_LINK_LABELS: Dict[str, str] = {
    "implements": "IMPL",
    "updates": "UPDATE",
    "fixes": "FIX",
    "refactors": "CLEAN",
    "documents": "DOC",
    "tests": "TEST",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _new_link_id() -> str:
    return str(uuid4())


class SpecLink(BaseModel):
    """Directed parent -> child edge between two nodes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_link_id)
    from_spec_id: str = Field(..., min_length=1, description="Parent node id")
    to_spec_id: str = Field(..., min_length=1, description="Child node id")
    link_type: str = Field(CHILD_LINK)
    created_at: datetime = Field(default_factory=_utcnow)


class CommitLink(BaseModel):
    """Association between a node and a git commit."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_link_id)
    spec_id: str = Field(..., min_length=1)
    commit_id: str = Field(..., min_length=1)
    repo_path: str = Field(..., min_length=1)
    link_type: str = Field("implements", min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def display_label(self) -> str:
        return display_label(self.link_type)


class ProjectMetadata(BaseModel):
    """Singleton record naming the root node of the graph."""

    id: str = Field(default_factory=_new_link_id)
    root_spec_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


def display_label(link_type: str) -> str:
    """Short column label for a commit link type, falling back to the raw type."""
    return COMMIT_LINK_LABELS.get(link_type, link_type)


__all__ = [
    "CHILD_LINK",
    "COMMIT_LINK_LABELS",
    "SpecLink",
    "CommitLink",
    "ProjectMetadata",
    "display_label",
]
