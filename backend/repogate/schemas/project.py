from datetime import datetime
from pydantic import BaseModel


class ProjectCreate(BaseModel):
    """Link an existing working-tree repository."""
    content_location: str
    name: str | None = None


class GitLinks(BaseModel):
    """Sub-resource locations for a linked repository."""
    status: str
    index: str
    commit: str
    head: str
    remote: str


class ProjectRead(BaseModel):
    id: str
    name: str
    content_location: str
    created_at: datetime
    location: str
    git: GitLinks

    @classmethod
    def from_project(cls, project) -> "ProjectRead":
        base = project.location
        return cls(
            id=project.id,
            name=project.name,
            content_location=project.content_location,
            created_at=project.created_at,
            location=base,
            git=GitLinks(
                status=f"{base}/git/status",
                index=f"{base}/git/index",
                commit=f"{base}/git/commit",
                head=f"{base}/git/head",
                remote=f"{base}/git/remote",
            ),
        )
