from pydantic import BaseModel

from repogate.services.gateway import FILE_LOCATION
from repogate.services.status import StatusReport


class StatusEntryRead(BaseModel):
    name: str
    path: str
    id: str | None = None
    location: str


class StatusRead(BaseModel):
    """All six categories are always present, empty or not."""
    added: list[StatusEntryRead] = []
    changed: list[StatusEntryRead] = []
    missing: list[StatusEntryRead] = []
    modified: list[StatusEntryRead] = []
    removed: list[StatusEntryRead] = []
    untracked: list[StatusEntryRead] = []

    @classmethod
    def from_report(cls, project_id: str, report: StatusReport) -> "StatusRead":
        def entries(category: str) -> list[StatusEntryRead]:
            return [
                StatusEntryRead(
                    name=entry.name,
                    path=entry.path,
                    id=entry.object_id,
                    location=FILE_LOCATION.format(project_id=project_id, path=entry.path),
                )
                for entry in getattr(report, category)
            ]

        return cls(
            added=entries("added"),
            changed=entries("changed"),
            missing=entries("missing"),
            modified=entries("modified"),
            removed=entries("removed"),
            untracked=entries("untracked"),
        )
