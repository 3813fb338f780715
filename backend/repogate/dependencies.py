from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repogate.config import get_settings
from repogate.database import get_db
from repogate.errors import MalformedError, NotFoundError
from repogate.models import Project
from repogate.services.engine import RepositoryHandle


async def require_protocol_version(request: Request) -> str:
    """Mutating requests must name a supported protocol version."""
    settings = get_settings()
    version = request.headers.get(settings.protocol_version_header)
    if not version:
        raise MalformedError(f"Missing {settings.protocol_version_header} header")
    if version.strip() not in settings.supported_protocol_versions:
        raise MalformedError(f"Unsupported {settings.protocol_version_header}: {version}")
    return version.strip()


async def get_project(project_id: str, db: AsyncSession = Depends(get_db)) -> Project:
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError("Project not found")
    return project


async def get_repository(project: Project = Depends(get_project)) -> RepositoryHandle:
    return RepositoryHandle(project_id=project.id, path=project.repository_path)
