from pathlib import Path
from urllib.parse import unquote, urlparse

from fastapi import APIRouter, Depends, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repogate.database import get_db
from repogate.dependencies import get_project, require_protocol_version
from repogate.models import Project
from repogate.schemas import ProjectCreate, ProjectRead
from repogate.services.gateway import gateway

router = APIRouter(prefix="/api/projects", tags=["projects"])


def content_location_to_path(content_location: str) -> Path:
    """Accept either a plain path or a file: URI."""
    if content_location.startswith("file:"):
        return Path(unquote(urlparse(content_location).path))
    return Path(content_location)


def _check_repository(path: Path) -> None:
    gateway.engine.open(path).close()


@router.get("", response_model=list[ProjectRead])
async def list_projects(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Project).order_by(Project.created_at))
    return [ProjectRead.from_project(p) for p in result.scalars().all()]


@router.post(
    "",
    response_model=ProjectRead,
    status_code=201,
    dependencies=[Depends(require_protocol_version)],
)
async def link_project(body: ProjectCreate, response: Response, db: AsyncSession = Depends(get_db)):
    """
    Link an existing working-tree repository so its git resources become addressable.

    The repository must already exist; unknown paths are NotFound.
    """
    path = content_location_to_path(body.content_location).resolve()
    await run_in_threadpool(_check_repository, path)

    project = Project(name=body.name or path.name, content_location=str(path))
    db.add(project)
    await db.commit()
    await db.refresh(project)

    response.headers["Location"] = project.location
    return ProjectRead.from_project(project)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project_resource(project: Project = Depends(get_project)):
    return ProjectRead.from_project(project)


@router.delete("/{project_id}", status_code=204, dependencies=[Depends(require_protocol_version)])
async def unlink_project(project: Project = Depends(get_project), db: AsyncSession = Depends(get_db)):
    """Unlink a project. The repository on disk is left untouched."""
    await db.delete(project)
    await db.commit()
