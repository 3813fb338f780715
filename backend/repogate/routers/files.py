"""
Raw file content pass-through to a linked repository's working tree.
"""
from fastapi import APIRouter, Depends, Request, Response

from repogate.dependencies import get_repository, require_protocol_version
from repogate.services.engine import RepositoryHandle
from repogate.services.gateway import FILE_LOCATION, gateway

router = APIRouter(prefix="/api/projects/{project_id}/file", tags=["files"])


@router.get("/{path:path}")
async def read_file(path: str, handle: RepositoryHandle = Depends(get_repository)):
    content = await gateway.read_file(handle, path)
    return Response(content=content, media_type="application/octet-stream")


@router.put("/{path:path}", dependencies=[Depends(require_protocol_version)])
async def write_file(path: str, request: Request, handle: RepositoryHandle = Depends(get_repository)):
    body = await request.body()
    await gateway.write_file(handle, path, body)
    return {"location": FILE_LOCATION.format(project_id=handle.project_id, path=path), "size": len(body)}
