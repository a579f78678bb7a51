"""文件夹路由。路径参数 ``folderId`` 可以是 ``root``，表示根目录。"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.folders import (
    FolderContentsResponse,
    FolderCreateBody,
    FolderDeleteResponse,
    FolderRenameBody,
    FolderResponse,
)
from app.packages.drive.core.dependencies import CurrentIdentity, get_current_identity, get_db
from app.packages.drive.core.exceptions import NotFoundError
from app.packages.drive.services.folder_service import folder_service
from app.packages.drive.utils.folder_tree import parse_folder_ref

router = APIRouter(prefix="/folders", tags=["folders"])


def _folder_ref_or_404(raw: str, *, allow_root: bool) -> Optional[int]:
    try:
        folder_id = parse_folder_ref(raw)
    except ValueError as exc:
        raise NotFoundError("文件夹不存在", error="文件夹不存在或无权访问") from exc
    if folder_id is None and not allow_root:
        raise NotFoundError("文件夹不存在", error="根目录不支持该操作")
    return folder_id


@router.post("", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
def create_folder(
    payload: FolderCreateBody,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FolderResponse:
    return folder_service.create_folder(db, owner_id=identity.id, name=payload.name, parent_ref=payload.parentId)


@router.get("/{folder_id}", response_model=FolderContentsResponse)
def get_folder_contents(
    folder_id: str,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FolderContentsResponse:
    return folder_service.get_contents(
        db,
        owner_id=identity.id,
        folder_id=_folder_ref_or_404(folder_id, allow_root=True),
    )


@router.put("/{folder_id}/rename", response_model=FolderResponse)
def rename_folder(
    folder_id: str,
    payload: FolderRenameBody,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FolderResponse:
    return folder_service.rename_folder(
        db,
        owner_id=identity.id,
        folder_id=_folder_ref_or_404(folder_id, allow_root=False),
        name=payload.name,
    )


@router.delete("/{folder_id}", response_model=FolderDeleteResponse)
async def delete_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FolderDeleteResponse:
    """删除文件夹及其所有子文件夹与文件。"""
    return await folder_service.delete_folder(
        db,
        owner_id=identity.id,
        folder_id=_folder_ref_or_404(folder_id, allow_root=False),
    )
