"""文件登记路由：上传、查询、重命名、移动与删除。"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import (
    FileDeleteResponse,
    FileListResponse,
    FileMoveBody,
    FileRenameBody,
    FileResponse,
    UploadResponse,
)
from app.packages.drive.core.dependencies import CurrentIdentity, get_current_identity, get_db
from app.packages.drive.services.file_service import IncomingFile, file_service

router = APIRouter(prefix="/files", tags=["files"])


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_files(
    files: Optional[list[UploadFile]] = File(default=None),
    folder_id: Optional[str] = Form(default=None, alias="folderId"),
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> UploadResponse:
    incoming = []
    for upload in files or []:
        incoming.append(
            IncomingFile(
                name=upload.filename or "",
                content=await upload.read(),
                content_type=upload.content_type,
            )
        )
    return await file_service.upload_files(db, owner_id=identity.id, files=incoming, folder_ref=folder_id)


@router.get("", response_model=FileListResponse)
def list_files(
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FileListResponse:
    """按上传时间倒序返回当前用户的全部文件，过期的访问链接会被重新签发。"""
    return file_service.list_files(db, owner_id=identity.id)


@router.get("/{file_id}", response_model=FileResponse)
def get_file(
    file_id: int,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FileResponse:
    return file_service.get_file(db, owner_id=identity.id, file_id=file_id)


@router.put("/{file_id}/rename", response_model=FileResponse)
def rename_file(
    file_id: int,
    payload: FileRenameBody,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FileResponse:
    return file_service.rename_file(db, owner_id=identity.id, file_id=file_id, name=payload.name)


@router.put("/{file_id}/move", response_model=FileResponse)
def move_file(
    file_id: int,
    payload: FileMoveBody,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FileResponse:
    return file_service.move_file(db, owner_id=identity.id, file_id=file_id, folder_ref=payload.folderId)


@router.delete("/{file_id}", response_model=FileDeleteResponse)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> FileDeleteResponse:
    return file_service.delete_file(db, owner_id=identity.id, file_id=file_id)
