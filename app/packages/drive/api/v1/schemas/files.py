"""文件登记相关的请求与响应模型。"""

from typing import Optional, Union

from pydantic import BaseModel

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class FileRenameBody(BaseModel):
    name: Optional[str] = None


class FileMoveBody(BaseModel):
    """``folderId`` 为空或 ``root`` 时移动到根目录。"""

    folderId: Optional[Union[int, str]] = None


class FileItem(BaseModel):
    id: int
    originalName: str
    filename: str
    storageKey: str
    mimeType: str
    size: int
    accessUrl: Optional[str] = None
    accessUrlIssuedAt: Optional[str] = None
    folderId: Optional[int] = None
    revision: int
    uploadDate: Optional[str] = None
    updatedAt: Optional[str] = None


class UploadResult(BaseModel):
    uploaded: list[FileItem]
    skipped: list[str]


FileResponse = ResponseEnvelope[FileItem]
FileListResponse = ResponseEnvelope[list[FileItem]]
UploadResponse = ResponseEnvelope[UploadResult]
FileDeleteResponse = ResponseEnvelope[None]
