"""文件夹相关的请求与响应模型。"""

from typing import Optional, Union

from pydantic import BaseModel

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope
from app.packages.drive.api.v1.schemas.files import FileItem


class FolderCreateBody(BaseModel):
    name: Optional[str] = None
    parentId: Optional[Union[int, str]] = None


class FolderRenameBody(BaseModel):
    name: Optional[str] = None


class FolderItem(BaseModel):
    id: int
    name: str
    fullPath: str
    parentId: Optional[int] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class FolderContents(BaseModel):
    currentFolder: Optional[FolderItem] = None
    subfolders: list[FolderItem]
    files: list[FileItem]


class FolderDeleteResult(BaseModel):
    deletedFolders: int
    deletedFiles: int


FolderResponse = ResponseEnvelope[FolderItem]
FolderContentsResponse = ResponseEnvelope[FolderContents]
FolderDeleteResponse = ResponseEnvelope[FolderDeleteResult]
