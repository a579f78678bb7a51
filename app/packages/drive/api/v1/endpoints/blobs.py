"""本地存储的签名直链：链接本身即凭证，无需 Bearer 令牌。

链接形如 ``/blobs?issued=<签发时间>&token=<JWT>``，``issued`` 仅用于判断链接是否需要重新签发，
真正的有效期由令牌中的 ``exp`` 决定。
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import FileResponse

from app.packages.drive.services.file_service import file_service

router = APIRouter(tags=["blobs"])


@router.get("/blobs", response_class=FileResponse)
def read_blob(token: Optional[str] = Query(default=None)) -> FileResponse:
    path, media_type = file_service.resolve_signed_blob(token=token)
    return FileResponse(str(path), media_type=media_type, filename=path.name)
