"""依赖注入模块：封装数据库会话与访问凭证校验（Access Broker）。"""

from collections.abc import Generator
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer
from sqlalchemy.orm import Session

from app.packages.drive.core.constants import ACCESS_TOKEN_TYPE
from app.packages.drive.core.exceptions import UnauthorizedError
from app.packages.drive.core.security import decode_and_verify_token
from app.packages.drive.db import session as db_session

# 仅用于在 OpenAPI 文档中声明 Bearer 认证，实际解析在 get_current_identity 中完成
security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentIdentity:
    """令牌中解析出的调用方身份。"""

    id: int
    email: str


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def parse_bearer_token(authorization: Optional[str]) -> str:
    """从 ``Authorization`` 头中取出令牌：必须恰好两段，且前缀为 Bearer（不区分大小写）。"""
    if not authorization:
        raise UnauthorizedError("缺少认证信息", error="未提供令牌")

    parts = authorization.split(" ")
    if len(parts) != 2:
        raise UnauthorizedError("令牌格式错误", error="Authorization 头必须为 'Bearer <token>'")

    prefix, token = parts
    if prefix.lower() != ACCESS_TOKEN_TYPE or not token:
        raise UnauthorizedError("令牌格式错误", error="Authorization 头必须为 'Bearer <token>'")
    return token


def get_current_identity(request: Request, _=Depends(security_scheme)) -> CurrentIdentity:
    """校验 Bearer 令牌并返回调用方身份；任何校验失败都返回 401。

    该检查无状态，不访问数据库，是所有文件/文件夹操作的前置条件。
    """
    token = parse_bearer_token(request.headers.get("Authorization"))

    payload = decode_and_verify_token(token)
    if payload is None:
        raise UnauthorizedError("令牌无效", error="令牌签名无效或已过期")

    user_id = payload.get("id")
    email = payload.get("email")
    if user_id is None or email is None:
        raise UnauthorizedError("令牌无效", error="令牌缺少身份信息")

    try:
        return CurrentIdentity(id=int(user_id), email=str(email))
    except (TypeError, ValueError) as exc:
        raise UnauthorizedError("令牌无效", error="令牌缺少身份信息") from exc
