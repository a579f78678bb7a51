"""认证相关的请求与响应模型。"""

from typing import Literal, Optional

from pydantic import BaseModel

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class LoginRequest(BaseModel):
    """登录请求；字段缺失时由认证服务返回 400。"""

    email: Optional[str] = None
    password: Optional[str] = None


class LoginUser(BaseModel):
    id: int
    email: str


class TokenResponseData(BaseModel):
    """登录成功后签发的令牌信息。"""

    user: LoginUser
    token: str
    token_type: Literal["bearer"]


TokenResponse = ResponseEnvelope[TokenResponseData]
