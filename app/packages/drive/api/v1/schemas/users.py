"""用户管理相关的请求与响应模型。"""

from typing import Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class UserCreateRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserUpdateRequest(BaseModel):
    """修改邮箱或密码时必须携带当前密码。"""

    password: Optional[str] = None
    email: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class UserItem(BaseModel):
    id: int
    email: str
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


UserResponse = ResponseEnvelope[UserItem]
UserListResponse = ResponseEnvelope[list[UserItem]]
