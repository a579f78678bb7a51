"""用户服务：封装账号注册、查询与更新等身份存储业务逻辑。"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.drive.core.constants import HTTP_STATUS_CREATED, HTTP_STATUS_OK, USER_LIST_LIMIT
from app.packages.drive.core.dependencies import CurrentIdentity
from app.packages.drive.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.security import get_password_hash, verify_password
from app.packages.drive.core.timezone import format_datetime
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.user import User


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class UserService:
    """聚合用户相关的核心业务能力。"""

    # ------------------------------------------------------------------
    # 注册
    # ------------------------------------------------------------------

    def register(self, db: Session, *, email: Optional[str], password: Optional[str]) -> dict:
        normalized = normalize_email(email)
        if not normalized or not password:
            raise ValidationError("邮箱和密码不能为空", error="email 与 password 为必填字段")

        if user_crud.get_by_email(db, normalized) is not None:
            raise ConflictError("邮箱已被注册", error=normalized)

        try:
            user = user_crud.create(
                db,
                {"email": normalized, "hashed_password": get_password_hash(password)},
            )
        except IntegrityError as exc:
            raise ConflictError("邮箱已被注册", error=normalized) from exc

        logger.info("User registered: id=%s email=%s", user.id, user.email)
        return create_response("用户创建成功", self.serialize_user(user), HTTP_STATUS_CREATED)

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def list_users(self, db: Session) -> dict:
        users = user_crud.get_multi(db, limit=USER_LIST_LIMIT)
        return create_response("获取用户列表成功", [self.serialize_user(user) for user in users], HTTP_STATUS_OK)

    def get_user(self, db: Session, *, user_id: int) -> dict:
        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError("用户不存在")
        return create_response("获取用户成功", self.serialize_user(user), HTTP_STATUS_OK)

    # ------------------------------------------------------------------
    # 更新
    # ------------------------------------------------------------------

    def update_user(
        self,
        db: Session,
        *,
        user_id: int,
        identity: CurrentIdentity,
        password: Optional[str],
        email: Optional[str] = None,
        new_password: Optional[str] = None,
    ) -> dict:
        """修改邮箱或密码：必须提供当前密码，且只能修改本人账号。"""
        if not password:
            raise ValidationError("当前密码不能为空", error="password 为必填字段")
        if not email and not new_password:
            raise ValidationError("请至少提供新的邮箱或新密码", error="email 与 newPassword 至少填写一项")

        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError("用户不存在")
        if user.id != identity.id:
            raise ForbiddenError("无权修改其他用户", error=f"user {identity.id} cannot update user {user.id}")

        if not verify_password(password, user.hashed_password):
            raise ValidationError("当前密码错误")

        if new_password:
            if new_password == password:
                raise ValidationError("新密码不能与当前密码相同")
            user.hashed_password = get_password_hash(new_password)

        normalized = normalize_email(email)
        if normalized and normalized != user.email:
            holder = user_crud.get_by_email(db, normalized)
            if holder is not None and holder.id != user.id:
                raise ConflictError("邮箱已被注册", error=normalized)
            user.email = normalized

        user.bump_revision()
        try:
            user = user_crud.save(db, user)
        except IntegrityError as exc:
            raise ConflictError("邮箱已被注册", error=normalized) from exc

        logger.info("User updated: id=%s revision=%s", user.id, user.revision)
        return create_response("用户更新成功", self.serialize_user(user), HTTP_STATUS_OK)

    @staticmethod
    def serialize_user(user: User) -> dict:
        return {
            "id": user.id,
            "email": user.email,
            "createdAt": format_datetime(user.create_time),
            "updatedAt": format_datetime(user.update_time),
        }


user_service = UserService()
