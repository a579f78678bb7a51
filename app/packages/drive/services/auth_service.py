"""认证服务：校验邮箱与密码并签发访问令牌。"""

from typing import Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import ACCESS_TOKEN_TYPE, HTTP_STATUS_OK
from app.packages.drive.core.exceptions import UnauthorizedError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.security import create_access_token, verify_password
from app.packages.drive.crud.users import user_crud
from app.packages.drive.services.user_service import normalize_email


class AuthService:
    """负责处理登录流程。"""

    def login(self, db: Session, *, email: Optional[str], password: Optional[str]) -> dict:
        """校验用户凭证，签发携带 ``{id, email}`` 的访问令牌。"""
        normalized = normalize_email(email)
        if not normalized or not password:
            raise ValidationError("邮箱和密码不能为空", error="email 与 password 为必填字段")

        user = user_crud.get_by_email(db, normalized)
        if user is None:
            logger.info("Login rejected for unknown email %s", normalized)
            raise UnauthorizedError("用户不存在")
        if not verify_password(password, user.hashed_password):
            logger.info("Login rejected for user %s: wrong password", user.id)
            raise UnauthorizedError("密码错误")

        token = create_access_token({"id": user.id, "email": user.email})
        logger.info("User %s logged in", user.id)
        data = {
            "user": {"id": user.id, "email": user.email},
            "token": token,
            "token_type": ACCESS_TOKEN_TYPE,
        }
        return create_response("登录成功", data, HTTP_STATUS_OK)


auth_service = AuthService()
