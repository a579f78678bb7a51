"""用户 CRUD：集中管理用户相关的数据操作。"""

from typing import Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.user import User


class CRUDUser(CRUDBase[User]):
    """封装常用的用户查询方法，供业务层复用。"""

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """根据唯一邮箱获取用户实例（调用方负责规范化大小写）。"""
        return self.query(db).filter(User.email == email).first()


user_crud = CRUDUser(User)
