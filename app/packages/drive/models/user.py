"""用户模型：邮箱唯一（统一小写），密码仅保存 bcrypt 哈希。"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, RevisionMixin, TimestampMixin


class User(TimestampMixin, RevisionMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
