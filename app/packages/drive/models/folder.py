"""文件夹模型。

存储规则：
- parent_id 为 NULL 表示根级文件夹；
- parent_id/owner_id 是弱引用（不建外键），删除由服务层自顶向下级联完成；
- (owner_id, parent_id, name) 在同级内唯一。由于 SQL 中 NULL 互不相等，
  根级文件夹的唯一性由服务层“先查后写”保证，数据库约束只作兜底。
"""

from typing import Optional

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, TimestampMixin


class Folder(TimestampMixin, Base):
    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "parent_id", "name", name="uq_folders_owner_parent_name"),
    )
