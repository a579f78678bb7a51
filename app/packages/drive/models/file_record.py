"""文件记录模型。

- storage_key：对象存储中的键，形如 ``{owner_id}/{original_name}``，全局唯一；
- folder_id 为 NULL 表示位于用户根目录；
- access_url/access_url_issued_at：缓存的签名访问链接及其签发时间；
- revision：每次写入（含读取时刷新过期链接）递增。
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, RevisionMixin, TimestampMixin


class FileRecord(TimestampMixin, RevisionMixin, Base):
    __tablename__ = "file_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    original_name: Mapped[str] = mapped_column(String(255), index=True)
    storage_key: Mapped[str] = mapped_column(String(1024), unique=True, index=True)
    mime_type: Mapped[str] = mapped_column(String(255))
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    access_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    access_url_issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    folder_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
