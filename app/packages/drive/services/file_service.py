"""文件服务：负责文件登记、访问链接租约以及与对象存储保持一致的重命名/移动/删除。

约定：
- 存储键按用户隔离而非按文件夹隔离：``{owner_id}/{original_name}``，
  因此同一用户在不同文件夹中也不能上传同名文件；
- 文件接口对“不存在”返回 404，对“不属于当前用户”返回 403；
  上传/移动的目标文件夹不存在或不属于当前用户时返回 403；
- 访问链接超过有效期后，在读取时重新签发，并将 revision 加一。
"""

from __future__ import annotations

import asyncio
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    BLOB_READ_TOKEN_PURPOSE,
    DEFAULT_MIME_TYPE,
    HTTP_STATUS_CREATED,
    HTTP_STATUS_OK,
    RESERVED_NAMES,
)
from app.packages.drive.core.exceptions import (
    AppException,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.security import decode_and_verify_token
from app.packages.drive.core.timezone import format_datetime, utcnow
from app.packages.drive.crud.file_record import file_record_crud
from app.packages.drive.crud.folders import folder_crud
from app.packages.drive.models.file_record import FileRecord
from app.packages.drive.services.storage_backends import StorageBackend, get_storage_backend
from app.packages.drive.utils.folder_tree import parse_folder_ref
from app.packages.drive.utils.lease import (
    apply_original_extension,
    build_storage_key,
    is_expired,
    parse_issued_at,
)


@dataclass
class IncomingFile:
    """一次上传请求中的单个文件。"""

    name: str
    content: bytes
    content_type: Optional[str] = None


def _norm_mime(name: str, declared: Optional[str] = None) -> str:
    if declared:
        return declared
    mime, _ = mimetypes.guess_type(name)
    return mime or DEFAULT_MIME_TYPE


class FileService:
    # ----------------------------
    # 上传
    # ----------------------------
    async def upload_files(
        self,
        db: Session,
        *,
        owner_id: int,
        files: list[IncomingFile],
        folder_ref: Optional[object] = None,
    ) -> dict:
        if not files:
            raise ValidationError("未上传任何文件", error="至少需要上传一个文件")

        folder_id = self._resolve_destination(db, owner_id=owner_id, folder_ref=folder_ref)

        keyed: list[tuple[IncomingFile, str]] = []
        for item in files:
            name = os.path.basename((item.name or "").replace("\\", "/")).strip()
            if not name:
                raise ValidationError("文件名不能为空")
            if name in RESERVED_NAMES:
                raise ValidationError("文件名无效", error=f"不能使用保留名称 {name}")
            item.name = name
            keyed.append((item, build_storage_key(owner_id, name)))

        # 已登记的存储键以及同批次中重复的文件都不写入对象存储
        registered = file_record_crud.existing_storage_keys(db, [key for _, key in keyed])
        skipped: list[str] = []
        pending: list[tuple[IncomingFile, str]] = []
        seen: set[str] = set()
        for item, key in keyed:
            if key in registered or key in seen:
                skipped.append(item.name)
                continue
            seen.add(key)
            pending.append((item, key))

        backend = get_storage_backend()
        results = await asyncio.gather(
            *(
                run_in_threadpool(backend.put, key, item.content, _norm_mime(item.name, item.content_type))
                for item, key in pending
            ),
            return_exceptions=True,
        )
        failures = [key for (_, key), result in zip(pending, results) if isinstance(result, Exception)]
        if failures:
            logger.error("Upload for user %s failed on %s of %s blobs: %s", owner_id, len(failures), len(pending), failures)
            raise StorageError("文件上传失败", error=f"以下文件写入失败: {', '.join(failures)}")

        # 写入期间可能有并发请求登记了相同的键
        registered_meanwhile = file_record_crud.existing_storage_keys(db, [key for _, key in pending])
        rows: list[dict] = []
        for item, key in pending:
            if key in registered_meanwhile:
                skipped.append(item.name)
                continue
            access_url = self._try_issue_url(backend, key)
            rows.append(
                {
                    "original_name": item.name,
                    "storage_key": key,
                    "mime_type": _norm_mime(item.name, item.content_type),
                    "size_bytes": len(item.content),
                    "access_url": access_url,
                    "access_url_issued_at": parse_issued_at(access_url),
                    "owner_id": owner_id,
                    "folder_id": folder_id,
                    "revision": 0,
                }
            )

        try:
            created = file_record_crud.create_many(db, rows)
        except IntegrityError as exc:
            raise ConflictError("文件已存在", error="存储键冲突，请检查文件名后重试") from exc

        logger.info(
            "User %s uploaded %s files to folder %s (%s skipped)",
            owner_id,
            len(created),
            folder_id,
            len(skipped),
        )
        msg = "部分文件已存在，未重复上传，请检查文件名后重试" if skipped else "文件上传成功"
        data = {
            "uploaded": [self.serialize_file(record) for record in created],
            "skipped": skipped,
        }
        return create_response(msg, data, HTTP_STATUS_CREATED)

    # ----------------------------
    # 查询
    # ----------------------------
    def get_file(self, db: Session, *, owner_id: int, file_id: int) -> dict:
        record = self._get_accessible(db, owner_id=owner_id, file_id=file_id)
        if self._lease_expired(record):
            self._refresh_lease(record, get_storage_backend())
            record.bump_revision()
            record = file_record_crud.save(db, record)
        return create_response("获取文件成功", self.serialize_file(record), HTTP_STATUS_OK)

    def list_files(self, db: Session, *, owner_id: int) -> dict:
        records = file_record_crud.list_by_owner(db, owner_id=owner_id)
        backend = get_storage_backend()
        for record in records:
            if self._lease_expired(record):
                self._refresh_lease(record, backend)
                record.bump_revision()
                file_record_crud.save(db, record)
        return create_response("获取文件列表成功", [self.serialize_file(record) for record in records], HTTP_STATUS_OK)

    # ----------------------------
    # 重命名 / 移动
    # ----------------------------
    def rename_file(self, db: Session, *, owner_id: int, file_id: int, name: Optional[str]) -> dict:
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("新文件名不能为空", error="必须提供新的文件名")
        if "/" in clean_name or "\\" in clean_name:
            raise ValidationError("文件名不能包含路径分隔符")

        record = self._get_accessible(db, owner_id=owner_id, file_id=file_id)
        new_name = apply_original_extension(record.original_name, clean_name)
        if new_name in RESERVED_NAMES:
            raise ValidationError("文件名无效", error=f"不能使用保留名称 {new_name}")
        if new_name == record.original_name:
            return create_response("文件重命名成功", self.serialize_file(record), HTTP_STATUS_OK)

        duplicate = file_record_crud.get_in_folder_by_name(
            db,
            owner_id=owner_id,
            folder_id=record.folder_id,
            name=new_name,
            exclude_id=record.id,
        )
        if duplicate is not None:
            raise ConflictError("当前文件夹中已存在同名文件", error="文件名重复")

        new_key = build_storage_key(record.owner_id, new_name)
        holder = file_record_crud.get_by_storage_key(db, new_key)
        if holder is not None and holder.id != record.id:
            raise ConflictError("已存在同名文件", error=f"存储键 {new_key} 已被其他文件占用")

        backend = get_storage_backend()
        old_key = record.storage_key
        backend.rename(old_key, new_key)

        record.original_name = new_name
        record.storage_key = new_key
        record.access_url = self._try_issue_url(backend, new_key)
        record.access_url_issued_at = parse_issued_at(record.access_url)
        record.bump_revision()
        try:
            record = file_record_crud.save(db, record)
        except Exception as exc:
            logger.error("File %s renamed in storage but registry update failed: %s -> %s", file_id, old_key, new_key)
            self._restore_blob(backend, new_key, old_key)
            if isinstance(exc, IntegrityError):
                raise ConflictError("已存在同名文件", error=f"存储键 {new_key} 已被其他文件占用") from exc
            raise

        logger.info("File %s renamed: %s -> %s", file_id, old_key, new_key)
        return create_response("文件重命名成功", self.serialize_file(record), HTTP_STATUS_OK)

    def move_file(self, db: Session, *, owner_id: int, file_id: int, folder_ref: Optional[object]) -> dict:
        """仅修改元数据中的所在文件夹，存储键保持不变。"""
        record = self._get_accessible(db, owner_id=owner_id, file_id=file_id)
        folder_id = self._resolve_destination(db, owner_id=owner_id, folder_ref=folder_ref)

        duplicate = file_record_crud.get_in_folder_by_name(
            db,
            owner_id=owner_id,
            folder_id=folder_id,
            name=record.original_name,
            exclude_id=record.id,
        )
        if duplicate is not None:
            raise ConflictError("目标文件夹中已存在同名文件", error="文件名重复")

        record.folder_id = folder_id
        if self._lease_expired(record):
            self._refresh_lease(record, get_storage_backend())
        record.bump_revision()
        record = file_record_crud.save(db, record)

        logger.info("File %s moved to folder %s by user %s", record.id, folder_id, owner_id)
        return create_response("文件移动成功", self.serialize_file(record), HTTP_STATUS_OK)

    # ----------------------------
    # 删除
    # ----------------------------
    def delete_file(self, db: Session, *, owner_id: int, file_id: int) -> dict:
        record = self._get_accessible(db, owner_id=owner_id, file_id=file_id)
        get_storage_backend().delete(record.storage_key)
        file_record_crud.hard_delete(db, record)
        logger.info("File %s (%s) deleted by user %s", file_id, record.storage_key, owner_id)
        return create_response("文件删除成功", None, HTTP_STATUS_OK)

    # ----------------------------
    # 签名直链（本地存储）
    # ----------------------------
    def resolve_signed_blob(self, *, token: Optional[str]) -> tuple[Path, str]:
        """校验签名直链令牌并返回本地文件路径与 MIME 类型。"""
        payload = decode_and_verify_token(token) if token else None
        if payload is None or payload.get("purpose") != BLOB_READ_TOKEN_PURPOSE or not payload.get("key"):
            raise UnauthorizedError("访问链接无效或已过期")

        key = str(payload["key"])
        try:
            path = get_storage_backend().open(key)
        except FileNotFoundError as exc:
            raise NotFoundError("文件不存在", error=key) from exc
        return path, _norm_mime(path.name)

    # ----------------------------
    # 内部工具
    # ----------------------------
    @staticmethod
    def _get_accessible(db: Session, *, owner_id: int, file_id: int) -> FileRecord:
        record = file_record_crud.get(db, file_id)
        if record is None:
            raise NotFoundError("文件不存在", error="未找到对应 ID 的文件")
        if record.owner_id != owner_id:
            raise ForbiddenError("无权访问该文件", error="您没有访问此文件的权限")
        return record

    @staticmethod
    def _resolve_destination(db: Session, *, owner_id: int, folder_ref: Optional[object]) -> Optional[int]:
        try:
            folder_id = parse_folder_ref(folder_ref)
        except ValueError as exc:
            raise ForbiddenError("无权访问目标文件夹", error="目标文件夹不存在或无权访问") from exc
        if folder_id is not None and folder_crud.get_owned(db, folder_id=folder_id, owner_id=owner_id) is None:
            raise ForbiddenError("无权访问目标文件夹", error="目标文件夹不存在或无权访问")
        return folder_id

    @staticmethod
    def _lease_expired(record: FileRecord) -> bool:
        return is_expired(record.access_url, ttl_seconds=get_settings().access_url_ttl_seconds)

    @staticmethod
    def _refresh_lease(record: FileRecord, backend: StorageBackend) -> None:
        record.access_url = backend.signed_read_url(record.storage_key, get_settings().access_url_ttl_seconds)
        record.access_url_issued_at = parse_issued_at(record.access_url) or utcnow()
        logger.info("Access URL re-issued for file %s", record.id)

    @staticmethod
    def _restore_blob(backend: StorageBackend, current_key: str, original_key: str) -> None:
        """登记失败后把对象改回原键，使元数据仍指向存在的对象。"""
        try:
            backend.rename(current_key, original_key)
        except Exception:
            logger.exception("Failed to restore blob %s back to %s", current_key, original_key)
        else:
            logger.info("Blob %s restored to %s after registry failure", current_key, original_key)

    @staticmethod
    def _try_issue_url(backend: StorageBackend, key: str) -> Optional[str]:
        """签发访问链接；失败时只记录日志，链接留空，下次读取时会重新签发。"""
        try:
            return backend.signed_read_url(key, get_settings().access_url_ttl_seconds)
        except AppException:
            logger.warning("Failed to issue access URL for %s", key, exc_info=True)
            return None

    @staticmethod
    def serialize_file(record: FileRecord) -> dict:
        return {
            "id": record.id,
            "originalName": record.original_name,
            "filename": record.original_name,
            "storageKey": record.storage_key,
            "mimeType": record.mime_type,
            "size": record.size_bytes,
            "accessUrl": record.access_url,
            "accessUrlIssuedAt": format_datetime(record.access_url_issued_at),
            "folderId": record.folder_id,
            "revision": record.revision,
            "uploadDate": format_datetime(record.create_time),
            "updatedAt": format_datetime(record.update_time),
        }


file_service = FileService()
