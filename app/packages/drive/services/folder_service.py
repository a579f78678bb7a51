"""文件夹服务：负责目录树的创建、重命名、内容浏览与级联删除。

约定：
- 文件夹接口对“不存在”与“不属于当前用户”一律返回 404，不泄露他人数据是否存在；
- 路由中的 ``root`` 是根目录占位符，并非真实 ID；
- 级联删除分两阶段：先并发删除对象存储中的全部文件，全部成功后再在一次提交内删除元数据。
  任何一个对象删除失败都会中止并返回 500，此时元数据保持不变，重试即可继续完成。
"""

from __future__ import annotations

import asyncio
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.packages.drive.core.constants import HTTP_STATUS_CREATED, HTTP_STATUS_OK, RESERVED_NAMES
from app.packages.drive.core.exceptions import ConflictError, NotFoundError, PartialFailureError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.timezone import format_datetime
from app.packages.drive.crud.file_record import file_record_crud
from app.packages.drive.crud.folders import folder_crud
from app.packages.drive.models.folder import Folder
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.storage_backends import get_storage_backend
from app.packages.drive.utils.folder_tree import FolderTree, parse_folder_ref


class FolderService:
    # ----------------------------
    # 创建 / 重命名
    # ----------------------------
    def create_folder(self, db: Session, *, owner_id: int, name: Optional[str], parent_ref: Optional[object] = None) -> dict:
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("文件夹名称不能为空", error="必须提供文件夹名称")
        self._check_name(clean_name)

        try:
            parent_id = parse_folder_ref(parent_ref)
        except ValueError as exc:
            raise NotFoundError("父文件夹不存在", error="父文件夹不存在或无权访问") from exc

        if parent_id is not None and folder_crud.get_owned(db, folder_id=parent_id, owner_id=owner_id) is None:
            raise NotFoundError("父文件夹不存在", error="父文件夹不存在或无权访问")

        if folder_crud.get_sibling(db, owner_id=owner_id, parent_id=parent_id, name=clean_name) is not None:
            raise ConflictError("该位置已存在同名文件夹", error="文件夹名称重复")

        try:
            folder = folder_crud.create(db, {"name": clean_name, "owner_id": owner_id, "parent_id": parent_id})
        except IntegrityError as exc:
            raise ConflictError("该位置已存在同名文件夹", error="文件夹名称重复") from exc

        tree = self._load_tree(db, owner_id)
        logger.info("Folder %s created by user %s under parent %s", folder.id, owner_id, parent_id)
        return create_response("文件夹创建成功", self.serialize_folder(folder, tree), HTTP_STATUS_CREATED)

    def rename_folder(self, db: Session, *, owner_id: int, folder_id: int, name: Optional[str]) -> dict:
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("新名称不能为空", error="必须提供新的文件夹名称")
        self._check_name(clean_name)

        folder = self._get_owned_or_404(db, owner_id=owner_id, folder_id=folder_id)
        if folder.name != clean_name:
            duplicate = folder_crud.get_sibling(
                db,
                owner_id=owner_id,
                parent_id=folder.parent_id,
                name=clean_name,
                exclude_id=folder.id,
            )
            if duplicate is not None:
                raise ConflictError("该位置已存在同名文件夹", error="文件夹名称重复")
            folder.name = clean_name
            try:
                folder = folder_crud.save(db, folder)
            except IntegrityError as exc:
                raise ConflictError("该位置已存在同名文件夹", error="文件夹名称重复") from exc
            logger.info("Folder %s renamed by user %s", folder.id, owner_id)

        tree = self._load_tree(db, owner_id)
        return create_response("文件夹重命名成功", self.serialize_folder(folder, tree), HTTP_STATUS_OK)

    # ----------------------------
    # 浏览
    # ----------------------------
    def get_contents(self, db: Session, *, owner_id: int, folder_id: Optional[int]) -> dict:
        current = None
        if folder_id is not None:
            current = self._get_owned_or_404(db, owner_id=owner_id, folder_id=folder_id)

        tree = self._load_tree(db, owner_id)
        subfolders = folder_crud.list_children(db, owner_id=owner_id, parent_id=folder_id)
        files = file_record_crud.list_in_folder(db, owner_id=owner_id, folder_id=folder_id)

        data = {
            "currentFolder": self.serialize_folder(current, tree) if current is not None else None,
            "subfolders": [self.serialize_folder(item, tree) for item in subfolders],
            "files": [file_service.serialize_file(item) for item in files],
        }
        return create_response("获取文件夹内容成功", data, HTTP_STATUS_OK)

    # ----------------------------
    # 级联删除
    # ----------------------------
    async def delete_folder(self, db: Session, *, owner_id: int, folder_id: int) -> dict:
        folder = self._get_owned_or_404(db, owner_id=owner_id, folder_id=folder_id)

        folder_ids = self._load_tree(db, owner_id).descendants(folder.id)
        files = file_record_crud.list_in_folders(db, owner_id=owner_id, folder_ids=folder_ids)
        logger.info(
            "Deleting folder %s for user %s: %s folders, %s files",
            folder.id,
            owner_id,
            len(folder_ids),
            len(files),
        )

        backend = get_storage_backend()
        results = await asyncio.gather(
            *(run_in_threadpool(backend.delete, record.storage_key) for record in files),
            return_exceptions=True,
        )
        failed_keys = [
            record.storage_key for record, result in zip(files, results) if isinstance(result, Exception)
        ]
        if failed_keys:
            logger.error(
                "Folder %s delete aborted: %s of %s blob deletes failed (%s)",
                folder.id,
                len(failed_keys),
                len(files),
                ", ".join(failed_keys),
            )
            raise PartialFailureError(
                "删除文件夹失败，部分文件可能已被删除",
                error="请重试以确保所有文件都被删除",
                data={"failedKeys": failed_keys},
            )

        try:
            deleted_folders = folder_crud.delete_owned(db, owner_id=owner_id, ids=folder_ids)
            deleted_files = file_record_crud.delete_by_ids(db, [record.id for record in files], auto_commit=False)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Folder %s metadata delete failed after blobs were removed", folder_id)
            raise

        # 批量删除后 folder 实例已失效，此处只能使用入参
        logger.info("Folder %s deleted: %s folders, %s files", folder_id, deleted_folders, deleted_files)
        data = {"deletedFolders": deleted_folders, "deletedFiles": deleted_files}
        return create_response("文件夹及其全部内容已删除", data, HTTP_STATUS_OK)

    # ----------------------------
    # 内部工具
    # ----------------------------
    @staticmethod
    def _check_name(name: str) -> None:
        if "/" in name or "\\" in name:
            raise ValidationError("文件夹名称不能包含路径分隔符")
        if name in RESERVED_NAMES:
            raise ValidationError("文件夹名称无效", error=f"不能使用保留名称 {name}")

    @staticmethod
    def _get_owned_or_404(db: Session, *, owner_id: int, folder_id: int) -> Folder:
        folder = folder_crud.get_owned(db, folder_id=folder_id, owner_id=owner_id)
        if folder is None:
            raise NotFoundError("文件夹不存在", error="文件夹不存在或无权访问")
        return folder

    @staticmethod
    def _load_tree(db: Session, owner_id: int) -> FolderTree:
        return FolderTree(folder_crud.list_by_owner(db, owner_id=owner_id))

    @staticmethod
    def serialize_folder(folder: Folder, tree: FolderTree) -> dict:
        return {
            "id": folder.id,
            "name": folder.name,
            "fullPath": tree.full_path(folder.id),
            "parentId": folder.parent_id,
            "createdAt": format_datetime(folder.create_time),
            "updatedAt": format_datetime(folder.update_time),
        }


folder_service = FolderService()
