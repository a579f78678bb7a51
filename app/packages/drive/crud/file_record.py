"""文件记录 CRUD。"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.file_record import FileRecord


class CRUDFileRecord(CRUDBase[FileRecord]):
    def get_by_storage_key(self, db: Session, storage_key: str) -> FileRecord | None:
        return self.query(db).filter(FileRecord.storage_key == storage_key).first()

    def existing_storage_keys(self, db: Session, storage_keys: Iterable[str]) -> set[str]:
        keys = list(storage_keys)
        if not keys:
            return set()
        rows = (
            db.query(FileRecord.storage_key)
            .filter(FileRecord.storage_key.in_(keys))
            .all()
        )
        return {row[0] for row in rows}

    def get_in_folder_by_name(
        self,
        db: Session,
        *,
        owner_id: int,
        folder_id: Optional[int],
        name: str,
        exclude_id: Optional[int] = None,
    ) -> FileRecord | None:
        q = (
            self.query(db)
            .filter(FileRecord.owner_id == owner_id)
            .filter(FileRecord.folder_id.is_(None) if folder_id is None else FileRecord.folder_id == folder_id)
            .filter(FileRecord.original_name == name)
        )
        if exclude_id is not None:
            q = q.filter(FileRecord.id != exclude_id)
        return q.first()

    def list_in_folder(self, db: Session, *, owner_id: int, folder_id: Optional[int]) -> list[FileRecord]:
        return (
            self.query(db)
            .filter(FileRecord.owner_id == owner_id)
            .filter(FileRecord.folder_id.is_(None) if folder_id is None else FileRecord.folder_id == folder_id)
            .order_by(FileRecord.original_name.asc(), FileRecord.id.asc())
            .all()
        )

    def list_by_owner(self, db: Session, *, owner_id: int) -> list[FileRecord]:
        return (
            self.query(db)
            .filter(FileRecord.owner_id == owner_id)
            .order_by(FileRecord.create_time.desc(), FileRecord.id.desc())
            .all()
        )

    def list_in_folders(self, db: Session, *, owner_id: int, folder_ids: Iterable[int]) -> list[FileRecord]:
        ids = list(folder_ids)
        if not ids:
            return []
        return (
            self.query(db)
            .filter(FileRecord.owner_id == owner_id)
            .filter(FileRecord.folder_id.in_(ids))
            .all()
        )


file_record_crud = CRUDFileRecord(FileRecord)
