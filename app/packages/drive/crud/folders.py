"""文件夹 CRUD。"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.folder import Folder


class CRUDFolder(CRUDBase[Folder]):
    def get_owned(self, db: Session, *, folder_id: int, owner_id: int) -> Folder | None:
        """按 ID 与归属用户一次性查询；不存在与不属于该用户不作区分。"""
        return (
            self.query(db)
            .filter(Folder.id == folder_id)
            .filter(Folder.owner_id == owner_id)
            .first()
        )

    def get_sibling(
        self,
        db: Session,
        *,
        owner_id: int,
        parent_id: Optional[int],
        name: str,
        exclude_id: Optional[int] = None,
    ) -> Folder | None:
        q = (
            self.query(db)
            .filter(Folder.owner_id == owner_id)
            .filter(Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id)
            .filter(Folder.name == name)
        )
        if exclude_id is not None:
            q = q.filter(Folder.id != exclude_id)
        return q.first()

    def list_children(self, db: Session, *, owner_id: int, parent_id: Optional[int]) -> list[Folder]:
        return (
            self.query(db)
            .filter(Folder.owner_id == owner_id)
            .filter(Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id)
            .order_by(Folder.name.asc(), Folder.id.asc())
            .all()
        )

    def list_by_owner(self, db: Session, *, owner_id: int) -> list[Folder]:
        return self.query(db).filter(Folder.owner_id == owner_id).all()

    def delete_owned(self, db: Session, *, owner_id: int, ids: Iterable[int]) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        return (
            self.query(db)
            .filter(Folder.owner_id == owner_id)
            .filter(Folder.id.in_(id_list))
            .delete(synchronize_session=False)
        )


folder_crud = CRUDFolder(Folder)
