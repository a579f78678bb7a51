"""CRUD 基类：为各实体提供通用的数据访问方法。"""

from typing import Any, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from app.packages.drive.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """封装常见的查询、创建与保存逻辑，减少重复代码。"""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def query(self, db: Session):
        return db.query(self.model)

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return self.query(db).filter(self.model.id == id).first()

    def get_multi(self, db: Session, *, skip: int = 0, limit: int = 100) -> List[ModelType]:
        return self.query(db).order_by(self.model.id.asc()).offset(skip).limit(limit).all()

    def create(self, db: Session, obj_in: Dict[str, Any], *, auto_commit: bool = True) -> ModelType:
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        if auto_commit:
            self._commit(db)
            db.refresh(db_obj)
        return db_obj

    def create_many(self, db: Session, objs_in: Iterable[Dict[str, Any]]) -> List[ModelType]:
        """批量创建并在单次提交中持久化。"""
        db_objs = [self.model(**obj_in) for obj_in in objs_in]
        if not db_objs:
            return []
        db.add_all(db_objs)
        self._commit(db)
        for db_obj in db_objs:
            db.refresh(db_obj)
        return db_objs

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            self._commit(db)
            db.refresh(db_obj)
        return db_obj

    def hard_delete(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> None:
        """物理删除行，并提交事务。"""
        db.delete(db_obj)
        if auto_commit:
            self._commit(db)

    def delete_by_ids(self, db: Session, ids: Iterable[Any], *, auto_commit: bool = True) -> int:
        """按主键批量物理删除，返回删除行数。"""
        id_list = list(ids)
        if not id_list:
            return 0
        deleted = (
            self.query(db)
            .filter(self.model.id.in_(id_list))
            .delete(synchronize_session=False)
        )
        if auto_commit:
            self._commit(db)
        return deleted

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
