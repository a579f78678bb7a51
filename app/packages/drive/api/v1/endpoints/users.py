"""用户管理路由：注册公开，其余接口需要登录。"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.users import (
    UserCreateRequest,
    UserListResponse,
    UserResponse,
    UserUpdateRequest,
)
from app.packages.drive.core.dependencies import CurrentIdentity, get_current_identity, get_db
from app.packages.drive.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreateRequest, db: Session = Depends(get_db)) -> UserResponse:
    return user_service.register(db, email=payload.email, password=payload.password)


@router.get("", response_model=UserListResponse)
def list_users(
    db: Session = Depends(get_db),
    _: CurrentIdentity = Depends(get_current_identity),
) -> UserListResponse:
    return user_service.list_users(db)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: CurrentIdentity = Depends(get_current_identity),
) -> UserResponse:
    return user_service.get_user(db, user_id=user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
) -> UserResponse:
    """修改本人邮箱或密码。"""
    return user_service.update_user(
        db,
        user_id=user_id,
        identity=identity,
        password=payload.password,
        email=payload.email,
        new_password=payload.new_password,
    )
