"""异常处理模块：定义统一的业务异常与响应格式。

业务层只抛出 ``AppException`` 及其子类，由全局处理器统一转换为
``{status, message, data, error}`` 结构，任何异常都不会以原始形式泄露给调用方。
"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .logger import logger
from .responses import create_response


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(
        self,
        msg: str,
        code: int = status.HTTP_400_BAD_REQUEST,
        data: Any = None,
        error: Optional[str] = None,
    ) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data
        self.error = error


class ValidationError(AppException):
    """缺少必填字段或字段取值非法。"""

    def __init__(self, msg: str, error: Optional[str] = None) -> None:
        super().__init__(msg, status.HTTP_400_BAD_REQUEST, error=error)


class UnauthorizedError(AppException):
    """令牌缺失、格式错误、签名非法或已过期。"""

    def __init__(self, msg: str, error: Optional[str] = None) -> None:
        super().__init__(msg, status.HTTP_401_UNAUTHORIZED, error=error)


class ForbiddenError(AppException):
    def __init__(self, msg: str, error: Optional[str] = None) -> None:
        super().__init__(msg, status.HTTP_403_FORBIDDEN, error=error)


class NotFoundError(AppException):
    def __init__(self, msg: str, error: Optional[str] = None) -> None:
        super().__init__(msg, status.HTTP_404_NOT_FOUND, error=error)


class ConflictError(AppException):
    """命名空间唯一性冲突（同名文件夹、同名文件、邮箱已占用等）。"""

    def __init__(self, msg: str, error: Optional[str] = None) -> None:
        super().__init__(msg, status.HTTP_409_CONFLICT, error=error)


class PartialFailureError(AppException):
    """级联删除中部分对象存储删除失败：元数据保持不变，调用方需要重试。"""

    def __init__(self, msg: str, error: Optional[str] = None, data: Any = None) -> None:
        super().__init__(msg, status.HTTP_500_INTERNAL_SERVER_ERROR, data=data, error=error)


class StorageError(AppException):
    """对象存储网关调用失败。"""

    def __init__(self, msg: str, error: Optional[str] = None) -> None:
        super().__init__(msg, status.HTTP_500_INTERNAL_SERVER_ERROR, error=error)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = create_response(
        str(exc.detail),
        getattr(exc, "data", None),
        exc.status_code,
        error=getattr(exc, "error", None),
    )
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # pragma: no cover - framework glue
    """请求体/参数校验失败统一返回 400，并附带字段级错误摘要。"""
    details = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        details.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    payload = create_response(
        "请求参数验证失败",
        None,
        status.HTTP_400_BAD_REQUEST,
        error="; ".join(details) or None,
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    payload = create_response(
        "服务器内部错误",
        None,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error=str(exc) or exc.__class__.__name__,
    )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
