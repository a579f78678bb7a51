"""响应封装：构建系统统一的返回结构。"""

from typing import Any, Optional

from .constants import HTTP_STATUS_OK


def create_response(
    msg: str,
    data: Any = None,
    code: int = HTTP_STATUS_OK,
    *,
    error: Optional[str] = None,
) -> dict[str, Any]:
    """按照 ``status``、``message``、``data``、``error`` 组合出统一响应体。"""
    return {"status": code, "message": msg, "data": data, "error": error}
