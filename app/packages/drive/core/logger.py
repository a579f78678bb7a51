"""日志配置模块：统一控制台/文件输出格式，并为每条日志附带请求 ID。"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Optional

from .config import get_settings

_FORMATTER_PATH = "app.packages.drive.core.logger"
_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


class _TZFormatter(logging.Formatter):
    """按 Settings.timezone 渲染时间戳；未指定 datefmt 时输出带毫秒的 ISO-8601。"""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        dt = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(_TZFormatter):
    """ANSI 彩色格式化器：根据日志级别渲染不同颜色。"""

    RESET = "\033[0m"
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }

    def __init__(
        self,
        fmt: str,
        datefmt: Optional[str] = None,
        style: str = "%",
        use_colors: Optional[bool] = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        if use_colors is None:
            use_colors = sys.stderr.isatty()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelno) if self.use_colors else None
        if not color:
            return message
        return f"{color}{message}{self.RESET}"


class JsonFormatter(_TZFormatter):
    """结构化 JSON 日志，便于日志平台检索。"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record),
            "logger": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """从 contextvars 读取请求 ID 写入每条 LogRecord。"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx.get() or "-"
        return True


def setup_logging() -> None:
    """初始化日志系统，确保项目所有模块使用统一的输出格式与级别。"""
    settings = get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)

    formatter_name = "json" if settings.log_json else "standard"
    handlers = ["default", "file"]

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_id": {"()": f"{_FORMATTER_PATH}.RequestIdFilter"},
            },
            "formatters": {
                "standard": {"()": f"{_FORMATTER_PATH}.ColorFormatter", "format": _LINE_FORMAT},
                "plain": {"()": f"{_FORMATTER_PATH}._TZFormatter", "format": _LINE_FORMAT},
                "json": {"()": f"{_FORMATTER_PATH}.JsonFormatter"},
            },
            "handlers": {
                "default": {
                    "level": settings.log_level,
                    "class": "logging.StreamHandler",
                    "formatter": formatter_name,
                    "filters": ["request_id"],
                },
                "file": {
                    "level": settings.log_level,
                    "class": "logging.handlers.TimedRotatingFileHandler",
                    "formatter": "json" if settings.log_json else "plain",
                    "filename": str(settings.log_file_path),
                    "when": "midnight",
                    "backupCount": 14,
                    "encoding": "utf-8",
                    "delay": True,
                    "filters": ["request_id"],
                },
            },
            "loggers": {
                "uvicorn": {"handlers": handlers, "level": settings.log_level, "propagate": False},
                "uvicorn.access": {"handlers": handlers, "level": settings.log_level, "propagate": False},
                "app": {"handlers": handlers, "level": settings.log_level, "propagate": False},
            },
            "root": {"handlers": handlers, "level": settings.log_level},
        }
    )


logger = logging.getLogger("app")


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)