"""存储后端抽象与实现：统一封装本地与 S3 的对象读写、重命名与签名直链。"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import BLOB_READ_TOKEN_PURPOSE
from app.packages.drive.core.exceptions import StorageError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.security import create_temporary_token
from app.packages.drive.core.timezone import utcnow
from app.packages.drive.utils.lease import format_stamp


class StorageBackend:
    """存储后端接口：所有对象以存储键（``owner/name``）寻址。"""

    def put(self, key: str, content: bytes, content_type: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        """删除对象；对象不存在时视为成功。"""
        raise NotImplementedError

    def rename(self, old_key: str, new_key: str) -> None:
        """重命名对象，并确认目标键已存在，否则抛出 ``StorageError``。"""
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def signed_read_url(self, key: str, ttl_seconds: int) -> str:
        raise NotImplementedError

    def open(self, key: str) -> Path:
        raise StorageError("当前存储后端不支持直接读取", error=f"open() unsupported by {type(self).__name__}")


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBackend(StorageBackend):
    def __init__(self, root: str | Path, *, public_base_url: str, blob_route: str):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.blob_route = blob_route
        if not self.root.exists():
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:  # pragma: no cover - 极端情况下可能失败
                raise StorageError("无法创建本地存储目录", error=str(exc)) from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        key_norm = key.strip().lstrip("/")
        if not key_norm:
            raise ValidationError("非法存储键", error="存储键不能为空")
        candidate = (self.root / key_norm).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise ValidationError("非法存储键: 越权访问", error=key) from exc
        return candidate

    def put(self, key: str, content: bytes, content_type: str) -> None:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(content)
        except OSError as exc:
            logger.exception("Local put failed for %s", key)
            raise StorageError("文件写入失败", error=str(exc)) from exc

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        try:
            # 允许幂等：不存在则忽略
            target.unlink(missing_ok=True)
        except OSError as exc:
            logger.exception("Local delete failed for %s", key)
            raise StorageError("文件删除失败", error=str(exc)) from exc

    def rename(self, old_key: str, new_key: str) -> None:
        src = self._resolve(old_key)
        dst = self._resolve(new_key)
        if not src.is_file():
            raise StorageError("源文件不存在", error=old_key)
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            src.replace(dst)
        except OSError as exc:
            logger.exception("Local rename failed: %s -> %s", old_key, new_key)
            raise StorageError("文件重命名失败", error=str(exc)) from exc
        if not dst.is_file():
            raise StorageError("文件重命名失败", error=f"目标 {new_key} 不存在")

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def signed_read_url(self, key: str, ttl_seconds: int) -> str:
        issued_at = utcnow().replace(microsecond=0)
        token = create_temporary_token(
            {"purpose": BLOB_READ_TOKEN_PURPOSE, "key": key},
            expires_at=issued_at + timedelta(seconds=ttl_seconds),
        )
        query = urlencode({"issued": format_stamp(issued_at), "token": token})
        return f"{self.public_base_url}{self.blob_route}?{query}"

    def open(self, key: str) -> Path:
        target = self._resolve(key)
        if not target.is_file():
            raise FileNotFoundError(key)
        return target


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3Backend(StorageBackend):
    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        access_key_id: str,
        secret_access_key: str,
        prefix: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.region = region
        self.prefix = (prefix or "").strip("/")
        # SigV4 签名的 URL 带有 X-Amz-Date，用于判断访问链接是否过期
        self._client = boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    # 拼接基于 path_prefix 的对象 key
    def _join_key(self, key: str) -> str:
        key_norm = key.lstrip("/")
        if self.prefix:
            return f"{self.prefix}/{key_norm}"
        return key_norm

    def put(self, key: str, content: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=self._join_key(key),
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 put failed for %s", key)
            raise StorageError("文件写入失败", error=str(exc)) from exc

    def delete(self, key: str) -> None:
        # S3 删除不存在的对象同样返回成功
        try:
            self._client.delete_object(Bucket=self.bucket, Key=self._join_key(key))
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 delete failed for %s", key)
            raise StorageError("文件删除失败", error=str(exc)) from exc

    def rename(self, old_key: str, new_key: str) -> None:
        src_key = self._join_key(old_key)
        dst_key = self._join_key(new_key)
        try:
            self._client.copy_object(
                Bucket=self.bucket,
                Key=dst_key,
                CopySource={"Bucket": self.bucket, "Key": src_key},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 copy failed: %s -> %s", old_key, new_key)
            raise StorageError("文件重命名失败", error=str(exc)) from exc
        if not self.exists(new_key):
            raise StorageError("文件重命名失败", error=f"目标 {new_key} 不存在")
        self.delete(old_key)

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=self._join_key(key))
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise StorageError("对象存储访问失败", error=str(exc)) from exc
        except BotoCoreError as exc:
            raise StorageError("对象存储访问失败", error=str(exc)) from exc
        return True

    def signed_read_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": self._join_key(key)},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError("预签名 URL 生成失败", error=str(exc)) from exc


def build_backend(
    *,
    type: str,
    region: Optional[str] = None,
    bucket_name: Optional[str] = None,
    path_prefix: Optional[str] = None,
    local_root_path: Optional[str | Path] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    public_base_url: str = "",
    blob_route: str = "/blobs",
) -> StorageBackend:
    t = (type or "").upper()
    if t == "LOCAL":
        if not local_root_path:
            raise StorageError("缺少本地根目录配置")
        return LocalBackend(local_root_path, public_base_url=public_base_url, blob_route=blob_route)
    if t == "S3":
        if not (region and bucket_name and access_key_id and secret_access_key):
            raise StorageError("S3 配置不完整")
        return S3Backend(
            bucket=bucket_name,
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            prefix=path_prefix,
            endpoint_url=endpoint_url,
        )
    raise StorageError("不支持的存储类型", error=type)


@lru_cache
def get_storage_backend() -> StorageBackend:
    """按当前配置构建并缓存存储后端；测试中可通过 ``cache_clear()`` 重建。"""
    settings = get_settings()
    return build_backend(
        type=settings.storage_type,
        region=settings.s3_region,
        bucket_name=settings.s3_bucket_name,
        path_prefix=settings.s3_path_prefix,
        local_root_path=settings.local_storage_path,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        endpoint_url=settings.s3_endpoint_url,
        public_base_url=settings.public_base_url,
        blob_route=f"{settings.api_v1_str}/blobs",
    )
