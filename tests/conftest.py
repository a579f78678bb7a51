"""测试夹具：为 pytest 提供数据库、本地存储与客户端的共享配置。"""

import os
import shutil
import tempfile
from typing import Callable, Generator

TEST_ROOT = tempfile.mkdtemp(prefix="drive_tests_")
os.environ["STORAGE_TYPE"] = "LOCAL"
os.environ["LOCAL_STORAGE_ROOT"] = os.path.join(TEST_ROOT, "storage")
os.environ["LOG_DIR"] = os.path.join(TEST_ROOT, "log")
os.environ["JWT_SECRET_KEY"] = "drive-test-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.drive.core.dependencies import get_db  # noqa: E402
from app.packages.drive.db import session as db_session  # noqa: E402
from app.packages.drive.db.init_db import init_db  # noqa: E402
from app.packages.drive.models.base import Base  # noqa: E402
from app.packages.drive.services.storage_backends import get_storage_backend  # noqa: E402

TEST_DB_PATH = os.path.join(TEST_ROOT, "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理临时目录。"""
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    init_db()
    yield

    engine.dispose()
    shutil.rmtree(TEST_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_state() -> Generator[None, None, None]:
    """每个用例前重建表结构并清空本地存储目录。"""
    Base.metadata.drop_all(bind=db_session.engine)
    Base.metadata.create_all(bind=db_session.engine)
    get_storage_backend.cache_clear()
    storage_root = os.environ["LOCAL_STORAGE_ROOT"]
    shutil.rmtree(storage_root, ignore_errors=True)
    os.makedirs(storage_root, exist_ok=True)
    yield
    get_storage_backend.cache_clear()


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""

    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(client: TestClient) -> Callable[..., tuple[int, dict[str, str]]]:
    """注册并登录一个用户，返回 ``(user_id, 认证请求头)``。"""

    def _make(email: str = "alice@example.com", password: str = "secret123") -> tuple[int, dict[str, str]]:
        created = client.post("/api/v1/users", json={"email": email, "password": password})
        assert created.status_code == 201, created.text
        login = client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        data = login.json()["data"]
        return data["user"]["id"], {"Authorization": f"Bearer {data['token']}"}

    return _make
