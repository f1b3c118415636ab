# tests/conftest.py
import io
import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.database.database import Base, IntakeBase
from src.services.identity_service import IdentityService


@pytest.fixture
def session_factory():
    """테이블이 생성된 인메모리 SQLite에 연결되는 세션 팩토리를 반환합니다. (두 서비스의 메타데이터 모두 생성)"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    IntakeBase.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def clear_token_cache():
    """IdentityService의 토큰 캐시는 클래스 변수이므로 테스트마다 비웁니다."""
    IdentityService._token_cache.clear()
    yield
    IdentityService._token_cache.clear()


@pytest.fixture
def wsgi_call():
    """
    WSGI 애플리케이션을 프로세스 안에서 호출하는 헬퍼를 반환합니다.

    반환값: (상태 코드(int), JSON 본문(dict 또는 None))
    """
    def call(app, method, path, body=None, headers=None, query=""):
        raw = json.dumps(body).encode("utf-8") if body is not None else b""
        environ = {
            "REQUEST_METHOD": method,
            "PATH_INFO": path,
            "QUERY_STRING": query,
            "CONTENT_LENGTH": str(len(raw)),
            "wsgi.input": io.BytesIO(raw),
        }
        for name, value in (headers or {}).items():
            environ["HTTP_" + name.upper().replace("-", "_")] = value

        captured = {}

        def start_response(status, response_headers):
            captured["status"] = status

        chunks = app(environ, start_response)
        payload = b"".join(chunks).decode("utf-8")
        return int(captured["status"].split(" ")[0]), (json.loads(payload) if payload else None)

    return call
