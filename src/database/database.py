from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from src.config import settings


def build_engine(url: str):
    """
    주어진 URL로 SQLAlchemy 엔진을 생성합니다.
    connect_args는 SQLite에서만 필요합니다. (thread-safe 설정)
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


# 리소스 서비스: 사용자, 프로젝트, 멤버십, 벤더 관계, CSP 계정
engine = build_engine(settings.DATABASE_URL)

# autocommit=False, autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 리소스 서비스의 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()

# 신청 접수 서비스: CSP 신청서만 보관하며, 리소스 서비스와 트랜잭션을 공유하지 않습니다.
intake_engine = build_engine(settings.INTAKE_DATABASE_URL)
IntakeSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=intake_engine)
IntakeBase = declarative_base()
