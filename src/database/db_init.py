import hashlib
import logging

from src.config import settings, LOG_FORMAT
from .database import engine, SessionLocal, Base, intake_engine, IntakeBase
from .models import *

logger = logging.getLogger(__name__)


def initialize_db():
    """
    두 서비스의 테이블을 생성하고, 리소스 서비스에 기본 데이터를 삽입합니다.

    기본 데이터는 시스템 프로젝트와 그 프로젝트의 owner인 관리자 계정입니다.
    시스템 프로젝트에서 owner/admin 역할을 가진 사용자가 시스템 관리자가 됩니다.
    """
    logger.info("DB 초기화 중 (SQLAlchemy 사용)...")

    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=engine)
    IntakeBase.metadata.create_all(bind=intake_engine)
    logger.info("테이블 생성 완료.")

    db = SessionLocal()
    try:
        # 기본 데이터가 이미 있는지 확인
        if db.query(User).first():
            logger.info("기본 데이터가 이미 존재합니다. 초기화를 건너뜁니다.")
            return

        logger.info("기본 데이터 삽입 중...")

        system_project = Project(
            name=settings.SYSTEM_PROJECT_NAME,
            description="Platform administration",
            project_type=ProjectType.ADMIN,
        )
        db.add(system_project)

        password_hash = hashlib.sha256('admin'.encode('utf-8')).hexdigest()
        admin_user = User(username='admin', password_hash=password_hash)
        db.add(admin_user)

        # flush로 각 객체의 id를 할당받은 뒤, 같은 트랜잭션에서 멤버십을 만듭니다.
        db.flush()
        db.add(UserProjectRole(
            user_id=admin_user.id,
            project_id=system_project.id,
            role=Role.OWNER,
        ))

        db.commit()
        logger.info("DB 초기화 및 기본 데이터 삽입 완료.")

    except Exception:
        logger.exception("기본 데이터 삽입 중 오류 발생")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == '__main__':
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)
    initialize_db()
