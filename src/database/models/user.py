from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from ..database import Base

class User(Base):
    """
    시스템에 로그인하고 프로젝트에 소속될 수 있는 사용자를 나타냅니다.
    사용자는 여러 프로젝트에 서로 다른 역할(Role)로 동시에 소속될 수 있습니다.
    """
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    email = Column(String)
    created_at = Column(DateTime, server_default=func.now())

    project_associations = relationship("UserProjectRole", back_populates="user", cascade="all, delete-orphan")
