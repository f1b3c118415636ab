from sqlalchemy import Column, Integer, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import Role, enum_column_values

class UserProjectRole(Base):
    """
    사용자(User)와 프로젝트(Project) 사이의 멤버십을 나타내는 연관 테이블 모델입니다.
    (user, project) 쌍마다 하나의 역할만 가질 수 있으며, 역할은 프로젝트별로 독립적입니다.
    """
    __tablename__ = 'user_project_roles'
    __table_args__ = (
        UniqueConstraint('user_id', 'project_id', name='uq_user_project_role'),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False, index=True)
    role = Column(
        Enum(Role, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
    )
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="project_associations")
    project = relationship("Project", back_populates="user_associations")
