from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, func
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import ProjectStatus, ProjectType, enum_column_values

class Project(Base):
    """
    하나의 격리된 테넌트(tenant) 또는 조직 단위를 나타냅니다.
    멤버십, CSP 신청, 벤더 관계는 모두 이 Project 모델에 종속됩니다.
    삭제는 deleted_at을 채우는 논리 삭제(soft delete)로만 이루어집니다.
    """
    __tablename__ = "projects"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, default="")
    status = Column(
        Enum(ProjectStatus, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
        default=ProjectStatus.ACTIVE,
    )
    organization_id = Column(Integer, nullable=False, default=0, index=True)
    project_type = Column(
        Enum(ProjectType, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
        default=ProjectType.INDEPENDENT,
    )
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True, index=True)

    user_associations = relationship("UserProjectRole", back_populates="project", cascade="all, delete-orphan")