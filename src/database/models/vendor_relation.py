from sqlalchemy import Column, Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from ..database import Base

class ProjectVendorRelation(Base):
    """
    소비자 프로젝트(project_id)가 신뢰하는 벤더 프로젝트(vendor_project_id)로 향하는 방향성 링크입니다.
    벤더 프로젝트의 CSP 계정을 소비자 프로젝트에서 보고 관리할 수 있도록 위임하는 데 사용됩니다.
    """
    __tablename__ = "project_vendor_relations"
    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    vendor_project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    vendor_project = relationship("Project", foreign_keys=[vendor_project_id])
