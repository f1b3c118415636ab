from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import CSPProvider, CSPAccountMemberRole, CSPAccountMemberStatus, enum_column_values

class CSPAccount(Base):
    """
    클라우드 서비스 제공자(AWS, GCP, Azure)에 프로비저닝된 계정을 나타냅니다.
    승인된 CSP 신청서(csp_request_id)당 최대 하나의 계정만 존재합니다.
    secret_key는 외부 응답에 절대 포함하지 않습니다.
    """
    __tablename__ = "csp_accounts"
    id = Column(Integer, primary_key=True, index=True)
    provider = Column(
        Enum(CSPProvider, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
    )
    account_name = Column(String(255), nullable=False)
    account_id = Column(String(255), nullable=False)
    access_key = Column(String(255), nullable=False)
    secret_key = Column(String(255), nullable=False)
    region = Column(String(100))
    status = Column(String(50), nullable=False, default="active")
    created_by = Column(Integer, nullable=False, index=True)
    csp_request_id = Column(String(64), unique=True, nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    project_associations = relationship("ProjectCSPAccount", back_populates="csp_account", cascade="all, delete-orphan")
    members = relationship("CSPAccountMember", back_populates="csp_account", cascade="all, delete-orphan")


class ProjectCSPAccount(Base):
    """어떤 프로젝트가 어떤 CSP 계정을 사용할 수 있는지 기록하는 연관 테이블 모델입니다."""
    __tablename__ = "project_csp_accounts"
    __table_args__ = (
        UniqueConstraint('project_id', 'csp_account_id', name='uq_project_csp_account'),
    )
    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    csp_account_id = Column(Integer, ForeignKey("csp_accounts.id"), nullable=False, index=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    csp_account = relationship("CSPAccount", back_populates="project_associations")


class CSPAccountMember(Base):
    """
    프로젝트에 연결된 CSP 계정을 SSO로 사용할 수 있는 사용자를 나타냅니다.
    같은 (계정, 프로젝트, 사용자) 조합은 한 번만 등록됩니다.
    """
    __tablename__ = "csp_account_members"
    __table_args__ = (
        UniqueConstraint('csp_account_id', 'project_id', 'user_id', name='uq_csp_account_member'),
    )
    id = Column(Integer, primary_key=True, index=True)
    csp_account_id = Column(Integer, ForeignKey("csp_accounts.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sso_enabled = Column(Boolean, nullable=False, default=True)
    sso_provider = Column(String(50), nullable=False, default="default")
    sso_email = Column(String(255))
    role = Column(
        Enum(CSPAccountMemberRole, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
        default=CSPAccountMemberRole.USER,
    )
    status = Column(
        Enum(CSPAccountMemberStatus, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
        default=CSPAccountMemberStatus.ACTIVE,
    )
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    csp_account = relationship("CSPAccount", back_populates="members")
