import uuid

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, func
from ..database import IntakeBase
from .enums import CSPProvider, CSPRequestStatus, enum_column_values

class CSPRequest(IntakeBase):
    """
    프로젝트를 위해 CSP 계정을 프로비저닝해 달라는 승인 대기 신청서입니다.
    신청 접수 서비스의 데이터베이스에만 저장됩니다.
    status, reviewed_by, reviewed_at, reject_reason 네 필드는 항상 함께 기록됩니다.
    """
    __tablename__ = "csp_requests"
    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(Integer, nullable=False, index=True)
    requester_id = Column(Integer, nullable=False, index=True)
    provider = Column(
        Enum(CSPProvider, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
    )
    account_name = Column(String(255), nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(
        Enum(CSPRequestStatus, native_enum=False, length=50, values_callable=enum_column_values),
        nullable=False,
        default=CSPRequestStatus.PENDING,
        index=True,
    )
    reviewed_by = Column(Integer, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reject_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
