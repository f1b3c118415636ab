from datetime import datetime
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import ICSPRequestRepository

class SqlalchemyCSPRequestRepository(ICSPRequestRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def _conditional_update(self, request_id: str, expected: models.CSPRequestStatus, **values) -> bool:
        stmt = (
            update(models.CSPRequest)
            .where(models.CSPRequest.id == request_id, models.CSPRequest.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def create(self, request: models.CSPRequest) -> models.CSPRequest:
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request

    def find_by_id(self, request_id: str) -> Optional[models.CSPRequest]:
        return self.db.query(models.CSPRequest).filter(models.CSPRequest.id == request_id).first()

    def list_by_project_id(self, project_id: int) -> List[models.CSPRequest]:
        return self.db.query(models.CSPRequest).filter(models.CSPRequest.project_id == project_id).order_by(models.CSPRequest.created_at.desc()).all()

    def list_by_status(self, status: models.CSPRequestStatus) -> List[models.CSPRequest]:
        return self.db.query(models.CSPRequest).filter(models.CSPRequest.status == status).order_by(models.CSPRequest.created_at.desc()).all()

    def list_by_requester(self, requester_id: int) -> List[models.CSPRequest]:
        return self.db.query(models.CSPRequest).filter(models.CSPRequest.requester_id == requester_id).order_by(models.CSPRequest.created_at.desc()).all()

    def update_details(self, request_id: str, account_name: Optional[str], reason: Optional[str]) -> bool:
        values = {}
        if account_name is not None:
            values["account_name"] = account_name
        if reason is not None:
            values["reason"] = reason
        values["updated_at"] = datetime.now()
        return self._conditional_update(request_id, models.CSPRequestStatus.PENDING, **values)

    def mark_reviewed(self, request_id, status, reviewer_id, reviewed_at, reject_reason) -> bool:
        return self._conditional_update(
            request_id,
            models.CSPRequestStatus.PENDING,
            status=status,
            reviewed_by=reviewer_id,
            reviewed_at=reviewed_at,
            reject_reason=reject_reason,
            updated_at=reviewed_at,
        )

    def revert_approval(self, request_id: str) -> bool:
        return self._conditional_update(
            request_id,
            models.CSPRequestStatus.APPROVED,
            status=models.CSPRequestStatus.PENDING,
            reviewed_by=None,
            reviewed_at=None,
            reject_reason=None,
            updated_at=datetime.now(),
        )

    def delete(self, request: models.CSPRequest) -> bool:
        if request:
            self.db.delete(request)
            self.db.commit()
            return True
        return False
