from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from src.database import models

class ICSPRequestRepository(ABC):
    @abstractmethod
    def create(self, request: models.CSPRequest) -> models.CSPRequest:
        """새로운 CSP 신청서를 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, request_id: str) -> Optional[models.CSPRequest]:
        pass

    @abstractmethod
    def list_by_project_id(self, project_id: int) -> List[models.CSPRequest]:
        pass

    @abstractmethod
    def list_by_status(self, status: models.CSPRequestStatus) -> List[models.CSPRequest]:
        pass

    @abstractmethod
    def list_by_requester(self, requester_id: int) -> List[models.CSPRequest]:
        pass

    @abstractmethod
    def update_details(self, request_id: str, account_name: Optional[str], reason: Optional[str]) -> bool:
        """
        pending 상태인 신청서의 계정 이름/사유만 변경합니다.

        Returns:
            pending 상태여서 실제로 변경되었으면 True.
        """
        pass

    @abstractmethod
    def mark_reviewed(
        self,
        request_id: str,
        status: models.CSPRequestStatus,
        reviewer_id: int,
        reviewed_at: datetime,
        reject_reason: Optional[str],
    ) -> bool:
        """
        status, reviewed_by, reviewed_at, reject_reason을 하나의 UPDATE 문으로 기록합니다.
        pending 상태인 경우에만 적용되므로 동시에 들어온 두 검토 중 하나만 성공합니다.

        Returns:
            실제로 상태가 바뀌었으면 True.
        """
        pass

    @abstractmethod
    def revert_approval(self, request_id: str) -> bool:
        """
        보상(compensation) 처리: approved 상태의 신청서를 pending으로 되돌리고
        검토 관련 필드를 모두 비웁니다.

        Returns:
            실제로 되돌렸으면 True.
        """
        pass

    @abstractmethod
    def delete(self, request: models.CSPRequest) -> bool:
        pass
