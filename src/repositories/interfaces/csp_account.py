from abc import ABC, abstractmethod
from typing import List, Optional
from src.database import models

class ICSPAccountRepository(ABC):
    @abstractmethod
    def create(self, account: models.CSPAccount) -> Optional[models.CSPAccount]:
        """
        CSP 계정을 생성합니다.
        csp_request_id 유일성 제약에 걸리면 롤백하고 None을 반환합니다.
        """
        pass

    @abstractmethod
    def find_by_id(self, account_id: int) -> Optional[models.CSPAccount]:
        pass

    @abstractmethod
    def find_by_request_id(self, csp_request_id: str) -> Optional[models.CSPAccount]:
        """CSP 신청서 ID로 이미 만들어진 계정을 조회합니다."""
        pass

    @abstractmethod
    def list_all(self, provider: Optional[models.CSPProvider] = None) -> List[models.CSPAccount]:
        pass

    @abstractmethod
    def list_by_project_id(self, project_id: int) -> List[models.CSPAccount]:
        """프로젝트에 연결된 CSP 계정 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, account: models.CSPAccount) -> models.CSPAccount:
        pass

    @abstractmethod
    def delete(self, account: models.CSPAccount) -> bool:
        pass

    @abstractmethod
    def create_association(self, association: models.ProjectCSPAccount) -> Optional[models.ProjectCSPAccount]:
        """
        프로젝트-CSP 계정 연결을 생성합니다.
        (project, account) 유일성 제약에 걸리면 롤백하고 None을 반환합니다.
        """
        pass

    @abstractmethod
    def find_association(self, project_id: int, csp_account_id: int) -> Optional[models.ProjectCSPAccount]:
        pass

    @abstractmethod
    def find_association_by_id(self, association_id: int) -> Optional[models.ProjectCSPAccount]:
        pass

    @abstractmethod
    def list_associations(self, project_id: Optional[int] = None, csp_account_id: Optional[int] = None) -> List[models.ProjectCSPAccount]:
        pass

    @abstractmethod
    def delete_association(self, association: models.ProjectCSPAccount) -> bool:
        pass

    @abstractmethod
    def create_member(self, member: models.CSPAccountMember) -> Optional[models.CSPAccountMember]:
        """
        CSP 계정 멤버를 등록합니다.
        (계정, 프로젝트, 사용자) 유일성 제약에 걸리면 롤백하고 None을 반환합니다.
        """
        pass

    @abstractmethod
    def find_member_by_id(self, member_id: int) -> Optional[models.CSPAccountMember]:
        pass

    @abstractmethod
    def list_members(
        self,
        csp_account_id: Optional[int] = None,
        project_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> List[models.CSPAccountMember]:
        """주어진 조건을 모두 만족하는 CSP 계정 멤버 목록을 조회합니다. 조건이 없으면 전체를 반환합니다."""
        pass

    @abstractmethod
    def update_member(self, member: models.CSPAccountMember) -> models.CSPAccountMember:
        pass

    @abstractmethod
    def delete_member(self, member: models.CSPAccountMember) -> bool:
        pass
