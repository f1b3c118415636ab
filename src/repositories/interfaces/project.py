from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any, Tuple
from src.database import models

class IProjectRepository(ABC):
    @abstractmethod
    def create_with_owner(self, project_model: models.Project, owner_id: int) -> models.Project:
        """
        프로젝트와 생성자의 owner 멤버십을 하나의 트랜잭션으로 생성합니다.
        멤버십 생성에 실패하면 프로젝트도 남기지 않습니다.
        """
        pass

    @abstractmethod
    def find_by_id(self, project_id: int) -> Optional[models.Project]:
        """고유 ID로 삭제되지 않은 프로젝트를 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.Project]:
        """이름으로 삭제되지 않은 프로젝트를 조회합니다."""
        pass

    @abstractmethod
    def list_by_user(self, user_id: int) -> List[Tuple[models.Project, models.Role]]:
        """사용자가 소속된 프로젝트와 그 프로젝트에서의 역할 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_by_type(self, project_type: models.ProjectType) -> List[models.Project]:
        """특정 유형의 프로젝트 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, project: models.Project) -> models.Project:
        """변경된 프로젝트 정보를 저장합니다."""
        pass

    @abstractmethod
    def soft_delete(self, project: models.Project) -> bool:
        """프로젝트를 논리 삭제(deleted_at 기록)합니다."""
        pass

    @abstractmethod
    def list_members(self, project_id: int) -> List[Dict[str, Any]]:
        """
        특정 프로젝트에 속한 모든 사용자와 그들의 역할을 조회합니다.

        Returns:
            사용자 정보(user_id, username)와 역할(role)이 포함된 딕셔너리의 리스트.
            (예: [{'user_id': 1, 'username': 'admin', 'role': 'owner', 'joined_at': '...'}])
        """
        pass

    @abstractmethod
    def is_member(self, project_id: int, user_id: int) -> bool:
        """사용자가 프로젝트의 멤버인지 확인합니다."""
        pass

    @abstractmethod
    def role_of(self, project_id: int, user_id: int) -> Optional[models.Role]:
        """프로젝트에서 사용자의 역할을 조회합니다. 멤버가 아니거나 프로젝트가 삭제되었으면 None을 반환합니다."""
        pass

    @abstractmethod
    def add_member(self, project_id: int, user_id: int, role: models.Role) -> Optional[models.UserProjectRole]:
        """
        멤버십을 추가합니다.
        (user, project) 유일성 제약에 걸리면 아무것도 쓰지 않고 None을 반환합니다.
        """
        pass

    @abstractmethod
    def update_role(self, project_id: int, user_id: int, role: models.Role) -> bool:
        """
        멤버의 역할을 조건부로 변경합니다.
        대상이 마지막 owner이고 owner가 아닌 역할로 강등하려는 경우에는 변경하지 않습니다.

        Returns:
            실제로 한 행이 변경되었으면 True.
        """
        pass

    @abstractmethod
    def remove_member(self, project_id: int, user_id: int) -> bool:
        """
        멤버십을 조건부로 삭제합니다.
        "owner가 아니거나, owner 수가 1보다 큰 경우"에만 삭제하는 단일 DELETE 문으로 수행합니다.

        Returns:
            실제로 한 행이 삭제되었으면 True.
        """
        pass

    @abstractmethod
    def count_owners(self, project_id: int) -> int:
        """프로젝트의 owner 수를 조회합니다."""
        pass
