from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.config import settings
from src.database.models import Role
from src.repositories.interfaces import IProjectRepository
from src.services.exceptions import (
    InsufficientPermissionError, NotProjectMemberError, SystemAdminRequiredError
)


@dataclass(frozen=True)
class ProjectPermission:
    """한 사용자가 한 프로젝트에 대해 가지는 권한 평가 결과입니다."""
    has_access: bool
    role: Optional[Role]
    can_view: bool
    can_edit: bool
    can_manage: bool

    @classmethod
    def denied(cls) -> "ProjectPermission":
        return cls(has_access=False, role=None, can_view=False, can_edit=False, can_manage=False)

    @classmethod
    def for_role(cls, role: Role) -> "ProjectPermission":
        return cls(
            has_access=True,
            role=role,
            can_view=role.can_view,
            can_edit=role.can_edit,
            can_manage=role.can_manage,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_access": self.has_access,
            "role": self.role.value if self.role else None,
            "can_view": self.can_view,
            "can_edit": self.can_edit,
            "can_manage": self.can_manage,
        }


class PermissionService:
    """
    프로젝트 단위 역할을 조회하여 권한(view/edit/manage)을 도출합니다.

    요청자는 항상 명시적인 user_id 인자로 전달되며, 전역 "현재 사용자" 상태에 의존하지 않습니다.
    """

    def __init__(self, project_repo: IProjectRepository, system_project_name: str = None):
        self.project_repo = project_repo
        self.system_project_name = system_project_name or settings.SYSTEM_PROJECT_NAME

    def evaluate(self, user_id: int, project_id: int) -> ProjectPermission:
        """
        사용자의 프로젝트 권한을 평가합니다.

        멤버가 아니면 예외 대신 접근 거부 결과를 반환합니다.
        저장소 오류는 그대로 전파됩니다.
        """
        role = self.project_repo.role_of(project_id, user_id)
        if role is None:
            return ProjectPermission.denied()
        return ProjectPermission.for_role(Role.parse(role))

    def has_role(self, user_id: int, project_id: int, required: Role) -> bool:
        """사용자의 역할이 required 이상(같거나 더 높은 권한)인지 확인합니다."""
        role = self.project_repo.role_of(project_id, user_id)
        if role is None:
            return False
        return Role.parse(role).satisfies(required)

    def require_access(self, user_id: int, project_id: int) -> ProjectPermission:
        permission = self.evaluate(user_id, project_id)
        if not permission.has_access:
            raise NotProjectMemberError(f"User '{user_id}' is not a member of project '{project_id}'.")
        return permission

    def require_manage(self, user_id: int, project_id: int) -> ProjectPermission:
        permission = self.evaluate(user_id, project_id)
        if not permission.can_manage:
            raise InsufficientPermissionError(f"User '{user_id}' cannot manage project '{project_id}'.")
        return permission

    def require_role(self, user_id: int, project_id: int, required: Role) -> None:
        if not self.has_role(user_id, project_id, required):
            raise InsufficientPermissionError(
                f"Role '{required.value}' or higher is required in project '{project_id}'."
            )

    def is_system_admin(self, user_id: int) -> bool:
        """시스템 프로젝트에서 owner 또는 admin 역할을 가진 사용자만 시스템 관리자입니다."""
        system_project = self.project_repo.find_by_name(self.system_project_name)
        if not system_project:
            return False
        return self.has_role(user_id, system_project.id, Role.ADMIN)

    def require_system_admin(self, user_id: int) -> None:
        if not self.is_system_admin(user_id):
            raise SystemAdminRequiredError("System administrator privileges required.")
