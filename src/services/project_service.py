import logging
from typing import Dict, Any, List, Optional

from src.database import models
from src.repositories.interfaces import IProjectRepository, IUserRepository
from src.services.exceptions import (
    ProjectNotFoundError, UserNotFoundError, MembershipNotFoundError,
    InvalidRoleError, InvalidStatusError, InvalidProjectTypeError,
    AlreadyMemberError, CannotRemoveLastOwnerError
)
from src.services.permission_service import PermissionService

logger = logging.getLogger(__name__)


def parse_role(value) -> models.Role:
    try:
        return models.Role.parse(value)
    except ValueError:
        raise InvalidRoleError(f"Invalid role '{value}'.", allowed=[r.value for r in models.Role])


def parse_project_type(value) -> models.ProjectType:
    try:
        return models.ProjectType(value)
    except ValueError:
        raise InvalidProjectTypeError(f"Invalid project type '{value}'.", allowed=[t.value for t in models.ProjectType])


def parse_project_status(value) -> models.ProjectStatus:
    try:
        return models.ProjectStatus(value)
    except ValueError:
        raise InvalidStatusError(f"Invalid project status '{value}'.", allowed=[s.value for s in models.ProjectStatus])


def serialize_project(project: models.Project, role: Optional[models.Role] = None) -> Dict[str, Any]:
    data = {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "status": project.status.value if project.status else None,
        "organization_id": project.organization_id,
        "project_type": project.project_type.value if project.project_type else None,
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
    }
    if role is not None:
        data["role"] = role.value
    return data


class ProjectService:
    """
    프로젝트와 멤버십을 관리합니다.

    모든 작업은 요청자(actor_id)를 명시적으로 받아 PermissionService로 권한을 확인한 뒤 수행됩니다.
    마지막 owner 보호는 리포지토리의 조건부 쓰기로 처리되며, 이 서비스는 실패 원인만 분류합니다.
    """

    def __init__(self, project_repo: IProjectRepository, user_repo: IUserRepository, permission_service: PermissionService):
        self.project_repo = project_repo
        self.user_repo = user_repo
        self.permissions = permission_service

    def _get_project_or_raise(self, project_id: int) -> models.Project:
        project = self.project_repo.find_by_id(project_id)
        if not project:
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        return project

    # --- 프로젝트 ---

    def create_project(
        self,
        actor_id: int,
        name: str,
        description: str = "",
        project_type: str = models.ProjectType.INDEPENDENT.value,
        status: str = models.ProjectStatus.ACTIVE.value,
        organization_id: int = 0,
    ) -> Dict[str, Any]:
        """
        프로젝트를 생성하고 생성자를 owner로 등록합니다. 두 쓰기는 하나의 트랜잭션으로 처리됩니다.

        Raises:
            ValueError: 이름이 비어 있을 때.
            InvalidProjectTypeError, InvalidStatusError: 유형/상태 값이 유효하지 않을 때.
        """
        if not name or not str(name).strip():
            raise ValueError("Project name is required.")

        project = models.Project(
            name=name.strip(),
            description=description or "",
            project_type=parse_project_type(project_type),
            status=parse_project_status(status),
            organization_id=organization_id or 0,
        )
        created = self.project_repo.create_with_owner(project, actor_id)
        logger.info("Project %s created by user %s.", created.id, actor_id)
        return serialize_project(created, models.Role.OWNER)

    def get_project(self, actor_id: int, project_id: int) -> Dict[str, Any]:
        """멤버만 조회할 수 있으며, 응답에 요청자의 역할이 포함됩니다."""
        project = self._get_project_or_raise(project_id)
        permission = self.permissions.require_access(actor_id, project_id)
        return serialize_project(project, permission.role)

    def list_my_projects(self, actor_id: int) -> List[Dict[str, Any]]:
        return [serialize_project(p, models.Role.parse(role)) for p, role in self.project_repo.list_by_user(actor_id)]

    def list_projects_by_type(self, project_type: str) -> List[Dict[str, Any]]:
        return [serialize_project(p) for p in self.project_repo.list_by_type(parse_project_type(project_type))]

    def update_project(self, actor_id: int, project_id: int, **fields) -> Dict[str, Any]:
        """
        프로젝트의 이름, 설명, 상태, 유형을 변경합니다. manage 권한이 필요합니다.
        값이 None인 필드는 변경하지 않습니다.
        """
        project = self._get_project_or_raise(project_id)
        permission = self.permissions.require_manage(actor_id, project_id)

        # 유효성 검사를 모두 끝낸 뒤에 모델을 변경합니다.
        changes = {}
        if fields.get("name") is not None:
            if not str(fields["name"]).strip():
                raise ValueError("Project name must not be empty.")
            changes["name"] = str(fields["name"]).strip()
        if fields.get("description") is not None:
            changes["description"] = fields["description"]
        if fields.get("status") is not None:
            changes["status"] = parse_project_status(fields["status"])
        if fields.get("project_type") is not None:
            changes["project_type"] = parse_project_type(fields["project_type"])

        for key, value in changes.items():
            setattr(project, key, value)
        updated = self.project_repo.update(project)
        return serialize_project(updated, permission.role)

    def delete_project(self, actor_id: int, project_id: int) -> bool:
        """
        프로젝트를 논리 삭제합니다. owner만 삭제할 수 있습니다.

        Raises:
            ProjectNotFoundError: 프로젝트가 없거나 이미 삭제되었을 때.
            InsufficientPermissionError: 요청자가 owner가 아닐 때.
        """
        project = self._get_project_or_raise(project_id)
        self.permissions.require_role(actor_id, project_id, models.Role.OWNER)
        self.project_repo.soft_delete(project)
        logger.info("Project %s soft-deleted by user %s.", project_id, actor_id)
        return True

    # --- 멤버십 ---

    def list_members(self, actor_id: int, project_id: int) -> List[Dict[str, Any]]:
        self._get_project_or_raise(project_id)
        self.permissions.require_access(actor_id, project_id)
        return self.project_repo.list_members(project_id)

    def add_member(self, actor_id: int, project_id: int, user_id: int, role: str) -> Dict[str, Any]:
        """
        사용자를 프로젝트 멤버로 추가합니다.

        Raises:
            InvalidRoleError: 역할 값이 유효하지 않을 때.
            UserNotFoundError: 추가할 사용자가 없을 때.
            AlreadyMemberError: 이미 멤버일 때 (유일성 제약이 최종 판정).
        """
        new_role = parse_role(role)
        self._get_project_or_raise(project_id)
        self.permissions.require_manage(actor_id, project_id)
        if not self.user_repo.find_by_id(user_id):
            raise UserNotFoundError(f"User with id '{user_id}' not found.")

        association = self.project_repo.add_member(project_id, user_id, new_role)
        if association is None:
            raise AlreadyMemberError(f"User '{user_id}' is already a member of project '{project_id}'.")
        return {"user_id": user_id, "project_id": project_id, "role": new_role.value}

    def update_member_role(self, actor_id: int, project_id: int, user_id: int, role: str) -> Dict[str, Any]:
        """
        멤버의 역할을 변경합니다. 마지막 owner는 강등할 수 없습니다.

        Raises:
            InvalidRoleError: 역할 값이 유효하지 않을 때. (아무것도 기록되지 않음)
            MembershipNotFoundError: 대상이 멤버가 아닐 때.
            CannotRemoveLastOwnerError: 마지막 owner를 강등하려고 할 때.
        """
        new_role = parse_role(role)
        self._get_project_or_raise(project_id)
        self.permissions.require_manage(actor_id, project_id)

        # 같은 역할로의 변경은 쓰지 않습니다. (변경된 행 수만 세는 DB에서는 0행으로 보고됨)
        current = self.project_repo.role_of(project_id, user_id)
        if current is None:
            raise MembershipNotFoundError(f"User '{user_id}' is not a member of project '{project_id}'.")
        if models.Role.parse(current) is new_role:
            return {"user_id": user_id, "project_id": project_id, "role": new_role.value}

        if not self.project_repo.update_role(project_id, user_id, new_role):
            self._raise_membership_write_failure(project_id, user_id)
        return {"user_id": user_id, "project_id": project_id, "role": new_role.value}

    def remove_member(self, actor_id: int, project_id: int, user_id: int) -> bool:
        """
        멤버를 프로젝트에서 제거합니다. 마지막 owner는 제거할 수 없습니다.

        Raises:
            MembershipNotFoundError: 대상이 멤버가 아닐 때.
            CannotRemoveLastOwnerError: 마지막 owner를 제거하려고 할 때.
        """
        self._get_project_or_raise(project_id)
        self.permissions.require_manage(actor_id, project_id)

        if not self.project_repo.remove_member(project_id, user_id):
            self._raise_membership_write_failure(project_id, user_id)
        logger.info("User %s removed from project %s by user %s.", user_id, project_id, actor_id)
        return True

    def _raise_membership_write_failure(self, project_id: int, user_id: int):
        # 조건부 쓰기가 0행에 적용된 이유를 분류합니다.
        if self.project_repo.role_of(project_id, user_id) is None:
            raise MembershipNotFoundError(f"User '{user_id}' is not a member of project '{project_id}'.")
        raise CannotRemoveLastOwnerError(
            f"Project '{project_id}' must keep at least one owner.",
            project_id=project_id,
        )

    # --- 내부 API (신청 접수 서비스 전용) ---

    def can_manage_project(self, project_id: int, user_id: int) -> Dict[str, Any]:
        """
        신청 접수 서비스가 묻는 "이 사용자가 이 프로젝트를 관리할 수 있는가?"에 답합니다.
        결과가 false여도 예외를 발생시키지 않고, 프로젝트가 없을 때만 ProjectNotFoundError를 발생시킵니다.
        """
        project = self._get_project_or_raise(project_id)
        permission = self.permissions.evaluate(user_id, project_id)
        return {
            "can_manage": permission.can_manage,
            "project_id": project.id,
            "project_name": project.name,
            "project_type": project.project_type.value,
        }

    def get_project_type(self, project_id: int) -> Dict[str, Any]:
        project = self._get_project_or_raise(project_id)
        return {
            "project_id": project.id,
            "project_name": project.name,
            "project_type": project.project_type.value,
        }
