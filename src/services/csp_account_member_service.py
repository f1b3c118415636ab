import logging
from typing import Dict, Any, List, Optional

from src.database import models
from src.repositories.interfaces import ICSPAccountRepository, IProjectRepository, IUserRepository
from src.services.exceptions import (
    ProjectNotFoundError, UserNotFoundError, CSPAccountNotFoundError, CSPAccountMemberNotFoundError,
    InvalidRoleError, InvalidStatusError, CSPAccountMemberExistsError, CSPAccountNotAssociatedError
)
from src.services.permission_service import PermissionService

logger = logging.getLogger(__name__)

DEFAULT_SSO_PROVIDER = "default"


def parse_member_role(value) -> models.CSPAccountMemberRole:
    try:
        return models.CSPAccountMemberRole(value)
    except ValueError:
        raise InvalidRoleError(
            f"Invalid CSP account member role '{value}'.", allowed=[r.value for r in models.CSPAccountMemberRole]
        )


def parse_member_status(value) -> models.CSPAccountMemberStatus:
    try:
        return models.CSPAccountMemberStatus(value)
    except ValueError:
        raise InvalidStatusError(
            f"Invalid CSP account member status '{value}'.", allowed=[s.value for s in models.CSPAccountMemberStatus]
        )


def serialize_member(member: models.CSPAccountMember) -> Dict[str, Any]:
    return {
        "id": member.id,
        "csp_account_id": member.csp_account_id,
        "project_id": member.project_id,
        "user_id": member.user_id,
        "sso_enabled": member.sso_enabled,
        "sso_provider": member.sso_provider,
        "sso_email": member.sso_email,
        "role": member.role.value if member.role else None,
        "status": member.status.value if member.status else None,
        "created_by": member.created_by,
        "created_at": member.created_at.isoformat() if member.created_at else None,
        "updated_at": member.updated_at.isoformat() if member.updated_at else None,
    }


class CSPAccountMemberService:
    """
    프로젝트에 연결된 CSP 계정을 어떤 사용자가 SSO로 사용할 수 있는지 관리합니다.

    멤버 등록은 프로젝트 관리자만 할 수 있고, 수정과 삭제는 멤버 본인 또는 프로젝트 관리자만 할 수 있습니다.
    """

    def __init__(
        self,
        account_repo: ICSPAccountRepository,
        project_repo: IProjectRepository,
        user_repo: IUserRepository,
        permission_service: PermissionService,
    ):
        self.account_repo = account_repo
        self.project_repo = project_repo
        self.user_repo = user_repo
        self.permissions = permission_service

    def _get_member_or_raise(self, member_id: int) -> models.CSPAccountMember:
        member = self.account_repo.find_member_by_id(member_id)
        if not member:
            raise CSPAccountMemberNotFoundError(f"CSP account member '{member_id}' not found.")
        return member

    def _require_self_or_manager(self, actor_id: int, member: models.CSPAccountMember) -> None:
        if member.user_id == actor_id:
            return
        self.permissions.require_manage(actor_id, member.project_id)

    # --- 조회 ---

    def list_members(
        self,
        actor_id: int,
        csp_account_id: Optional[int] = None,
        project_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        조건에 맞는 멤버 목록을 조회합니다.

        project_id가 있으면 해당 프로젝트 멤버가, user_id만 있으면 본인이 조회할 수 있습니다.
        그 밖의 조회(계정 단위 또는 전체)는 시스템 관리자 전용입니다.
        """
        if project_id is not None:
            if not self.project_repo.find_by_id(project_id):
                raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
            self.permissions.require_access(actor_id, project_id)
        elif user_id is not None:
            if user_id != actor_id:
                self.permissions.require_system_admin(actor_id)
        else:
            self.permissions.require_system_admin(actor_id)

        members = self.account_repo.list_members(csp_account_id, project_id, user_id)
        return [serialize_member(m) for m in members]

    def get_member(self, actor_id: int, member_id: int) -> Dict[str, Any]:
        member = self._get_member_or_raise(member_id)
        if member.user_id != actor_id and not self.permissions.evaluate(actor_id, member.project_id).has_access:
            self.permissions.require_system_admin(actor_id)
        return serialize_member(member)

    # --- 변경 ---

    def create_member(
        self,
        actor_id: int,
        csp_account_id: int,
        project_id: int,
        user_id: int,
        sso_enabled: Optional[bool] = None,
        sso_provider: Optional[str] = None,
        sso_email: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        프로젝트에 연결된 CSP 계정에 사용자를 멤버로 등록합니다.

        sso_email을 주지 않으면 사용자의 이메일을 사용합니다.

        Raises:
            InvalidRoleError: 역할 값이 유효하지 않을 때.
            CSPAccountNotFoundError, ProjectNotFoundError, UserNotFoundError: 대상이 없을 때.
            InsufficientPermissionError: 프로젝트를 관리할 수 없을 때.
            CSPAccountNotAssociatedError: 계정이 프로젝트에 연결되어 있지 않을 때.
            CSPAccountMemberExistsError: 이미 등록된 멤버일 때 (유일성 제약이 최종 판정).
        """
        member_role = parse_member_role(role) if role else models.CSPAccountMemberRole.USER

        if not self.account_repo.find_by_id(csp_account_id):
            raise CSPAccountNotFoundError(f"CSP account with id '{csp_account_id}' not found.")
        if not self.project_repo.find_by_id(project_id):
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        self.permissions.require_manage(actor_id, project_id)
        user = self.user_repo.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")
        if not self.account_repo.find_association(project_id, csp_account_id):
            raise CSPAccountNotAssociatedError(
                f"CSP account '{csp_account_id}' is not associated with project '{project_id}'."
            )

        member = self.account_repo.create_member(models.CSPAccountMember(
            csp_account_id=csp_account_id,
            project_id=project_id,
            user_id=user_id,
            sso_enabled=True if sso_enabled is None else bool(sso_enabled),
            sso_provider=sso_provider or DEFAULT_SSO_PROVIDER,
            sso_email=sso_email or user.email,
            role=member_role,
            status=models.CSPAccountMemberStatus.ACTIVE,
            created_by=actor_id,
        ))
        if member is None:
            raise CSPAccountMemberExistsError(
                f"User '{user_id}' is already a member of CSP account '{csp_account_id}' in project '{project_id}'."
            )
        logger.info("User %s added to CSP account %s in project %s by user %s.", user_id, csp_account_id, project_id, actor_id)
        return serialize_member(member)

    def update_member(self, actor_id: int, member_id: int, **fields) -> Dict[str, Any]:
        """
        SSO 설정, 역할, 상태를 변경합니다. 값이 None인 필드는 변경하지 않습니다.

        Raises:
            InsufficientPermissionError: 멤버 본인도 프로젝트 관리자도 아닐 때.
            InvalidRoleError, InvalidStatusError: 값이 유효하지 않을 때. (아무것도 변경되지 않음)
        """
        member = self._get_member_or_raise(member_id)
        self._require_self_or_manager(actor_id, member)

        changes = {}
        if fields.get("sso_enabled") is not None:
            changes["sso_enabled"] = bool(fields["sso_enabled"])
        if fields.get("sso_provider"):
            changes["sso_provider"] = fields["sso_provider"]
        if fields.get("sso_email"):
            changes["sso_email"] = fields["sso_email"]
        if fields.get("role"):
            changes["role"] = parse_member_role(fields["role"])
        if fields.get("status"):
            changes["status"] = parse_member_status(fields["status"])

        for key, value in changes.items():
            setattr(member, key, value)
        return serialize_member(self.account_repo.update_member(member))

    def delete_member(self, actor_id: int, member_id: int) -> bool:
        member = self._get_member_or_raise(member_id)
        self._require_self_or_manager(actor_id, member)
        logger.info("CSP account member %s removed by user %s.", member_id, actor_id)
        return self.account_repo.delete_member(member)
