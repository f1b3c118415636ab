import logging
import secrets
import time
import uuid
from typing import Dict, Any, List, Optional

from src.config import settings
from src.database import models
from src.repositories.interfaces import ICSPAccountRepository, IProjectRepository
from src.services.exceptions import (
    ProjectNotFoundError, CSPAccountNotFoundError, ProjectCSPAccountNotFoundError,
    InvalidProviderError, CSPAccountExistsError, ProjectCSPAccountExistsError,
    AccountAssociationFailedError
)
from src.services.permission_service import PermissionService

logger = logging.getLogger(__name__)

DEFAULT_REGIONS = {
    models.CSPProvider.AWS: "ap-northeast-1",
    models.CSPProvider.GCP: "asia-northeast1",
    models.CSPProvider.AZURE: "japaneast",
}

UPDATABLE_FIELDS = ("account_name", "region", "status", "access_key", "secret_key")


def parse_provider(value) -> models.CSPProvider:
    try:
        return models.CSPProvider(value)
    except ValueError:
        raise InvalidProviderError(f"Invalid provider '{value}'.", allowed=[p.value for p in models.CSPProvider])


# --------------------------------------------------------------------------
## 모의 프로비저닝: 실제 클라우드 API를 호출하지 않고 제공자 형식의 값만 만듭니다.
# --------------------------------------------------------------------------

def generate_account_id(provider: models.CSPProvider, account_name: str) -> str:
    if provider is models.CSPProvider.AWS:
        return str(secrets.randbelow(10 ** 12)).zfill(12)
    if provider is models.CSPProvider.GCP:
        slug = "-".join(account_name.lower().split()) or "account"
        return f"project-{slug}-{int(time.time())}"
    return str(uuid.uuid4())


def generate_access_key(provider: models.CSPProvider) -> str:
    if provider is models.CSPProvider.AWS:
        return "AKIA" + secrets.token_hex(8).upper()
    return f"{provider.value}-access-{secrets.token_hex(12)}"


def generate_secret_key() -> str:
    return secrets.token_hex(20)


def serialize_account(account: models.CSPAccount) -> Dict[str, Any]:
    """secret_key는 응답에 포함하지 않습니다."""
    return {
        "id": account.id,
        "provider": account.provider.value if account.provider else None,
        "account_name": account.account_name,
        "account_id": account.account_id,
        "access_key": account.access_key,
        "region": account.region,
        "status": account.status,
        "created_by": account.created_by,
        "csp_request_id": account.csp_request_id,
        "created_at": account.created_at.isoformat() if account.created_at else None,
        "updated_at": account.updated_at.isoformat() if account.updated_at else None,
    }


def serialize_association(association: models.ProjectCSPAccount) -> Dict[str, Any]:
    return {
        "id": association.id,
        "project_id": association.project_id,
        "csp_account_id": association.csp_account_id,
        "created_by": association.created_by,
        "created_at": association.created_at.isoformat() if association.created_at else None,
    }


class CSPAccountService:
    """
    CSP 계정 카탈로그와 프로젝트-CSP 계정 연결을 관리합니다.

    카탈로그와 연결 관리는 시스템 관리자 전용이며,
    auto_create_csp_account는 신청 접수 서비스가 내부 API로만 호출합니다.
    """

    def __init__(self, account_repo: ICSPAccountRepository, project_repo: IProjectRepository, permission_service: PermissionService):
        self.account_repo = account_repo
        self.project_repo = project_repo
        self.permissions = permission_service

    def _get_account_or_raise(self, account_id: int) -> models.CSPAccount:
        account = self.account_repo.find_by_id(account_id)
        if not account:
            raise CSPAccountNotFoundError(f"CSP account with id '{account_id}' not found.")
        return account

    # --- 내부 API ---

    @staticmethod
    def resolve_creator_id(header_value: Optional[str]) -> int:
        """
        X-Creator-ID 헤더를 사용자 ID로 해석합니다.
        숫자가 아니면 기본 관리자 ID를 사용합니다. (헤더 값을 검증하지 않는 신뢰 경계)

        Raises:
            ValueError: 헤더가 없을 때.
        """
        if not header_value:
            raise ValueError("Creator ID is required.")
        try:
            return int(header_value)
        except ValueError:
            logger.info("Non-numeric creator id '%s'; using default creator %s.", header_value, settings.DEFAULT_CREATOR_ID)
            return settings.DEFAULT_CREATOR_ID

    def auto_create_csp_account(
        self,
        csp_request_id: str,
        provider: str,
        account_name: str,
        project_id: int,
        creator_id: int,
    ) -> Dict[str, Any]:
        """
        승인된 CSP 신청서에 대한 계정을 만들고 신청 프로젝트에 연결합니다.

        같은 csp_request_id로 다시 호출되면 새 계정을 만들지 않고 기존 계정을 사용하므로,
        재시도해도 계정은 하나만 존재합니다.

        Returns:
            {"message", "csp_account", "csp_request_id"}

        Raises:
            ValueError: 필수 값이 없을 때.
            InvalidProviderError: 제공자 값이 유효하지 않을 때.
            AccountAssociationFailedError: 계정은 만들어졌지만 프로젝트 연결에 실패했을 때.
        """
        if not csp_request_id or not account_name or project_id is None:
            raise ValueError("csp_request_id, provider, account_name and project_id are required.")
        csp_provider = parse_provider(provider)

        account = self.account_repo.find_by_request_id(csp_request_id)
        if account is not None:
            logger.info("CSP account %s already exists for request %s; reusing it.", account.id, csp_request_id)
        else:
            account = self._provision(csp_request_id, csp_provider, account_name, creator_id)

        self._associate_for_request(account, int(project_id), creator_id)
        return {
            "message": "CSP account created and associated successfully",
            "csp_account": serialize_account(account),
            "csp_request_id": csp_request_id,
        }

    def _provision(self, csp_request_id: str, provider: models.CSPProvider, account_name: str, creator_id: int) -> models.CSPAccount:
        created = self.account_repo.create(models.CSPAccount(
            provider=provider,
            account_name=account_name,
            account_id=generate_account_id(provider, account_name),
            access_key=generate_access_key(provider),
            secret_key=generate_secret_key(),
            region=DEFAULT_REGIONS[provider],
            status="active",
            created_by=creator_id,
            csp_request_id=csp_request_id,
        ))
        if created is not None:
            logger.info("CSP account %s provisioned for request %s.", created.id, csp_request_id)
            return created

        # 동시에 들어온 다른 호출이 먼저 만들었으므로 그 계정을 사용합니다.
        winner = self.account_repo.find_by_request_id(csp_request_id)
        if winner is None:
            raise CSPAccountExistsError(f"CSP account for request '{csp_request_id}' could not be created.")
        logger.info("Concurrent provisioning for request %s; reusing account %s.", csp_request_id, winner.id)
        return winner

    def _associate_for_request(self, account: models.CSPAccount, project_id: int, creator_id: int) -> None:
        if self.account_repo.find_association(project_id, account.id):
            return

        failure = None
        if not self.project_repo.find_by_id(project_id):
            failure = f"project '{project_id}' not found"
        elif self.account_repo.create_association(models.ProjectCSPAccount(
            project_id=project_id, csp_account_id=account.id, created_by=creator_id,
        )) is None and not self.account_repo.find_association(project_id, account.id):
            failure = "association could not be stored"

        if failure:
            logger.error("CSP account %s created but association with project %s failed: %s", account.id, project_id, failure)
            raise AccountAssociationFailedError(
                "Failed to associate CSP account with project",
                csp_account_id=account.id,
                details=failure,
            )

    # --- 카탈로그 (시스템 관리자) ---

    def list_accounts(self, actor_id: int, provider: Optional[str] = None) -> List[Dict[str, Any]]:
        self.permissions.require_system_admin(actor_id)
        csp_provider = parse_provider(provider) if provider else None
        return [serialize_account(a) for a in self.account_repo.list_all(csp_provider)]

    def get_account(self, actor_id: int, account_id: int) -> Dict[str, Any]:
        self.permissions.require_system_admin(actor_id)
        return serialize_account(self._get_account_or_raise(account_id))

    def create_account(
        self,
        actor_id: int,
        provider: str,
        account_name: str,
        account_id: str,
        access_key: str,
        secret_key: str,
        region: Optional[str] = None,
        csp_request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        CSP 계정을 수동으로 등록합니다.

        Raises:
            SystemAdminRequiredError: 시스템 관리자가 아닐 때.
            InvalidProviderError: 제공자 값이 유효하지 않을 때.
            CSPAccountExistsError: csp_request_id로 이미 계정이 있을 때.
        """
        self.permissions.require_system_admin(actor_id)
        csp_provider = parse_provider(provider)
        if not account_name or not account_id or not access_key or not secret_key:
            raise ValueError("account_name, account_id, access_key and secret_key are required.")
        if csp_request_id and self.account_repo.find_by_request_id(csp_request_id):
            raise CSPAccountExistsError(f"CSP account for request '{csp_request_id}' already exists.")

        created = self.account_repo.create(models.CSPAccount(
            provider=csp_provider,
            account_name=account_name,
            account_id=account_id,
            access_key=access_key,
            secret_key=secret_key,
            region=region or DEFAULT_REGIONS[csp_provider],
            status="active",
            created_by=actor_id,
            csp_request_id=csp_request_id or None,
        ))
        if created is None:
            raise CSPAccountExistsError(f"CSP account for request '{csp_request_id}' already exists.")
        return serialize_account(created)

    def update_account(self, actor_id: int, account_id: int, **fields) -> Dict[str, Any]:
        self.permissions.require_system_admin(actor_id)
        account = self._get_account_or_raise(account_id)
        for key in UPDATABLE_FIELDS:
            if fields.get(key) is not None:
                setattr(account, key, fields[key])
        return serialize_account(self.account_repo.update(account))

    def delete_account(self, actor_id: int, account_id: int) -> bool:
        self.permissions.require_system_admin(actor_id)
        account = self._get_account_or_raise(account_id)
        logger.info("CSP account %s deleted by user %s.", account_id, actor_id)
        return self.account_repo.delete(account)

    # --- 프로젝트-CSP 계정 연결 ---

    def list_associations(self, actor_id: int, project_id: Optional[int] = None, csp_account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        self.permissions.require_system_admin(actor_id)
        return [serialize_association(a) for a in self.account_repo.list_associations(project_id, csp_account_id)]

    def create_association(self, actor_id: int, project_id: int, csp_account_id: int) -> Dict[str, Any]:
        """
        Raises:
            ProjectNotFoundError, CSPAccountNotFoundError: 대상이 없을 때.
            ProjectCSPAccountExistsError: 이미 연결되어 있을 때.
        """
        self.permissions.require_system_admin(actor_id)
        if not self.project_repo.find_by_id(project_id):
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        self._get_account_or_raise(csp_account_id)

        association = self.account_repo.create_association(models.ProjectCSPAccount(
            project_id=project_id, csp_account_id=csp_account_id, created_by=actor_id,
        ))
        if association is None:
            raise ProjectCSPAccountExistsError(
                f"CSP account '{csp_account_id}' is already associated with project '{project_id}'."
            )
        return serialize_association(association)

    def delete_association(self, actor_id: int, association_id: int) -> bool:
        self.permissions.require_system_admin(actor_id)
        association = self.account_repo.find_association_by_id(association_id)
        if not association:
            raise ProjectCSPAccountNotFoundError(f"Project CSP account association '{association_id}' not found.")
        return self.account_repo.delete_association(association)

    def list_project_accounts(self, actor_id: int, project_id: int) -> List[Dict[str, Any]]:
        """프로젝트 멤버는 프로젝트에 연결된 CSP 계정을 조회할 수 있습니다."""
        if not self.project_repo.find_by_id(project_id):
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        self.permissions.require_access(actor_id, project_id)
        return [serialize_account(a) for a in self.account_repo.list_by_project_id(project_id)]
