# tests/services/test_csp_account_service.py
import re

import pytest
from unittest.mock import MagicMock, patch

from src.services.csp_account_service import (
    CSPAccountService, generate_account_id, generate_access_key, DEFAULT_REGIONS
)
from src.services.permission_service import PermissionService
from src.services.exceptions import *
from src.repositories.interfaces import ICSPAccountRepository, IProjectRepository
from src.database import models
from src.database.models import CSPProvider, Role

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_account_repo() -> MagicMock:
    """ICSPAccountRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=ICSPAccountRepository)

@pytest.fixture
def mock_project_repo() -> MagicMock:
    return MagicMock(spec=IProjectRepository)

@pytest.fixture
def account_service(mock_account_repo, mock_project_repo) -> CSPAccountService:
    return CSPAccountService(mock_account_repo, mock_project_repo, PermissionService(mock_project_repo, "system"))

def make_account(account_id=1, csp_request_id="req-1"):
    return models.CSPAccount(
        id=account_id, provider=CSPProvider.AWS, account_name="acme", account_id="123456789012",
        access_key="AKIAXXXX", secret_key="top-secret", region="ap-northeast-1",
        status="active", created_by=2, csp_request_id=csp_request_id,
    )

# ===================================================================
#  모의 프로비저닝 값 테스트
# ===================================================================
class TestSimulatedCredentials:
    def test_aws_shapes(self):
        assert re.fullmatch(r"[0-9]{12}", generate_account_id(CSPProvider.AWS, "acme"))
        assert generate_access_key(CSPProvider.AWS).startswith("AKIA")

    def test_gcp_and_azure_shapes(self):
        assert generate_account_id(CSPProvider.GCP, "My App").startswith("project-my-app-")
        assert generate_access_key(CSPProvider.AZURE).startswith("azure-access-")

    def test_default_regions(self):
        assert DEFAULT_REGIONS == {
            CSPProvider.AWS: "ap-northeast-1",
            CSPProvider.GCP: "asia-northeast1",
            CSPProvider.AZURE: "japaneast",
        }

# ===================================================================
#  X-Creator-ID 해석 테스트
# ===================================================================
class TestResolveCreatorId:
    def test_numeric_header(self):
        assert CSPAccountService.resolve_creator_id("42") == 42

    @patch("src.services.csp_account_service.settings")
    def test_non_numeric_header_falls_back_to_default(self, mock_settings):
        mock_settings.DEFAULT_CREATOR_ID = 1
        assert CSPAccountService.resolve_creator_id("admin@example.com") == 1

    def test_missing_header(self):
        with pytest.raises(ValueError):
            CSPAccountService.resolve_creator_id(None)

# ===================================================================
#  auto_create_csp_account (내부 API) 테스트
# ===================================================================
class TestAutoCreate:
    def test_creates_account_and_association(self, account_service, mock_account_repo, mock_project_repo):
        """새 신청서라면 계정을 만들고 프로젝트에 연결합니다."""
        # === Arrange ===
        mock_account_repo.find_by_request_id.return_value = None
        mock_account_repo.create.side_effect = lambda account: (setattr(account, "id", 11), account)[1]
        mock_account_repo.find_association.return_value = None
        mock_project_repo.find_by_id.return_value = models.Project(id=5, name="p")
        mock_account_repo.create_association.side_effect = lambda assoc: assoc

        # === Act ===
        result = account_service.auto_create_csp_account("req-1", "gcp", "acme", 5, 2)

        # === Assert ===
        assert result["csp_request_id"] == "req-1"
        account = result["csp_account"]
        assert account["id"] == 11
        assert account["provider"] == "gcp"
        assert account["region"] == "asia-northeast1"
        assert account["created_by"] == 2
        assert "secret_key" not in account
        association = mock_account_repo.create_association.call_args.args[0]
        assert (association.project_id, association.csp_account_id, association.created_by) == (5, 11, 2)

    def test_existing_account_is_reused(self, account_service, mock_account_repo, mock_project_repo):
        """같은 신청서로 다시 호출되면 새 계정을 만들지 않습니다."""
        # === Arrange ===
        existing = make_account(account_id=3)
        mock_account_repo.find_by_request_id.return_value = existing
        mock_account_repo.find_association.return_value = models.ProjectCSPAccount(id=1, project_id=5, csp_account_id=3)

        # === Act ===
        result = account_service.auto_create_csp_account("req-1", "aws", "acme", 5, 2)

        # === Assert ===
        assert result["csp_account"]["id"] == 3
        mock_account_repo.create.assert_not_called()
        mock_account_repo.create_association.assert_not_called()

    def test_concurrent_insert_returns_winner(self, account_service, mock_account_repo, mock_project_repo):
        """유일성 제약에 걸리면 먼저 만들어진 계정을 다시 읽어 사용합니다."""
        # === Arrange ===
        winner = make_account(account_id=4)
        mock_account_repo.find_by_request_id.side_effect = [None, winner]
        mock_account_repo.create.return_value = None
        mock_account_repo.find_association.return_value = models.ProjectCSPAccount(id=2, project_id=5, csp_account_id=4)

        # === Act ===
        result = account_service.auto_create_csp_account("req-1", "aws", "acme", 5, 2)

        # === Assert ===
        assert result["csp_account"]["id"] == 4

    def test_association_failure_keeps_account(self, account_service, mock_account_repo, mock_project_repo):
        """연결에 실패해도 계정은 롤백하지 않고 계정 ID를 담아 오류를 알립니다."""
        # === Arrange ===
        mock_account_repo.find_by_request_id.return_value = None
        mock_account_repo.create.side_effect = lambda account: (setattr(account, "id", 12), account)[1]
        mock_account_repo.find_association.return_value = None
        # 시나리오: 연결할 프로젝트가 존재하지 않음
        mock_project_repo.find_by_id.return_value = None

        # === Act & Assert ===
        with pytest.raises(AccountAssociationFailedError) as exc_info:
            account_service.auto_create_csp_account("req-2", "azure", "acme", 404, 2)
        assert exc_info.value.details["csp_account_id"] == 12
        mock_account_repo.delete.assert_not_called()

    def test_invalid_provider(self, account_service, mock_account_repo):
        with pytest.raises(InvalidProviderError):
            account_service.auto_create_csp_account("req-3", "oracle", "acme", 5, 2)
        mock_account_repo.create.assert_not_called()

# ===================================================================
#  카탈로그 / 연결 (시스템 관리자) 테스트
# ===================================================================
class TestCatalog:
    @pytest.fixture
    def as_system_admin(self, mock_project_repo):
        mock_project_repo.find_by_name.return_value = models.Project(id=1, name="system")
        mock_project_repo.role_of.return_value = Role.OWNER

    def test_non_admin_cannot_list_accounts(self, account_service, mock_project_repo, mock_account_repo):
        mock_project_repo.find_by_name.return_value = models.Project(id=1, name="system")
        mock_project_repo.role_of.return_value = Role.VIEWER

        with pytest.raises(SystemAdminRequiredError):
            account_service.list_accounts(3)
        mock_account_repo.list_all.assert_not_called()

    def test_list_accounts_filtered_by_provider(self, account_service, mock_account_repo, as_system_admin):
        mock_account_repo.list_all.return_value = [make_account()]

        accounts = account_service.list_accounts(1, "aws")

        assert len(accounts) == 1
        assert "secret_key" not in accounts[0]
        mock_account_repo.list_all.assert_called_once_with(CSPProvider.AWS)

    def test_create_account_duplicate_request(self, account_service, mock_account_repo, as_system_admin):
        mock_account_repo.find_by_request_id.return_value = make_account()

        with pytest.raises(CSPAccountExistsError):
            account_service.create_account(1, "aws", "acme", "123", "ak", "sk", csp_request_id="req-1")
        mock_account_repo.create.assert_not_called()

    def test_update_account_only_touches_known_fields(self, account_service, mock_account_repo, as_system_admin):
        # === Arrange ===
        account = make_account()
        mock_account_repo.find_by_id.return_value = account
        mock_account_repo.update.side_effect = lambda a: a

        # === Act ===
        result = account_service.update_account(1, 1, region="us-east-1", created_by=999)

        # === Assert ===
        assert result["region"] == "us-east-1"
        assert account.created_by == 2

    def test_create_association_duplicate(self, account_service, mock_account_repo, mock_project_repo, as_system_admin):
        mock_project_repo.find_by_id.return_value = models.Project(id=5, name="p")
        mock_account_repo.find_by_id.return_value = make_account()
        mock_account_repo.create_association.return_value = None

        with pytest.raises(ProjectCSPAccountExistsError):
            account_service.create_association(1, 5, 1)

    def test_create_association_missing_account(self, account_service, mock_account_repo, mock_project_repo, as_system_admin):
        mock_project_repo.find_by_id.return_value = models.Project(id=5, name="p")
        mock_account_repo.find_by_id.return_value = None

        with pytest.raises(CSPAccountNotFoundError):
            account_service.create_association(1, 5, 99)

    def test_delete_missing_association(self, account_service, mock_account_repo, as_system_admin):
        mock_account_repo.find_association_by_id.return_value = None

        with pytest.raises(ProjectCSPAccountNotFoundError):
            account_service.delete_association(1, 99)

    def test_member_lists_project_accounts(self, account_service, mock_account_repo, mock_project_repo):
        """프로젝트 멤버는 시스템 관리자가 아니어도 연결된 계정을 조회할 수 있습니다."""
        mock_project_repo.find_by_id.return_value = models.Project(id=5, name="p")
        mock_project_repo.role_of.return_value = Role.VIEWER
        mock_account_repo.list_by_project_id.return_value = [make_account()]

        accounts = account_service.list_project_accounts(3, 5)

        assert accounts[0]["account_name"] == "acme"
        mock_account_repo.list_by_project_id.assert_called_once_with(5)
