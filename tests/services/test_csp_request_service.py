# tests/services/test_csp_request_service.py
import logging

import pytest
from unittest.mock import MagicMock, ANY

from src.clients.resource_client import ResourceServiceClient
from src.services.csp_request_service import CSPRequestService
from src.services.exceptions import *
from src.repositories.interfaces import ICSPRequestRepository
from src.database import models
from src.database.models import CSPProvider, CSPRequestStatus

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_request_repo() -> MagicMock:
    """ICSPRequestRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=ICSPRequestRepository)

@pytest.fixture
def mock_resource_client() -> MagicMock:
    """리소스 서비스 호출을 대신하는 모의 클라이언트를 생성합니다."""
    return MagicMock(spec=ResourceServiceClient)

@pytest.fixture
def request_service(mock_request_repo, mock_resource_client) -> CSPRequestService:
    return CSPRequestService(mock_request_repo, mock_resource_client)

def make_request(status=CSPRequestStatus.PENDING, requester_id=3, project_id=5):
    return models.CSPRequest(
        id="req-1", project_id=project_id, requester_id=requester_id, provider=CSPProvider.AWS,
        account_name="acme", reason="need it", status=status,
    )

# ===================================================================
#  신청서 생성 테스트
# ===================================================================
class TestCreateRequest:
    def test_create_request_success(self, request_service, mock_request_repo, mock_resource_client):
        """관리 권한이 있고 vendor가 아닌 프로젝트라면 pending 신청서가 생성됩니다."""
        # === Arrange ===
        mock_resource_client.can_manage.return_value = True
        mock_resource_client.project_type.return_value = "centralGov"
        mock_request_repo.create.side_effect = lambda request: request

        # === Act ===
        result = request_service.create_request(3, 5, "aws", " acme ", "need it")

        # === Assert ===
        assert result["status"] == "pending"
        assert result["reviewed_by"] is None
        assert result["account_name"] == "acme"
        mock_resource_client.can_manage.assert_called_once_with(5, 3)

    def test_vendor_project_is_excluded(self, request_service, mock_request_repo, mock_resource_client):
        """vendor 유형 프로젝트에서는 신청할 수 없습니다."""
        mock_resource_client.can_manage.return_value = True
        mock_resource_client.project_type.return_value = "vendor"

        with pytest.raises(VendorProjectRestrictedError) as exc_info:
            request_service.create_request(3, 5, "aws", "acme", "need it")
        assert exc_info.value.reason == "vendor_project_restricted"
        mock_request_repo.create.assert_not_called()

    def test_requires_manage_permission(self, request_service, mock_request_repo, mock_resource_client):
        mock_resource_client.can_manage.return_value = False

        with pytest.raises(InsufficientPermissionError):
            request_service.create_request(3, 5, "aws", "acme", "need it")
        mock_request_repo.create.assert_not_called()

    def test_invalid_provider(self, request_service, mock_resource_client):
        with pytest.raises(InvalidProviderError):
            request_service.create_request(3, 5, "ibm", "acme", "need it")
        mock_resource_client.can_manage.assert_not_called()

    @pytest.mark.parametrize("account_name, reason", [("", "why"), ("acme", "   ")])
    def test_blank_fields(self, request_service, account_name, reason):
        with pytest.raises(ValueError):
            request_service.create_request(3, 5, "aws", account_name, reason)

    def test_upstream_failure_propagates(self, request_service, mock_resource_client):
        mock_resource_client.can_manage.side_effect = UpstreamFailureError("down")

        with pytest.raises(UpstreamFailureError):
            request_service.create_request(3, 5, "aws", "acme", "need it")

# ===================================================================
#  신청서 수정 / 삭제 테스트
# ===================================================================
class TestUpdateAndDelete:
    def test_requester_updates_pending_request(self, request_service, mock_request_repo, mock_resource_client):
        mock_request_repo.find_by_id.return_value = make_request()
        mock_request_repo.update_details.return_value = True

        request_service.update_request(3, "req-1", account_name="renamed")

        mock_request_repo.update_details.assert_called_once_with("req-1", "renamed", None)
        # 신청자 본인이므로 리소스 서비스에 묻지 않음
        mock_resource_client.can_manage.assert_not_called()

    def test_update_reviewed_request_is_rejected(self, request_service, mock_request_repo):
        """검토가 끝난 신청서는 수정할 수 없습니다."""
        mock_request_repo.find_by_id.return_value = make_request(status=CSPRequestStatus.APPROVED)

        with pytest.raises(AlreadyReviewedError):
            request_service.update_request(3, "req-1", reason="more")
        mock_request_repo.update_details.assert_not_called()

    def test_update_loses_race_with_review(self, request_service, mock_request_repo):
        mock_request_repo.find_by_id.return_value = make_request()
        mock_request_repo.update_details.return_value = False

        with pytest.raises(AlreadyReviewedError):
            request_service.update_request(3, "req-1", reason="more")

    def test_other_user_without_manage_cannot_update(self, request_service, mock_request_repo, mock_resource_client):
        mock_request_repo.find_by_id.return_value = make_request(requester_id=3)
        mock_resource_client.can_manage.return_value = False

        with pytest.raises(InsufficientPermissionError):
            request_service.update_request(8, "req-1", reason="more")

    def test_manager_can_delete_reviewed_request(self, request_service, mock_request_repo, mock_resource_client):
        """삭제는 상태와 관계없이 허용됩니다."""
        request = make_request(status=CSPRequestStatus.APPROVED, requester_id=3)
        mock_request_repo.find_by_id.return_value = request
        mock_resource_client.can_manage.return_value = True
        mock_request_repo.delete.return_value = True

        assert request_service.delete_request(8, "req-1") is True
        mock_request_repo.delete.assert_called_once_with(request)

    def test_delete_missing_request(self, request_service, mock_request_repo):
        mock_request_repo.find_by_id.return_value = None

        with pytest.raises(CSPRequestNotFoundError):
            request_service.delete_request(3, "nope")

# ===================================================================
#  검토(Review) 및 사가 테스트
# ===================================================================
class TestReview:
    def test_reject_requires_reason(self, request_service, mock_request_repo):
        """사유 없는 반려는 어떤 쓰기도 하지 않고 거부됩니다."""
        with pytest.raises(RejectReasonRequiredError):
            request_service.review_request(1, "req-1", "rejected", "  ")
        mock_request_repo.mark_reviewed.assert_not_called()

    def test_invalid_review_status(self, request_service, mock_request_repo):
        with pytest.raises(InvalidStatusError):
            request_service.review_request(1, "req-1", "pending")
        mock_request_repo.mark_reviewed.assert_not_called()

    def test_reject_success_does_not_provision(self, request_service, mock_request_repo, mock_resource_client):
        mock_request_repo.find_by_id.return_value = make_request()
        mock_request_repo.mark_reviewed.return_value = True

        request_service.review_request(1, "req-1", "rejected", "budget")

        mock_request_repo.mark_reviewed.assert_called_once_with("req-1", CSPRequestStatus.REJECTED, 1, ANY, "budget")
        mock_resource_client.auto_create_csp_account.assert_not_called()

    @pytest.mark.parametrize("status", [CSPRequestStatus.APPROVED, CSPRequestStatus.REJECTED])
    def test_terminal_request_cannot_be_reviewed(self, request_service, mock_request_repo, status):
        mock_request_repo.find_by_id.return_value = make_request(status=status)

        with pytest.raises(AlreadyReviewedError):
            request_service.review_request(1, "req-1", "approved")
        mock_request_repo.mark_reviewed.assert_not_called()

    def test_concurrent_review_loses(self, request_service, mock_request_repo, mock_resource_client):
        """조건부 UPDATE가 0행이면 다른 검토가 먼저 끝난 것입니다."""
        mock_request_repo.find_by_id.return_value = make_request()
        mock_request_repo.mark_reviewed.return_value = False

        with pytest.raises(AlreadyReviewedError):
            request_service.review_request(1, "req-1", "approved")
        mock_resource_client.auto_create_csp_account.assert_not_called()

    def test_approve_success_provisions_account(self, request_service, mock_request_repo, mock_resource_client):
        # === Arrange ===
        mock_request_repo.find_by_id.return_value = make_request()
        mock_request_repo.mark_reviewed.return_value = True
        mock_resource_client.auto_create_csp_account.return_value = {"csp_account": {"id": 1}}

        # === Act ===
        request_service.review_request(1, "req-1", "approved")

        # === Assert ===
        mock_resource_client.auto_create_csp_account.assert_called_once_with(
            csp_request_id="req-1", provider="aws", account_name="acme", project_id=5, creator_id=1,
        )
        mock_request_repo.revert_approval.assert_not_called()

    def test_approve_failure_compensates(self, request_service, mock_request_repo, mock_resource_client, caplog):
        """계정 생성이 실패하면 승인을 되돌리고 신청서 ID가 담긴 오류를 발생시킵니다."""
        # === Arrange ===
        mock_request_repo.find_by_id.return_value = make_request()
        mock_request_repo.mark_reviewed.return_value = True
        # 시나리오: 리소스 서비스가 HTTP 500을 응답
        mock_resource_client.auto_create_csp_account.side_effect = UpstreamFailureError(
            "CSP account creation failed with status 500: boom"
        )
        mock_request_repo.revert_approval.return_value = True

        # === Act ===
        with caplog.at_level(logging.WARNING, logger="src.services.csp_request_service"):
            with pytest.raises(ProvisioningFailedError) as exc_info:
                request_service.review_request(1, "req-1", "approved")

        # === Assert ===
        assert "req-1" in str(exc_info.value)
        assert exc_info.value.details["csp_request_id"] == "req-1"
        assert exc_info.value.reason == "provisioning_failed"
        mock_request_repo.revert_approval.assert_called_once_with("req-1")
        assert any(r.levelno == logging.WARNING and "req-1" in r.getMessage() for r in caplog.records)

    def test_unexpected_error_also_compensates(self, request_service, mock_request_repo, mock_resource_client):
        """UpstreamFailureError가 아닌 예외로 실패해도 승인이 남지 않아야 합니다."""
        # === Arrange ===
        mock_request_repo.find_by_id.return_value = make_request()
        mock_request_repo.mark_reviewed.return_value = True
        mock_resource_client.auto_create_csp_account.side_effect = RuntimeError("connection pool exhausted")
        mock_request_repo.revert_approval.return_value = True

        # === Act ===
        with pytest.raises(ProvisioningFailedError) as exc_info:
            request_service.review_request(1, "req-1", "approved")

        # === Assert ===
        assert exc_info.value.details["csp_request_id"] == "req-1"
        assert "connection pool exhausted" in exc_info.value.details["details"]
        mock_request_repo.revert_approval.assert_called_once_with("req-1")

# ===================================================================
#  조회 권한 테스트
# ===================================================================
class TestRead:
    def test_requester_reads_own_request(self, request_service, mock_request_repo, mock_resource_client):
        mock_request_repo.find_by_id.return_value = make_request(requester_id=3)

        assert request_service.get_request(3, "req-1")["id"] == "req-1"
        mock_resource_client.can_manage.assert_not_called()

    def test_outsider_cannot_read_request(self, request_service, mock_request_repo, mock_resource_client):
        """신청자도 프로젝트 관리자도 아니면 신청서를 볼 수 없습니다."""
        mock_request_repo.find_by_id.return_value = make_request(requester_id=3)
        mock_resource_client.can_manage.return_value = False

        with pytest.raises(InsufficientPermissionError):
            request_service.get_request(4242, "req-1")
        mock_resource_client.can_manage.assert_called_once_with(5, 4242)

    def test_reviewer_reads_any_request(self, request_service, mock_request_repo, mock_resource_client):
        mock_request_repo.find_by_id.return_value = make_request(requester_id=3)

        request_service.get_request(99, "req-1", reviewer=True)
        mock_resource_client.can_manage.assert_not_called()

    def test_list_by_project_requires_manage(self, request_service, mock_request_repo, mock_resource_client):
        mock_resource_client.can_manage.return_value = False

        with pytest.raises(InsufficientPermissionError):
            request_service.list_by_project(4242, 5)
        mock_request_repo.list_by_project_id.assert_not_called()

    def test_manager_lists_project_requests(self, request_service, mock_request_repo, mock_resource_client):
        mock_resource_client.can_manage.return_value = True
        mock_request_repo.list_by_project_id.return_value = [make_request()]

        assert [r["id"] for r in request_service.list_by_project(8, 5)] == ["req-1"]

    def test_list_by_requester_only_for_self(self, request_service, mock_request_repo):
        mock_request_repo.list_by_requester.return_value = []

        assert request_service.list_by_requester(3, 3) == []
        with pytest.raises(InsufficientPermissionError):
            request_service.list_by_requester(4, 3)
        assert request_service.list_by_requester(99, 3, reviewer=True) == []

    def test_list_by_invalid_status(self, request_service):
        with pytest.raises(InvalidStatusError):
            request_service.list_by_status("archived")
