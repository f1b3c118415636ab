import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from src.clients.resource_client import ResourceServiceClient
from src.database import models
from src.repositories.interfaces import ICSPRequestRepository
from src.services.exceptions import (
    CSPRequestNotFoundError, InvalidProviderError, InvalidStatusError,
    RejectReasonRequiredError, AlreadyReviewedError, InsufficientPermissionError,
    VendorProjectRestrictedError, UpstreamFailureError, ProvisioningFailedError
)

logger = logging.getLogger(__name__)

REVIEW_TARGETS = (models.CSPRequestStatus.APPROVED, models.CSPRequestStatus.REJECTED)


def serialize_request(request: models.CSPRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "project_id": request.project_id,
        "requester_id": request.requester_id,
        "provider": request.provider.value if request.provider else None,
        "account_name": request.account_name,
        "reason": request.reason,
        "status": request.status.value if request.status else None,
        "reviewed_by": request.reviewed_by,
        "reviewed_at": request.reviewed_at.isoformat() if request.reviewed_at else None,
        "reject_reason": request.reject_reason,
        "created_at": request.created_at.isoformat() if request.created_at else None,
        "updated_at": request.updated_at.isoformat() if request.updated_at else None,
    }


class CSPRequestService:
    """
    CSP 신청서의 상태 기계(pending -> approved | rejected)와 승인 후 계정 생성 사가를 담당합니다.

    프로젝트 권한과 유형은 이 서비스의 데이터베이스에 없으므로 ResourceServiceClient로 리소스 서비스에 묻습니다.
    승인 후 계정 생성이 실패하면 승인을 되돌리는 보상 처리를 수행합니다.
    """

    def __init__(self, request_repo: ICSPRequestRepository, resource_client: ResourceServiceClient):
        self.request_repo = request_repo
        self.resource_client = resource_client

    def _get_request_or_raise(self, request_id: str) -> models.CSPRequest:
        request = self.request_repo.find_by_id(request_id)
        if not request:
            raise CSPRequestNotFoundError(f"CSP request with id '{request_id}' not found.")
        return request

    def _require_requester_or_manager(self, actor_id: int, request: models.CSPRequest) -> None:
        if request.requester_id == actor_id:
            return
        if not self.resource_client.can_manage(request.project_id, actor_id):
            raise InsufficientPermissionError(
                f"User '{actor_id}' is neither the requester nor a manager of project '{request.project_id}'."
            )

    # --- 조회 ---
    # 검토자(reviewer=True)는 모든 신청서를 볼 수 있고, 그 외에는 신청자 본인 또는 프로젝트 관리자만 볼 수 있습니다.

    def get_request(self, actor_id: int, request_id: str, reviewer: bool = False) -> Dict[str, Any]:
        request = self._get_request_or_raise(request_id)
        if not reviewer:
            self._require_requester_or_manager(actor_id, request)
        return serialize_request(request)

    def list_by_project(self, actor_id: int, project_id: int, reviewer: bool = False) -> List[Dict[str, Any]]:
        """
        Raises:
            InsufficientPermissionError: 검토자도 프로젝트 관리자도 아닐 때.
            ProjectNotFoundError: 리소스 서비스에 프로젝트가 없을 때.
        """
        if not reviewer and not self.resource_client.can_manage(project_id, actor_id):
            raise InsufficientPermissionError(f"User '{actor_id}' cannot view CSP requests of project '{project_id}'.")
        return [serialize_request(r) for r in self.request_repo.list_by_project_id(project_id)]

    def list_by_status(self, status: str) -> List[Dict[str, Any]]:
        """검토 대기열 조회용입니다. 검토자 확인은 호출하는 쪽에서 합니다."""
        try:
            request_status = models.CSPRequestStatus(status)
        except ValueError:
            raise InvalidStatusError(f"Invalid status '{status}'.", allowed=[s.value for s in models.CSPRequestStatus])
        return [serialize_request(r) for r in self.request_repo.list_by_status(request_status)]

    def list_by_requester(self, actor_id: int, requester_id: int, reviewer: bool = False) -> List[Dict[str, Any]]:
        if not reviewer and actor_id != requester_id:
            raise InsufficientPermissionError(f"User '{actor_id}' cannot view CSP requests of user '{requester_id}'.")
        return [serialize_request(r) for r in self.request_repo.list_by_requester(requester_id)]

    # --- 상태 기계 ---

    def create_request(self, actor_id: int, project_id: int, provider: str, account_name: str, reason: str) -> Dict[str, Any]:
        """
        pending 상태의 CSP 신청서를 생성합니다.

        Raises:
            ValueError: 계정 이름 또는 사유가 비어 있을 때.
            InvalidProviderError: 제공자 값이 유효하지 않을 때.
            InsufficientPermissionError: 프로젝트를 관리할 수 없을 때.
            VendorProjectRestrictedError: vendor 유형 프로젝트일 때.
            ProjectNotFoundError, UpstreamFailureError: 리소스 서비스 조회 실패.
        """
        try:
            csp_provider = models.CSPProvider(provider)
        except ValueError:
            raise InvalidProviderError(f"Invalid provider '{provider}'.", allowed=[p.value for p in models.CSPProvider])
        if not account_name or not str(account_name).strip():
            raise ValueError("Account name is required.")
        if not reason or not str(reason).strip():
            raise ValueError("Reason is required.")

        if not self.resource_client.can_manage(project_id, actor_id):
            raise InsufficientPermissionError(f"User '{actor_id}' cannot manage project '{project_id}'.")
        if self.resource_client.project_type(project_id) == models.ProjectType.VENDOR.value:
            raise VendorProjectRestrictedError("CSP provisioning is not available for vendor projects.")

        created = self.request_repo.create(models.CSPRequest(
            project_id=project_id,
            requester_id=actor_id,
            provider=csp_provider,
            account_name=account_name.strip(),
            reason=reason.strip(),
            status=models.CSPRequestStatus.PENDING,
        ))
        logger.info("CSP request %s created for project %s by user %s.", created.id, project_id, actor_id)
        return serialize_request(created)

    def update_request(self, actor_id: int, request_id: str, account_name: Optional[str] = None, reason: Optional[str] = None) -> Dict[str, Any]:
        """
        pending 상태인 신청서의 계정 이름과 사유를 수정합니다. 신청자 또는 프로젝트 관리자만 가능합니다.

        Raises:
            AlreadyReviewedError: 이미 검토가 끝난 신청서일 때.
        """
        request = self._get_request_or_raise(request_id)
        self._require_requester_or_manager(actor_id, request)
        if request.status.is_terminal:
            raise AlreadyReviewedError(f"CSP request '{request_id}' has already been reviewed.", status=request.status.value)
        if account_name is not None and not str(account_name).strip():
            raise ValueError("Account name must not be empty.")
        if reason is not None and not str(reason).strip():
            raise ValueError("Reason must not be empty.")

        # 확인과 쓰기 사이에 검토가 끝났을 수 있으므로 쓰기 자체도 pending 조건을 가집니다.
        if not self.request_repo.update_details(request_id, account_name, reason):
            raise AlreadyReviewedError(f"CSP request '{request_id}' has already been reviewed.")
        return serialize_request(self._get_request_or_raise(request_id))

    def review_request(self, reviewer_id: int, request_id: str, status: str, reject_reason: Optional[str] = None) -> Dict[str, Any]:
        """
        신청서를 승인 또는 반려합니다.

        승인 시에는 리소스 서비스에 계정 생성을 요청하고, 실패하면 승인을 pending으로 되돌린 뒤
        ProvisioningFailedError를 발생시킵니다.

        Raises:
            InvalidStatusError: approved/rejected 이외의 상태일 때.
            RejectReasonRequiredError: 사유 없이 반려할 때.
            AlreadyReviewedError: pending 상태가 아닐 때.
            ProvisioningFailedError: 계정 생성에 실패해 승인이 취소되었을 때.
        """
        try:
            target = models.CSPRequestStatus(status)
        except ValueError:
            target = None
        if target not in REVIEW_TARGETS:
            raise InvalidStatusError(f"Review status must be one of {[s.value for s in REVIEW_TARGETS]}.")
        if target is models.CSPRequestStatus.REJECTED and not (reject_reason and reject_reason.strip()):
            raise RejectReasonRequiredError("Reject reason is required for rejection.")

        request = self._get_request_or_raise(request_id)
        if request.status.is_terminal:
            raise AlreadyReviewedError(f"CSP request '{request_id}' has already been reviewed.", status=request.status.value)

        recorded = self.request_repo.mark_reviewed(
            request_id,
            target,
            reviewer_id,
            datetime.now(),
            reject_reason.strip() if target is models.CSPRequestStatus.REJECTED else None,
        )
        if not recorded:
            raise AlreadyReviewedError(f"CSP request '{request_id}' has already been reviewed.")
        logger.info("CSP request %s %s by user %s.", request_id, target.value, reviewer_id)

        if target is models.CSPRequestStatus.APPROVED:
            self._provision_or_compensate(request, reviewer_id)
        return serialize_request(self._get_request_or_raise(request_id))

    def _provision_or_compensate(self, request: models.CSPRequest, reviewer_id: int) -> None:
        # 원격 호출이 어떤 이유로 실패하든 승인을 남겨 두지 않습니다.
        try:
            self.resource_client.auto_create_csp_account(
                csp_request_id=request.id,
                provider=request.provider.value,
                account_name=request.account_name,
                project_id=request.project_id,
                creator_id=reviewer_id,
            )
        except Exception as e:
            reverted = self.request_repo.revert_approval(request.id)
            logger.warning(
                "Compensating CSP request %s: account creation failed (%s: %s); approval reverted=%s.",
                request.id, type(e).__name__, e, reverted,
                exc_info=not isinstance(e, UpstreamFailureError),
            )
            raise ProvisioningFailedError(
                f"Failed to create CSP account for request '{request.id}'; approval has been reverted.",
                csp_request_id=request.id,
                details=str(e),
            ) from e

    def delete_request(self, actor_id: int, request_id: str) -> bool:
        """신청자 또는 프로젝트 관리자만 삭제할 수 있으며, 상태와 관계없이 삭제됩니다."""
        request = self._get_request_or_raise(request_id)
        self._require_requester_or_manager(actor_id, request)
        return self.request_repo.delete(request)
