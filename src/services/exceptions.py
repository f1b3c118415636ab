# src/services/exceptions.py
#
# 모든 서비스 예외는 아래 6개 분류 중 하나를 상속합니다.
# reason은 클라이언트가 기계적으로 확인할 수 있는 고정 문자열입니다.

class ServiceError(Exception):
    """서비스 계층 예외의 공통 부모"""
    reason = "error"

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.__doc__)
        self.details = details


# --- 분류(Taxonomy) ---
class NotFoundError(ServiceError):
    """대상 리소스를 찾을 수 없을 때"""
    reason = "not_found"

class ValidationError(ServiceError):
    """입력 값이 유효하지 않을 때"""
    reason = "validation_failed"

class ConflictError(ServiceError):
    """현재 상태와 충돌하는 요청일 때"""
    reason = "conflict"

class ForbiddenError(ServiceError):
    """권한이 부족할 때"""
    reason = "forbidden"

class InvariantViolationError(ServiceError):
    """도메인 불변식을 깨뜨리는 요청일 때"""
    reason = "invariant_violation"

class UpstreamFailureError(ServiceError):
    """다른 서비스 호출이 실패하거나 시간 초과되었을 때"""
    reason = "upstream_failure"


# --- Not Found ---
class ProjectNotFoundError(NotFoundError):
    """프로젝트를 찾을 수 없을 때"""
    reason = "project_not_found"

class UserNotFoundError(NotFoundError):
    """사용자를 찾을 수 없을 때"""
    reason = "user_not_found"

class MembershipNotFoundError(NotFoundError):
    """사용자가 해당 프로젝트의 멤버가 아닐 때 (멤버십 변경 대상 없음)"""
    reason = "membership_not_found"

class VendorRelationNotFoundError(NotFoundError):
    """벤더 관계를 찾을 수 없을 때"""
    reason = "vendor_relation_not_found"

class CSPRequestNotFoundError(NotFoundError):
    """CSP 신청서를 찾을 수 없을 때"""
    reason = "csp_request_not_found"

class CSPAccountNotFoundError(NotFoundError):
    """CSP 계정을 찾을 수 없을 때"""
    reason = "csp_account_not_found"

class ProjectCSPAccountNotFoundError(NotFoundError):
    """프로젝트-CSP 계정 연결을 찾을 수 없을 때"""
    reason = "project_csp_account_not_found"

class CSPAccountMemberNotFoundError(NotFoundError):
    """CSP 계정 멤버를 찾을 수 없을 때"""
    reason = "csp_account_member_not_found"


# --- Validation ---
class InvalidRoleError(ValidationError):
    """지원하지 않는 역할일 때"""
    reason = "invalid_role"

class InvalidProviderError(ValidationError):
    """지원하지 않는 CSP 제공자일 때"""
    reason = "invalid_provider"

class InvalidStatusError(ValidationError):
    """지원하지 않는 상태 값일 때"""
    reason = "invalid_status"

class InvalidProjectTypeError(ValidationError):
    """지원하지 않는 프로젝트 유형일 때"""
    reason = "invalid_project_type"

class RejectReasonRequiredError(ValidationError):
    """반려 사유 없이 반려하려고 할 때"""
    reason = "reject_reason_required"


# --- Conflict ---
class AlreadyMemberError(ConflictError):
    """이미 프로젝트 멤버일 때"""
    reason = "already_member"

class AlreadyReviewedError(ConflictError):
    """이미 검토(승인/반려)가 끝난 신청서일 때"""
    reason = "already_reviewed"

class CSPAccountExistsError(ConflictError):
    """해당 신청서로 이미 CSP 계정이 만들어졌을 때"""
    reason = "csp_account_exists"

class ProjectCSPAccountExistsError(ConflictError):
    """프로젝트-CSP 계정 연결이 이미 존재할 때"""
    reason = "project_csp_account_exists"

class CSPAccountMemberExistsError(ConflictError):
    """사용자가 이미 해당 프로젝트의 CSP 계정 멤버일 때"""
    reason = "csp_account_member_exists"

class CSPAccountNotAssociatedError(ConflictError):
    """CSP 계정이 해당 프로젝트에 연결되어 있지 않을 때"""
    reason = "csp_account_not_associated"

class UserCreationError(ConflictError):
    """사용자 이름이 이미 존재할 때"""
    reason = "username_taken"


# --- Forbidden ---
class InsufficientPermissionError(ForbiddenError):
    """필요한 권한(관리 등)이 없을 때"""
    reason = "insufficient_permission"

class NotProjectMemberError(ForbiddenError):
    """프로젝트 멤버가 아닐 때"""
    reason = "not_project_member"

class VendorProjectRestrictedError(ForbiddenError):
    """벤더 프로젝트에서 CSP 신청을 하려고 할 때"""
    reason = "vendor_project_restricted"

class SystemAdminRequiredError(ForbiddenError):
    """시스템 관리자 전용 작업일 때"""
    reason = "system_admin_required"


# --- Invariant ---
class CannotRemoveLastOwnerError(InvariantViolationError):
    """프로젝트의 마지막 owner를 제거하거나 강등하려고 할 때"""
    reason = "cannot_remove_last_owner"


# --- Upstream ---
class ProvisioningFailedError(UpstreamFailureError):
    """승인 후 CSP 계정 생성이 실패하여 승인이 취소되었을 때"""
    reason = "provisioning_failed"


# --- Auth Exceptions ---
class TokenInvalidError(ServiceError):
    """토큰이 유효하지 않거나 없을 때"""
    reason = "token_invalid"

class AuthenticationError(ServiceError):
    """사용자 자격 증명 실패 시"""
    reason = "authentication_failed"


# --- Partial Failure ---
class AccountAssociationFailedError(ServiceError):
    """CSP 계정은 만들어졌지만 프로젝트 연결에 실패했을 때 (계정은 롤백하지 않음)"""
    reason = "association_failed"
