import json
import logging
from typing import Any, Dict, Optional

import httpx

from src.config import settings
from src.services.exceptions import ProjectNotFoundError, UpstreamFailureError

logger = logging.getLogger(__name__)


class ResourceServiceClient:
    """
    신청 접수 서비스가 리소스 서비스의 내부 API(/internal/*)를 호출하는 동기 클라이언트입니다.

    전송 오류, 시간 초과, 예상하지 못한 상태 코드는 모두 UpstreamFailureError로 변환됩니다.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        internal_token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.RESOURCE_SERVICE_URL).rstrip("/")
        token = settings.INTERNAL_API_TOKEN if internal_token is None else internal_token
        headers = {"X-Internal-Token": token} if token else None
        self.client = httpx.Client(
            timeout=timeout or settings.RESOURCE_SERVICE_TIMEOUT,
            headers=headers,
            transport=transport,
        )

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self.client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Resource service call timed out: %s %s", method, path)
            raise UpstreamFailureError(f"Resource service timed out: {path}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamFailureError(f"Failed to reach resource service: {exc}") from exc

    def can_manage(self, project_id: int, user_id: int) -> bool:
        """
        사용자가 프로젝트를 관리(manage)할 수 있는지 리소스 서비스에 묻습니다.

        Raises:
            ProjectNotFoundError: 리소스 서비스가 404를 응답했을 때.
            UpstreamFailureError: 그 밖의 실패.
        """
        response = self._send("GET", f"/internal/projects/{project_id}/can-manage", params={"user_id": user_id})
        if response.status_code == 200:
            return True
        if response.status_code == 403:
            return False
        if response.status_code == 404:
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        raise UpstreamFailureError(
            f"Unexpected status {response.status_code} from can-manage check.",
            details=_safe_extract_error(response),
        )

    def project_type(self, project_id: int) -> str:
        response = self._send("GET", f"/internal/projects/{project_id}/type")
        if response.status_code == 404:
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        if response.status_code != 200:
            raise UpstreamFailureError(
                f"Failed to get project type: status {response.status_code}",
                details=_safe_extract_error(response),
            )
        return _json_body(response, "project type").get("project_type")

    def auto_create_csp_account(
        self,
        csp_request_id: str,
        provider: str,
        account_name: str,
        project_id: int,
        creator_id: int,
    ) -> Dict[str, Any]:
        """
        승인된 신청서에 대한 CSP 계정 생성을 요청합니다. 승인자 ID는 X-Creator-ID 헤더로 전달됩니다.

        Returns:
            리소스 서비스의 201 응답 본문.

        Raises:
            UpstreamFailureError: 201이 아닌 응답, JSON 객체가 아닌 본문 또는 전송 실패.
        """
        payload = {
            "csp_request_id": csp_request_id,
            "provider": provider,
            "account_name": account_name,
            "project_id": project_id,
        }
        response = self._send(
            "POST",
            "/internal/csp-accounts/auto-create",
            json=payload,
            headers={"X-Creator-ID": str(creator_id)},
        )
        if response.status_code != 201:
            detail = _safe_extract_error(response)
            raise UpstreamFailureError(
                f"CSP account creation failed with status {response.status_code}: {detail}",
                details=detail,
            )
        return _json_body(response, "CSP account creation")

    def close(self) -> None:
        self.client.close()


def _json_body(response: httpx.Response, operation: str) -> Dict[str, Any]:
    """성공 응답의 JSON 객체 본문을 반환합니다. 본문이 JSON 객체가 아니면 UpstreamFailureError입니다."""
    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamFailureError(
            f"Invalid response body for {operation} (status {response.status_code}).",
            details=response.text[:200],
        ) from exc
    if not isinstance(data, dict):
        raise UpstreamFailureError(f"Unexpected response body for {operation}.", details=response.text[:200])
    return data


def _safe_extract_error(response: httpx.Response) -> str:
    try:
        data = response.json()
        if isinstance(data, dict):
            return data.get("error") or json.dumps(data)
    except ValueError:
        pass
    return response.text
