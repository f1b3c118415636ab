# src/intake_app.py
#
# 신청 접수 서비스: CSP 신청서의 상태 기계와 승인 후 계정 생성 사가
from wsgiref.simple_server import make_server
import json
import logging

from src.clients.resource_client import ResourceServiceClient
from src.config import settings, LOG_FORMAT
from src.database.database import IntakeSessionLocal
from src.http_utils import (
    get_request_data, get_query_params, parse_int, handle_exception, dispatch
)
from src.repositories.sqlalchemy import SqlalchemyCSPRequestRepository
from src.services.csp_request_service import CSPRequestService
from src.services.exceptions import *

logger = logging.getLogger(__name__)

REVIEWER_ROLE = "admin"

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_caller_id(environ):
    """상위 게이트웨이가 검증한 사용자 ID를 X-User-ID 헤더에서 읽습니다."""
    user_id = environ.get('HTTP_X_USER_ID')
    if not user_id:
        raise TokenInvalidError("Missing 'X-User-ID' header.")
    try:
        return int(user_id)
    except ValueError:
        raise TokenInvalidError("Invalid 'X-User-ID' header.")

def is_reviewer(environ):
    return environ.get('HTTP_X_USER_ROLE', '') == REVIEWER_ROLE

def require_reviewer(environ):
    if not is_reviewer(environ):
        raise InsufficientPermissionError("Only administrators can review CSP requests.")

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def create_app(session_factory=IntakeSessionLocal, resource_client=None):
    # httpx 연결 풀은 요청 간에 재사용합니다.
    client = resource_client or ResourceServiceClient()

    def application(environ, start_response):
        db_session = session_factory()
        try:
            request_repo = SqlalchemyCSPRequestRepository(db_session)
            environ['services'] = {
                'csp_request': CSPRequestService(request_repo, client),
            }
            status, response_body = dispatch(ROUTES, environ)

        except Exception as e:
            db_session.rollback()
            status, response_body = handle_exception(e)
        finally:
            db_session.close()

        start_response(status, [("Content-Type", "application/json")])
        return [response_body.encode("utf-8")]

    return application

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

def list_requests_handler(environ, *args):
    actor_id = get_caller_id(environ)
    reviewer = is_reviewer(environ)
    query = get_query_params(environ)
    service = environ['services']['csp_request']
    if 'project_id' in query:
        requests = service.list_by_project(actor_id, parse_int(query['project_id'], 'project_id'), reviewer)
    elif 'status' in query:
        # 상태별 목록은 검토 대기열이므로 검토자만 조회할 수 있습니다.
        require_reviewer(environ)
        requests = service.list_by_status(query['status'])
    elif 'requester_id' in query:
        requests = service.list_by_requester(actor_id, parse_int(query['requester_id'], 'requester_id'), reviewer)
    else:
        raise ValueError("One of project_id, status or requester_id is required.")
    return '200 OK', json.dumps({"csp_requests": requests})

def get_request_handler(environ, request_id):
    actor_id = get_caller_id(environ)
    request = environ['services']['csp_request'].get_request(actor_id, request_id, is_reviewer(environ))
    return '200 OK', json.dumps(request)

def create_request_handler(environ, *args):
    actor_id = get_caller_id(environ)
    data = get_request_data(environ)
    request = environ['services']['csp_request'].create_request(
        actor_id,
        parse_int(data.get('project_id'), 'project_id'),
        data.get('provider'),
        data.get('account_name'),
        data.get('reason'),
    )
    return '201 Created', json.dumps(request)

def update_request_handler(environ, request_id):
    actor_id = get_caller_id(environ)
    data = get_request_data(environ)
    request = environ['services']['csp_request'].update_request(
        actor_id, request_id, account_name=data.get('account_name'), reason=data.get('reason')
    )
    return '200 OK', json.dumps(request)

def review_request_handler(environ, request_id):
    reviewer_id = get_caller_id(environ)
    require_reviewer(environ)
    data = get_request_data(environ)
    request = environ['services']['csp_request'].review_request(
        reviewer_id, request_id, data.get('status'), data.get('reject_reason')
    )
    return '200 OK', json.dumps(request)

def delete_request_handler(environ, request_id):
    actor_id = get_caller_id(environ)
    environ['services']['csp_request'].delete_request(actor_id, request_id)
    return '204 No Content', ''


ROUTES = [
    ('GET', r'^/v1/csp-requests$', list_requests_handler),
    ('POST', r'^/v1/csp-requests$', create_request_handler),
    ('GET', r'^/v1/csp-requests/([a-zA-Z0-9-]+)$', get_request_handler),
    ('PUT', r'^/v1/csp-requests/([a-zA-Z0-9-]+)$', update_request_handler),
    ('DELETE', r'^/v1/csp-requests/([a-zA-Z0-9-]+)$', delete_request_handler),
    ('PUT', r'^/v1/csp-requests/([a-zA-Z0-9-]+)/review$', review_request_handler),
]

application = create_app()

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)
    try:
        with make_server("", settings.INTAKE_PORT, application) as httpd:
            logger.info("Serving CSP request intake service on port %s...", settings.INTAKE_PORT)
            httpd.serve_forever()
    except Exception:
        logger.exception("Error starting server")
