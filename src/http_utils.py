# src/http_utils.py
#
# 두 WSGI 서비스가 함께 쓰는 요청/응답 유틸리티
import json
import logging
import re
from urllib.parse import parse_qs

from src.services.exceptions import *

logger = logging.getLogger(__name__)

# 예외 클래스의 MRO를 따라 올라가며 처음 만나는 항목의 상태 코드를 사용합니다.
ERROR_STATUS = {
    TokenInvalidError: "401 Unauthorized",
    AuthenticationError: "401 Unauthorized",
    NotFoundError: "404 Not Found",
    ValidationError: "400 Bad Request",
    ValueError: "400 Bad Request",
    ForbiddenError: "403 Forbidden",
    ConflictError: "409 Conflict",
    InvariantViolationError: "409 Conflict",
    UpstreamFailureError: "502 Bad Gateway",
    AccountAssociationFailedError: "500 Internal Server Error",
}


def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValueError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object.")
    return data


def get_query_params(environ):
    """쿼리 문자열을 {이름: 첫 번째 값} 형태로 반환합니다."""
    return {key: values[0] for key, values in parse_qs(environ.get("QUERY_STRING", "")).items()}


def parse_int(value, name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {name}.")


def handle_exception(e):
    status = None
    for cls in type(e).__mro__:
        if cls in ERROR_STATUS:
            status = ERROR_STATUS[cls]
            break

    if status is None:
        logger.exception("Unhandled error while processing request")
        return "500 Internal Server Error", json.dumps({"error": "Internal server error", "reason": "internal_error"})

    body = {"error": str(e), "reason": getattr(e, "reason", "validation_failed")}
    body.update(getattr(e, "details", {}))
    return status, json.dumps(body)


def dispatch(routes, environ):
    """
    (method, pattern, handler) 라우팅 테이블에서 요청에 맞는 핸들러를 찾아 실행합니다.

    Returns:
        (status, response_body) 튜플.
    """
    path = environ.get("PATH_INFO", "")
    method = environ.get("REQUEST_METHOD", "")

    for route_method, pattern, route_handler in routes:
        if method == route_method and (match := re.match(pattern, path)):
            return route_handler(environ, *match.groups())
    return '404 Not Found', json.dumps({'error': 'Not Found', 'reason': 'route_not_found'})
