# src/app.py
#
# 리소스 서비스: 사용자, 프로젝트, 멤버십, 벤더 관계, CSP 계정과 내부 API(/internal/*)
from wsgiref.simple_server import make_server
import hmac
import json
import logging

from src.config import settings, LOG_FORMAT
from src.database.database import SessionLocal
from src.http_utils import (
    get_request_data, get_query_params, parse_int, handle_exception, dispatch
)
from src.repositories.sqlalchemy import (
    SqlalchemyUserRepository, SqlalchemyProjectRepository,
    SqlalchemyVendorRelationRepository, SqlalchemyCSPAccountRepository
)
from src.services.csp_account_service import CSPAccountService
from src.services.csp_account_member_service import CSPAccountMemberService
from src.services.identity_service import IdentityService
from src.services.permission_service import PermissionService
from src.services.project_service import ProjectService
from src.services.vendor_service import VendorService
from src.services.exceptions import *

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def authorize_and_get_token_data(environ):
    auth_token = environ.get('HTTP_X_AUTH_TOKEN')
    if not auth_token:
        raise TokenInvalidError("Missing 'X-Auth-Token' header.")
    identity_service = environ['services']['identity']
    return identity_service.validate_token(auth_token)

def current_user_id(environ):
    return authorize_and_get_token_data(environ)['user_id']

def verify_internal_call(environ):
    """INTERNAL_API_TOKEN이 설정된 경우에만 X-Internal-Token 헤더를 검증합니다."""
    expected = settings.INTERNAL_API_TOKEN
    if not expected:
        return
    provided = environ.get('HTTP_X_INTERNAL_TOKEN', '')
    if not hmac.compare_digest(provided, expected):
        raise ForbiddenError("Invalid internal API token.")

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def create_app(session_factory=SessionLocal):
    def application(environ, start_response):
        db_session = session_factory()
        try:
            # 1. 의존성 생성 (Repositories -> Services)
            user_repo = SqlalchemyUserRepository(db_session)
            project_repo = SqlalchemyProjectRepository(db_session)
            vendor_repo = SqlalchemyVendorRelationRepository(db_session)
            account_repo = SqlalchemyCSPAccountRepository(db_session)

            permission_service = PermissionService(project_repo)

            # 2. 생성된 서비스 객체들을 environ을 통해 핸들러에 전달
            environ['services'] = {
                'identity': IdentityService(user_repo, project_repo),
                'permission': permission_service,
                'project': ProjectService(project_repo, user_repo, permission_service),
                'vendor': VendorService(vendor_repo, project_repo, permission_service),
                'csp_account': CSPAccountService(account_repo, project_repo, permission_service),
                'csp_account_member': CSPAccountMemberService(account_repo, project_repo, user_repo, permission_service),
            }

            # 3. 라우팅 및 핸들러 실행
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
## 핸들러 함수: 인증 / 사용자
# --------------------------------------------------------------------------

def auth_tokens_handler(environ, *args):
    data = get_request_data(environ)
    token = environ['services']['identity'].authenticate(data.get('username'), data.get('password'))
    return '201 Created', json.dumps(token)

def register_user_handler(environ, *args):
    data = get_request_data(environ)
    if not data.get('username') or not data.get('password'):
        raise ValueError("username and password are required.")
    user = environ['services']['identity'].register(data['username'], data['password'], data.get('email'))
    return '201 Created', json.dumps(user)

def list_users_handler(environ, *args):
    current_user_id(environ)
    users = environ['services']['identity'].list_users()
    return '200 OK', json.dumps({"users": users})

def get_user_handler(environ, user_id):
    current_user_id(environ)
    user = environ['services']['identity'].get_user(int(user_id))
    return '200 OK', json.dumps(user)

# --------------------------------------------------------------------------
## 핸들러 함수: 프로젝트 / 멤버십
# --------------------------------------------------------------------------

def create_project_handler(environ, *args):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    project = environ['services']['project'].create_project(
        actor_id,
        data.get('name'),
        description=data.get('description', ""),
        project_type=data.get('project_type', "independent"),
        status=data.get('status', "active"),
        organization_id=data.get('organization_id', 0),
    )
    return '201 Created', json.dumps(project)

def list_projects_handler(environ, *args):
    actor_id = current_user_id(environ)
    project_type = get_query_params(environ).get('type')
    if project_type:
        projects = environ['services']['project'].list_projects_by_type(project_type)
    else:
        projects = environ['services']['project'].list_my_projects(actor_id)
    return '200 OK', json.dumps({"projects": projects})

def list_my_projects_handler(environ, *args):
    actor_id = current_user_id(environ)
    projects = environ['services']['project'].list_my_projects(actor_id)
    return '200 OK', json.dumps({"projects": projects})

def get_project_handler(environ, project_id):
    actor_id = current_user_id(environ)
    project = environ['services']['project'].get_project(actor_id, int(project_id))
    return '200 OK', json.dumps(project)

def update_project_handler(environ, project_id):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    project = environ['services']['project'].update_project(
        actor_id, int(project_id),
        name=data.get('name'),
        description=data.get('description'),
        status=data.get('status'),
        project_type=data.get('project_type'),
    )
    return '200 OK', json.dumps(project)

def delete_project_handler(environ, project_id):
    actor_id = current_user_id(environ)
    environ['services']['project'].delete_project(actor_id, int(project_id))
    return '204 No Content', ''

def get_permissions_handler(environ, project_id):
    actor_id = current_user_id(environ)
    permission = environ['services']['permission'].evaluate(actor_id, int(project_id))
    return '200 OK', json.dumps(permission.to_dict())

def list_members_handler(environ, project_id):
    actor_id = current_user_id(environ)
    members = environ['services']['project'].list_members(actor_id, int(project_id))
    return '200 OK', json.dumps({"members": members})

def add_member_handler(environ, project_id):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    member = environ['services']['project'].add_member(
        actor_id, int(project_id), parse_int(data.get('user_id'), 'user_id'), data.get('role')
    )
    return '201 Created', json.dumps(member)

def update_member_handler(environ, project_id, user_id):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    member = environ['services']['project'].update_member_role(actor_id, int(project_id), int(user_id), data.get('role'))
    return '200 OK', json.dumps(member)

def remove_member_handler(environ, project_id, user_id):
    actor_id = current_user_id(environ)
    environ['services']['project'].remove_member(actor_id, int(project_id), int(user_id))
    return '204 No Content', ''

# --------------------------------------------------------------------------
## 핸들러 함수: 벤더 관계 / 프로젝트 CSP 계정
# --------------------------------------------------------------------------

def list_vendors_handler(environ, project_id):
    actor_id = current_user_id(environ)
    relations = environ['services']['vendor'].list_relations(actor_id, int(project_id))
    return '200 OK', json.dumps({"vendor_relations": relations})

def create_vendor_handler(environ, project_id):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    relation = environ['services']['vendor'].create_relation(
        actor_id, int(project_id), parse_int(data.get('vendor_project_id'), 'vendor_project_id')
    )
    return '201 Created', json.dumps(relation)

def delete_vendor_handler(environ, project_id, relation_id):
    actor_id = current_user_id(environ)
    environ['services']['vendor'].delete_relation(actor_id, int(project_id), int(relation_id))
    return '204 No Content', ''

def list_project_csp_accounts_handler(environ, project_id):
    actor_id = current_user_id(environ)
    accounts = environ['services']['csp_account'].list_project_accounts(actor_id, int(project_id))
    return '200 OK', json.dumps({"csp_accounts": accounts})

# --------------------------------------------------------------------------
## 핸들러 함수: CSP 계정 카탈로그 (시스템 관리자)
# --------------------------------------------------------------------------

def list_csp_accounts_handler(environ, *args):
    actor_id = current_user_id(environ)
    provider = get_query_params(environ).get('provider')
    accounts = environ['services']['csp_account'].list_accounts(actor_id, provider)
    return '200 OK', json.dumps({"csp_accounts": accounts})

def get_csp_account_handler(environ, account_id):
    actor_id = current_user_id(environ)
    account = environ['services']['csp_account'].get_account(actor_id, int(account_id))
    return '200 OK', json.dumps(account)

def create_csp_account_handler(environ, *args):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    account = environ['services']['csp_account'].create_account(
        actor_id,
        provider=data.get('provider'),
        account_name=data.get('account_name'),
        account_id=data.get('account_id'),
        access_key=data.get('access_key'),
        secret_key=data.get('secret_key'),
        region=data.get('region'),
        csp_request_id=data.get('csp_request_id'),
    )
    return '201 Created', json.dumps(account)

def update_csp_account_handler(environ, account_id):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    account = environ['services']['csp_account'].update_account(actor_id, int(account_id), **data)
    return '200 OK', json.dumps(account)

def delete_csp_account_handler(environ, account_id):
    actor_id = current_user_id(environ)
    environ['services']['csp_account'].delete_account(actor_id, int(account_id))
    return '204 No Content', ''

def list_associations_handler(environ, *args):
    actor_id = current_user_id(environ)
    query = get_query_params(environ)
    project_id = parse_int(query['project_id'], 'project_id') if 'project_id' in query else None
    csp_account_id = parse_int(query['csp_account_id'], 'csp_account_id') if 'csp_account_id' in query else None
    associations = environ['services']['csp_account'].list_associations(actor_id, project_id, csp_account_id)
    return '200 OK', json.dumps({"project_csp_accounts": associations})

def create_association_handler(environ, *args):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    association = environ['services']['csp_account'].create_association(
        actor_id,
        parse_int(data.get('project_id'), 'project_id'),
        parse_int(data.get('csp_account_id'), 'csp_account_id'),
    )
    return '201 Created', json.dumps(association)

def delete_association_handler(environ, association_id):
    actor_id = current_user_id(environ)
    environ['services']['csp_account'].delete_association(actor_id, int(association_id))
    return '204 No Content', ''

# --------------------------------------------------------------------------
## 핸들러 함수: CSP 계정 멤버 (SSO 사용자)
# --------------------------------------------------------------------------

def list_csp_account_members_handler(environ, *args):
    actor_id = current_user_id(environ)
    query = get_query_params(environ)
    filters = {
        key: parse_int(query[key], key)
        for key in ('csp_account_id', 'project_id', 'user_id') if key in query
    }
    members = environ['services']['csp_account_member'].list_members(actor_id, **filters)
    return '200 OK', json.dumps({"csp_account_members": members})

def get_csp_account_member_handler(environ, member_id):
    actor_id = current_user_id(environ)
    member = environ['services']['csp_account_member'].get_member(actor_id, int(member_id))
    return '200 OK', json.dumps(member)

def create_csp_account_member_handler(environ, *args):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    member = environ['services']['csp_account_member'].create_member(
        actor_id,
        parse_int(data.get('csp_account_id'), 'csp_account_id'),
        parse_int(data.get('project_id'), 'project_id'),
        parse_int(data.get('user_id'), 'user_id'),
        sso_enabled=data.get('sso_enabled'),
        sso_provider=data.get('sso_provider'),
        sso_email=data.get('sso_email'),
        role=data.get('role'),
    )
    return '201 Created', json.dumps(member)

def update_csp_account_member_handler(environ, member_id):
    actor_id = current_user_id(environ)
    data = get_request_data(environ)
    member = environ['services']['csp_account_member'].update_member(
        actor_id, int(member_id),
        sso_enabled=data.get('sso_enabled'),
        sso_provider=data.get('sso_provider'),
        sso_email=data.get('sso_email'),
        role=data.get('role'),
        status=data.get('status'),
    )
    return '200 OK', json.dumps(member)

def delete_csp_account_member_handler(environ, member_id):
    actor_id = current_user_id(environ)
    environ['services']['csp_account_member'].delete_member(actor_id, int(member_id))
    return '204 No Content', ''

# --------------------------------------------------------------------------
## 핸들러 함수: 내부 API (신청 접수 서비스 전용)
# --------------------------------------------------------------------------

def internal_can_manage_handler(environ, project_id):
    verify_internal_call(environ)
    project_id = parse_int(project_id, 'project ID')
    user_id = parse_int(get_query_params(environ).get('user_id'), 'user ID')
    result = environ['services']['project'].can_manage_project(project_id, user_id)
    status = '200 OK' if result['can_manage'] else '403 Forbidden'
    return status, json.dumps(result)

def internal_project_type_handler(environ, project_id):
    verify_internal_call(environ)
    result = environ['services']['project'].get_project_type(parse_int(project_id, 'project ID'))
    return '200 OK', json.dumps(result)

def internal_auto_create_handler(environ, *args):
    verify_internal_call(environ)
    data = get_request_data(environ)
    service = environ['services']['csp_account']
    creator_id = service.resolve_creator_id(environ.get('HTTP_X_CREATOR_ID'))
    result = service.auto_create_csp_account(
        csp_request_id=data.get('csp_request_id'),
        provider=data.get('provider'),
        account_name=data.get('account_name'),
        project_id=parse_int(data.get('project_id'), 'project_id'),
        creator_id=creator_id,
    )
    return '201 Created', json.dumps(result)


ROUTES = [
    ('POST', r'^/v1/auth/tokens$', auth_tokens_handler),
    ('POST', r'^/v1/users$', register_user_handler),
    ('GET', r'^/v1/users$', list_users_handler),
    ('GET', r'^/v1/users/([0-9]+)$', get_user_handler),
    ('POST', r'^/v1/projects$', create_project_handler),
    ('GET', r'^/v1/projects$', list_projects_handler),
    ('GET', r'^/v1/projects/me$', list_my_projects_handler),
    ('GET', r'^/v1/projects/([0-9]+)$', get_project_handler),
    ('PUT', r'^/v1/projects/([0-9]+)$', update_project_handler),
    ('DELETE', r'^/v1/projects/([0-9]+)$', delete_project_handler),
    ('GET', r'^/v1/projects/([0-9]+)/permissions$', get_permissions_handler),
    ('GET', r'^/v1/projects/([0-9]+)/members$', list_members_handler),
    ('POST', r'^/v1/projects/([0-9]+)/members$', add_member_handler),
    ('PUT', r'^/v1/projects/([0-9]+)/members/([0-9]+)$', update_member_handler),
    ('DELETE', r'^/v1/projects/([0-9]+)/members/([0-9]+)$', remove_member_handler),
    ('GET', r'^/v1/projects/([0-9]+)/vendors$', list_vendors_handler),
    ('POST', r'^/v1/projects/([0-9]+)/vendors$', create_vendor_handler),
    ('DELETE', r'^/v1/projects/([0-9]+)/vendors/([0-9]+)$', delete_vendor_handler),
    ('GET', r'^/v1/projects/([0-9]+)/csp-accounts$', list_project_csp_accounts_handler),
    ('GET', r'^/v1/admin/csp-accounts$', list_csp_accounts_handler),
    ('POST', r'^/v1/admin/csp-accounts$', create_csp_account_handler),
    ('GET', r'^/v1/admin/csp-accounts/([0-9]+)$', get_csp_account_handler),
    ('PUT', r'^/v1/admin/csp-accounts/([0-9]+)$', update_csp_account_handler),
    ('DELETE', r'^/v1/admin/csp-accounts/([0-9]+)$', delete_csp_account_handler),
    ('GET', r'^/v1/admin/project-csp-accounts$', list_associations_handler),
    ('POST', r'^/v1/admin/project-csp-accounts$', create_association_handler),
    ('DELETE', r'^/v1/admin/project-csp-accounts/([0-9]+)$', delete_association_handler),
    ('GET', r'^/v1/csp-account-members$', list_csp_account_members_handler),
    ('POST', r'^/v1/csp-account-members$', create_csp_account_member_handler),
    ('GET', r'^/v1/csp-account-members/([0-9]+)$', get_csp_account_member_handler),
    ('PUT', r'^/v1/csp-account-members/([0-9]+)$', update_csp_account_member_handler),
    ('DELETE', r'^/v1/csp-account-members/([0-9]+)$', delete_csp_account_member_handler),
    ('GET', r'^/internal/projects/([^/]+)/can-manage$', internal_can_manage_handler),
    ('GET', r'^/internal/projects/([^/]+)/type$', internal_project_type_handler),
    ('POST', r'^/internal/csp-accounts/auto-create$', internal_auto_create_handler),
]

application = create_app()

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)
    try:
        with make_server("", settings.RESOURCE_PORT, application) as httpd:
            logger.info("Serving resource service on port %s...", settings.RESOURCE_PORT)
            httpd.serve_forever()
    except Exception:
        logger.exception("Error starting server")
