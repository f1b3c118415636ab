# tests/test_app.py
import hashlib

import pytest

from src.app import create_app
from src.config import settings
from src.database import models


@pytest.fixture
def app(session_factory):
    """시스템 프로젝트와 그 owner인 admin 계정이 준비된 리소스 서비스"""
    session = session_factory()
    system_project = models.Project(name=settings.SYSTEM_PROJECT_NAME, project_type=models.ProjectType.ADMIN)
    admin = models.User(username="admin", password_hash=hashlib.sha256(b"admin").hexdigest())
    session.add_all([system_project, admin])
    session.flush()
    session.add(models.UserProjectRole(user_id=admin.id, project_id=system_project.id, role=models.Role.OWNER))
    session.commit()
    session.close()
    return create_app(session_factory)


@pytest.fixture
def login(app, wsgi_call):
    def _login(username, password):
        status, body = wsgi_call(app, "POST", "/v1/auth/tokens", {"username": username, "password": password})
        assert status == 201
        return {"X-Auth-Token": body["token"]}
    return _login


@pytest.fixture
def alice(app, wsgi_call, login):
    """가입 후 프로젝트 P(centralGov)를 만든 사용자"""
    status, user = wsgi_call(app, "POST", "/v1/users", {"username": "alice", "password": "pw"})
    assert status == 201
    headers = login("alice", "pw")
    status, project = wsgi_call(app, "POST", "/v1/projects", {"name": "P", "project_type": "centralGov"}, headers)
    assert status == 201
    return {"id": user["id"], "headers": headers, "project_id": project["id"]}


class TestAuthAndProjects:
    def test_missing_token(self, app, wsgi_call):
        status, body = wsgi_call(app, "GET", "/v1/projects")
        assert status == 401
        assert body["reason"] == "token_invalid"

    def test_unknown_route(self, app, wsgi_call):
        assert wsgi_call(app, "GET", "/v1/nothing")[0] == 404

    def test_registration_joins_system_project_as_viewer(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "GET", "/v1/projects/me", headers=alice["headers"])

        assert status == 200
        roles = {p["name"]: p["role"] for p in body["projects"]}
        assert roles == {"system": "viewer", "P": "owner"}

    def test_duplicate_username(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "POST", "/v1/users", {"username": "alice", "password": "x"})
        assert status == 409
        assert body["reason"] == "username_taken"

    def test_permissions_endpoint(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "GET", f"/v1/projects/{alice['project_id']}/permissions", headers=alice["headers"])

        assert status == 200
        assert body == {"has_access": True, "role": "owner", "can_view": True, "can_edit": True, "can_manage": True}

    def test_last_owner_cannot_leave(self, app, wsgi_call, alice):
        """마지막 owner 제거는 409와 고정된 reason으로 거부됩니다."""
        path = f"/v1/projects/{alice['project_id']}/members/{alice['id']}"

        status, body = wsgi_call(app, "DELETE", path, headers=alice["headers"])

        assert status == 409
        assert body["reason"] == "cannot_remove_last_owner"

    def test_invalid_role(self, app, wsgi_call, alice):
        path = f"/v1/projects/{alice['project_id']}/members"
        status, body = wsgi_call(app, "POST", path, {"user_id": 1, "role": "emperor"}, alice["headers"])

        assert status == 400
        assert body["reason"] == "invalid_role"

    def test_non_member_cannot_read_project(self, app, wsgi_call, alice, login):
        status, body = wsgi_call(app, "GET", f"/v1/projects/{alice['project_id']}", headers=login("admin", "admin"))

        assert status == 403
        assert body["reason"] == "not_project_member"

    def test_deleted_project_is_unusable(self, app, wsgi_call, alice):
        """논리 삭제된 프로젝트에는 권한도 벤더 관계 변경도 남지 않습니다."""
        # === Arrange ===
        headers = alice["headers"]
        project_id = alice["project_id"]
        _, vendor = wsgi_call(app, "POST", "/v1/projects", {"name": "V", "project_type": "vendor"}, headers)
        assert wsgi_call(app, "DELETE", f"/v1/projects/{project_id}", headers=headers)[0] == 204

        # === Act ===
        create_status, create_body = wsgi_call(app, "POST", f"/v1/projects/{project_id}/vendors",
                                               {"vendor_project_id": vendor["id"]}, headers)
        list_status, _ = wsgi_call(app, "GET", f"/v1/projects/{project_id}/vendors", headers=headers)
        _, permissions = wsgi_call(app, "GET", f"/v1/projects/{project_id}/permissions", headers=headers)

        # === Assert ===
        assert create_status == 404
        assert create_body["reason"] == "project_not_found"
        assert list_status == 404
        assert permissions["has_access"] is False
        assert permissions["role"] is None
        assert wsgi_call(app, "GET", f"/internal/projects/{project_id}/can-manage",
                         query=f"user_id={alice['id']}")[0] == 404


class TestInternalEndpoints:
    def test_can_manage_true(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "GET", f"/internal/projects/{alice['project_id']}/can-manage",
                                 query=f"user_id={alice['id']}")

        assert status == 200
        assert body == {"can_manage": True, "project_id": alice["project_id"], "project_name": "P", "project_type": "centralGov"}

    def test_can_manage_false_is_403_with_body(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "GET", f"/internal/projects/{alice['project_id']}/can-manage", query="user_id=1")

        assert status == 403
        assert body["can_manage"] is False
        assert body["project_name"] == "P"

    def test_can_manage_unknown_project(self, app, wsgi_call):
        assert wsgi_call(app, "GET", "/internal/projects/999/can-manage", query="user_id=1")[0] == 404

    def test_can_manage_bad_id(self, app, wsgi_call):
        assert wsgi_call(app, "GET", "/internal/projects/abc/can-manage", query="user_id=1")[0] == 400

    def test_project_type(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "GET", f"/internal/projects/{alice['project_id']}/type")

        assert status == 200
        assert body["project_type"] == "centralGov"

    def test_internal_token_enforced_when_configured(self, app, wsgi_call, alice, monkeypatch):
        monkeypatch.setattr(settings, "INTERNAL_API_TOKEN", "s3cret")
        path = f"/internal/projects/{alice['project_id']}/type"

        assert wsgi_call(app, "GET", path)[0] == 403
        assert wsgi_call(app, "GET", path, headers={"X-Internal-Token": "s3cret"})[0] == 200


class TestAutoCreate:
    def payload(self, project_id, request_id="req-1"):
        return {"csp_request_id": request_id, "provider": "aws", "account_name": "acme", "project_id": project_id}

    def test_missing_creator_header(self, app, wsgi_call, alice):
        status, _ = wsgi_call(app, "POST", "/internal/csp-accounts/auto-create", self.payload(alice["project_id"]))
        assert status == 400

    def test_create_is_idempotent(self, app, wsgi_call, alice):
        """같은 신청서로 두 번 호출해도 계정은 하나이고 같은 계정이 반환됩니다."""
        # === Act ===
        first = wsgi_call(app, "POST", "/internal/csp-accounts/auto-create",
                          self.payload(alice["project_id"]), {"X-Creator-ID": "1"})
        second = wsgi_call(app, "POST", "/internal/csp-accounts/auto-create",
                           self.payload(alice["project_id"]), {"X-Creator-ID": "1"})

        # === Assert ===
        assert first[0] == 201 and second[0] == 201
        account = first[1]["csp_account"]
        assert second[1]["csp_account"]["id"] == account["id"]
        assert account["region"] == "ap-northeast-1"
        assert account["access_key"].startswith("AKIA")
        assert "secret_key" not in account

        status, body = wsgi_call(app, "GET", f"/v1/projects/{alice['project_id']}/csp-accounts", headers=alice["headers"])
        assert status == 200
        assert [a["id"] for a in body["csp_accounts"]] == [account["id"]]

    def test_non_numeric_creator_falls_back(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "POST", "/internal/csp-accounts/auto-create",
                                 self.payload(alice["project_id"]), {"X-Creator-ID": "admin@example.com"})

        assert status == 201
        assert body["csp_account"]["created_by"] == settings.DEFAULT_CREATOR_ID

    def test_association_failure_reports_account(self, app, wsgi_call):
        status, body = wsgi_call(app, "POST", "/internal/csp-accounts/auto-create",
                                 self.payload(999, "req-9"), {"X-Creator-ID": "1"})

        assert status == 500
        assert body["error"] == "Failed to associate CSP account with project"
        assert isinstance(body["csp_account_id"], int)
        assert "details" in body


class TestAdminCatalog:
    def test_catalog_requires_system_admin(self, app, wsgi_call, alice):
        status, body = wsgi_call(app, "GET", "/v1/admin/csp-accounts", headers=alice["headers"])

        assert status == 403
        assert body["reason"] == "system_admin_required"

    def test_admin_manages_accounts_and_associations(self, app, wsgi_call, alice, login):
        # === Arrange ===
        admin = login("admin", "admin")

        # === Act ===
        status, account = wsgi_call(app, "POST", "/v1/admin/csp-accounts", {
            "provider": "azure", "account_name": "shared", "account_id": "sub-1",
            "access_key": "ak", "secret_key": "sk",
        }, admin)
        assert status == 201
        status, _ = wsgi_call(app, "POST", "/v1/admin/project-csp-accounts",
                              {"project_id": alice["project_id"], "csp_account_id": account["id"]}, admin)
        assert status == 201
        duplicate = wsgi_call(app, "POST", "/v1/admin/project-csp-accounts",
                              {"project_id": alice["project_id"], "csp_account_id": account["id"]}, admin)

        # === Assert ===
        assert duplicate[0] == 409
        assert duplicate[1]["reason"] == "project_csp_account_exists"
        status, body = wsgi_call(app, "GET", "/v1/admin/csp-accounts", headers=admin, query="provider=azure")
        assert [a["account_name"] for a in body["csp_accounts"]] == ["shared"]
        assert account["region"] == "japaneast"


class TestCSPAccountMembers:
    @pytest.fixture
    def shared_account(self, app, wsgi_call, alice, login):
        """시스템 관리자가 만들어 alice의 프로젝트에 연결한 계정"""
        admin = login("admin", "admin")
        _, account = wsgi_call(app, "POST", "/v1/admin/csp-accounts", {
            "provider": "aws", "account_name": "shared", "account_id": "111122223333",
            "access_key": "ak", "secret_key": "sk",
        }, admin)
        status, _ = wsgi_call(app, "POST", "/v1/admin/project-csp-accounts",
                              {"project_id": alice["project_id"], "csp_account_id": account["id"]}, admin)
        assert status == 201
        return account

    def test_member_lifecycle(self, app, wsgi_call, alice, login, shared_account):
        # === Arrange ===
        _, bob = wsgi_call(app, "POST", "/v1/users", {"username": "bob", "password": "pw", "email": "bob@example.com"})
        wsgi_call(app, "POST", "/v1/users", {"username": "carol", "password": "pw"})
        payload = {"csp_account_id": shared_account["id"], "project_id": alice["project_id"], "user_id": bob["id"]}

        # === Act ===
        status, member = wsgi_call(app, "POST", "/v1/csp-account-members", payload, alice["headers"])
        duplicate = wsgi_call(app, "POST", "/v1/csp-account-members", payload, alice["headers"])
        update = wsgi_call(app, "PUT", f"/v1/csp-account-members/{member['id']}", {"status": "inactive"}, login("bob", "pw"))
        outsider_delete = wsgi_call(app, "DELETE", f"/v1/csp-account-members/{member['id']}", headers=login("carol", "pw"))

        # === Assert ===
        assert status == 201
        assert member["sso_email"] == "bob@example.com"
        assert member["role"] == "user"
        assert duplicate[0] == 409
        assert duplicate[1]["reason"] == "csp_account_member_exists"
        assert update[0] == 200
        assert update[1]["status"] == "inactive"
        assert outsider_delete[0] == 403
        assert outsider_delete[1]["reason"] == "insufficient_permission"

        status, body = wsgi_call(app, "GET", "/v1/csp-account-members", headers=alice["headers"],
                                 query=f"project_id={alice['project_id']}")
        assert status == 200
        assert [(m["user_id"], m["status"]) for m in body["csp_account_members"]] == [(bob["id"], "inactive")]

        assert wsgi_call(app, "DELETE", f"/v1/csp-account-members/{member['id']}", headers=alice["headers"])[0] == 204
        assert wsgi_call(app, "GET", f"/v1/csp-account-members/{member['id']}", headers=alice["headers"])[0] == 404

    def test_unassociated_account_is_rejected(self, app, wsgi_call, alice, login):
        _, account = wsgi_call(app, "POST", "/v1/admin/csp-accounts", {
            "provider": "gcp", "account_name": "lonely", "account_id": "project-lonely",
            "access_key": "ak", "secret_key": "sk",
        }, login("admin", "admin"))

        status, body = wsgi_call(app, "POST", "/v1/csp-account-members", {
            "csp_account_id": account["id"], "project_id": alice["project_id"], "user_id": alice["id"],
        }, alice["headers"])

        assert status == 409
        assert body["reason"] == "csp_account_not_associated"
