from typing import Dict, Any, List

from src.database import models
from src.repositories.interfaces import IProjectRepository, IVendorRelationRepository
from src.services.exceptions import ProjectNotFoundError, VendorRelationNotFoundError
from src.services.permission_service import PermissionService


class VendorService:
    """
    소비자 프로젝트 -> 벤더 프로젝트 방향의 벤더 관계를 관리합니다.
    중복 관계나 vendor 유형이 아닌 프로젝트로의 연결은 막지 않습니다.
    """

    def __init__(self, vendor_repo: IVendorRelationRepository, project_repo: IProjectRepository, permission_service: PermissionService):
        self.vendor_repo = vendor_repo
        self.project_repo = project_repo
        self.permissions = permission_service

    def _get_project_or_raise(self, project_id: int) -> models.Project:
        project = self.project_repo.find_by_id(project_id)
        if not project:
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        return project

    def list_relations(self, actor_id: int, project_id: int) -> List[Dict[str, Any]]:
        """프로젝트 멤버라면 역할과 관계없이 조회할 수 있습니다."""
        self._get_project_or_raise(project_id)
        self.permissions.require_access(actor_id, project_id)
        return [self._serialize(r) for r in self.vendor_repo.list_by_project_id(project_id)]

    def create_relation(self, actor_id: int, project_id: int, vendor_project_id: int) -> Dict[str, Any]:
        """
        벤더 관계를 생성합니다. 소비자 프로젝트의 manage 권한이 필요합니다.

        Raises:
            InsufficientPermissionError: 소비자 프로젝트를 관리할 수 없을 때.
            ProjectNotFoundError: 소비자 또는 벤더 프로젝트가 없거나 삭제되었을 때.
        """
        self._get_project_or_raise(project_id)
        self.permissions.require_manage(actor_id, project_id)
        if not self.project_repo.find_by_id(vendor_project_id):
            raise ProjectNotFoundError(f"Vendor project with id '{vendor_project_id}' not found.")

        relation = self.vendor_repo.create(models.ProjectVendorRelation(
            project_id=project_id,
            vendor_project_id=vendor_project_id,
        ))
        return self._serialize(relation)

    def delete_relation(self, actor_id: int, project_id: int, relation_id: int) -> bool:
        """
        벤더 관계를 삭제합니다. 관계가 해당 소비자 프로젝트에 속하지 않으면 찾을 수 없는 것으로 처리합니다.
        """
        self._get_project_or_raise(project_id)
        self.permissions.require_manage(actor_id, project_id)
        relation = self.vendor_repo.find_by_id(relation_id)
        if not relation or relation.project_id != project_id:
            raise VendorRelationNotFoundError(f"Vendor relation '{relation_id}' not found in project '{project_id}'.")
        return self.vendor_repo.delete(relation)

    @staticmethod
    def _serialize(relation: models.ProjectVendorRelation) -> Dict[str, Any]:
        vendor = relation.vendor_project
        return {
            "id": relation.id,
            "project_id": relation.project_id,
            "vendor_project_id": relation.vendor_project_id,
            "vendor_project_name": vendor.name if vendor is not None else None,
            "created_at": relation.created_at.isoformat() if relation.created_at else None,
        }
