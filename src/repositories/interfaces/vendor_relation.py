from abc import ABC, abstractmethod
from typing import List, Optional
from src.database import models

class IVendorRelationRepository(ABC):
    @abstractmethod
    def list_by_project_id(self, project_id: int) -> List[models.ProjectVendorRelation]:
        """소비자 프로젝트가 연결한 벤더 관계 목록을 최신순으로 조회합니다."""
        pass

    @abstractmethod
    def find_by_id(self, relation_id: int) -> Optional[models.ProjectVendorRelation]:
        pass

    @abstractmethod
    def create(self, relation: models.ProjectVendorRelation) -> models.ProjectVendorRelation:
        pass

    @abstractmethod
    def delete(self, relation: models.ProjectVendorRelation) -> bool:
        pass
