from typing import List, Optional
from sqlalchemy.orm import Session, joinedload
from src.database import models
from src.repositories.interfaces import IVendorRelationRepository

class SqlalchemyVendorRelationRepository(IVendorRelationRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def list_by_project_id(self, project_id: int) -> List[models.ProjectVendorRelation]:
        return (
            self.db.query(models.ProjectVendorRelation)
            .options(joinedload(models.ProjectVendorRelation.vendor_project))
            .filter(models.ProjectVendorRelation.project_id == project_id)
            .order_by(models.ProjectVendorRelation.created_at.desc(), models.ProjectVendorRelation.id.desc())
            .all()
        )

    def find_by_id(self, relation_id: int) -> Optional[models.ProjectVendorRelation]:
        return self.db.query(models.ProjectVendorRelation).filter(models.ProjectVendorRelation.id == relation_id).first()

    def create(self, relation: models.ProjectVendorRelation) -> models.ProjectVendorRelation:
        self.db.add(relation)
        self.db.commit()
        self.db.refresh(relation)
        return relation

    def delete(self, relation: models.ProjectVendorRelation) -> bool:
        if relation:
            self.db.delete(relation)
            self.db.commit()
            return True
        return False
