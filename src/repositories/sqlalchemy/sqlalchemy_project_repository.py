from datetime import datetime
from typing import List, Optional, Dict, Any, Tuple
from sqlalchemy import delete, update, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, joinedload
from src.database import models
from src.repositories.interfaces import IProjectRepository

class SqlalchemyProjectRepository(IProjectRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def _active(self):
        return self.db.query(models.Project).filter(models.Project.deleted_at.is_(None))

    def _owner_count_subquery(self, project_id: int):
        # DELETE/UPDATE 대상 테이블과 같은 테이블을 세므로 별칭을 사용해야 자동 상관(correlation)되지 않습니다.
        owners = aliased(models.UserProjectRole)
        return (
            select(func.count())
            .select_from(owners)
            .where(owners.project_id == project_id, owners.role == models.Role.OWNER)
            .scalar_subquery()
        )

    def create_with_owner(self, project_model: models.Project, owner_id: int) -> models.Project:
        try:
            self.db.add(project_model)
            self.db.flush()
            self.db.add(models.UserProjectRole(
                user_id=owner_id,
                project_id=project_model.id,
                role=models.Role.OWNER,
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(project_model)
        return project_model

    def find_by_id(self, project_id: int) -> Optional[models.Project]:
        return self._active().filter(models.Project.id == project_id).first()

    def find_by_name(self, name: str) -> Optional[models.Project]:
        return self._active().filter(models.Project.name == name).first()

    def list_by_user(self, user_id: int) -> List[Tuple[models.Project, models.Role]]:
        rows = (
            self.db.query(models.Project, models.UserProjectRole.role)
            .join(models.UserProjectRole, models.UserProjectRole.project_id == models.Project.id)
            .filter(models.UserProjectRole.user_id == user_id, models.Project.deleted_at.is_(None))
            .order_by(models.UserProjectRole.created_at.desc(), models.Project.id.desc())
            .all()
        )
        return [(project, role) for project, role in rows]

    def list_by_type(self, project_type: models.ProjectType) -> List[models.Project]:
        return self._active().filter(models.Project.project_type == project_type).order_by(models.Project.name.asc()).all()

    def update(self, project: models.Project) -> models.Project:
        self.db.commit()
        self.db.refresh(project)
        return project

    def soft_delete(self, project: models.Project) -> bool:
        if project:
            project.deleted_at = datetime.now()
            self.db.commit()
            return True
        return False

    def list_members(self, project_id: int) -> List[Dict[str, Any]]:
        associations = (
            self.db.query(models.UserProjectRole)
            .options(joinedload(models.UserProjectRole.user))
            .filter(models.UserProjectRole.project_id == project_id)
            .order_by(models.UserProjectRole.created_at.asc(), models.UserProjectRole.id.asc())
            .all()
        )
        return [
            {
                "user_id": assoc.user.id,
                "username": assoc.user.username,
                "email": assoc.user.email,
                "role": assoc.role.value,
                "joined_at": assoc.created_at.isoformat() if assoc.created_at else None,
            }
            for assoc in associations
        ]

    def is_member(self, project_id: int, user_id: int) -> bool:
        return self.role_of(project_id, user_id) is not None

    def role_of(self, project_id: int, user_id: int) -> Optional[models.Role]:
        row = (
            self.db.query(models.UserProjectRole.role)
            .join(models.Project, models.Project.id == models.UserProjectRole.project_id)
            .filter(
                models.UserProjectRole.project_id == project_id,
                models.UserProjectRole.user_id == user_id,
                models.Project.deleted_at.is_(None),
            )
            .first()
        )
        return row[0] if row else None

    def add_member(self, project_id: int, user_id: int, role: models.Role) -> Optional[models.UserProjectRole]:
        association = models.UserProjectRole(user_id=user_id, project_id=project_id, role=role)
        self.db.add(association)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        self.db.refresh(association)
        return association

    def update_role(self, project_id: int, user_id: int, role: models.Role) -> bool:
        stmt = (
            update(models.UserProjectRole)
            .where(
                models.UserProjectRole.project_id == project_id,
                models.UserProjectRole.user_id == user_id,
            )
            .values(role=role)
            .execution_options(synchronize_session=False)
        )
        if role != models.Role.OWNER:
            stmt = stmt.where(or_(
                models.UserProjectRole.role != models.Role.OWNER,
                self._owner_count_subquery(project_id) > 1,
            ))
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def remove_member(self, project_id: int, user_id: int) -> bool:
        stmt = (
            delete(models.UserProjectRole)
            .where(
                models.UserProjectRole.project_id == project_id,
                models.UserProjectRole.user_id == user_id,
                or_(
                    models.UserProjectRole.role != models.Role.OWNER,
                    self._owner_count_subquery(project_id) > 1,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def count_owners(self, project_id: int) -> int:
        return self.db.query(models.UserProjectRole).filter(
            models.UserProjectRole.project_id == project_id,
            models.UserProjectRole.role == models.Role.OWNER
        ).count()
