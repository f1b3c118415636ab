from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import ICSPAccountRepository

class SqlalchemyCSPAccountRepository(ICSPAccountRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def _insert(self, instance):
        self.db.add(instance)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        self.db.refresh(instance)
        return instance

    def create(self, account: models.CSPAccount) -> Optional[models.CSPAccount]:
        return self._insert(account)

    def find_by_id(self, account_id: int) -> Optional[models.CSPAccount]:
        return self.db.query(models.CSPAccount).filter(models.CSPAccount.id == account_id).first()

    def find_by_request_id(self, csp_request_id: str) -> Optional[models.CSPAccount]:
        return self.db.query(models.CSPAccount).filter(models.CSPAccount.csp_request_id == csp_request_id).first()

    def list_all(self, provider: Optional[models.CSPProvider] = None) -> List[models.CSPAccount]:
        query = self.db.query(models.CSPAccount)
        if provider is not None:
            query = query.filter(models.CSPAccount.provider == provider)
        return query.order_by(models.CSPAccount.id.asc()).all()

    def list_by_project_id(self, project_id: int) -> List[models.CSPAccount]:
        return (
            self.db.query(models.CSPAccount)
            .join(models.ProjectCSPAccount, models.ProjectCSPAccount.csp_account_id == models.CSPAccount.id)
            .filter(models.ProjectCSPAccount.project_id == project_id)
            .order_by(models.CSPAccount.id.asc())
            .all()
        )

    def update(self, account: models.CSPAccount) -> models.CSPAccount:
        self.db.commit()
        self.db.refresh(account)
        return account

    def delete(self, account: models.CSPAccount) -> bool:
        if account:
            self.db.delete(account)
            self.db.commit()
            return True
        return False

    def create_association(self, association: models.ProjectCSPAccount) -> Optional[models.ProjectCSPAccount]:
        return self._insert(association)

    def find_association(self, project_id: int, csp_account_id: int) -> Optional[models.ProjectCSPAccount]:
        return self.db.query(models.ProjectCSPAccount).filter(
            models.ProjectCSPAccount.project_id == project_id,
            models.ProjectCSPAccount.csp_account_id == csp_account_id
        ).first()

    def find_association_by_id(self, association_id: int) -> Optional[models.ProjectCSPAccount]:
        return self.db.query(models.ProjectCSPAccount).filter(models.ProjectCSPAccount.id == association_id).first()

    def list_associations(self, project_id: Optional[int] = None, csp_account_id: Optional[int] = None) -> List[models.ProjectCSPAccount]:
        query = self.db.query(models.ProjectCSPAccount)
        if project_id is not None:
            query = query.filter(models.ProjectCSPAccount.project_id == project_id)
        if csp_account_id is not None:
            query = query.filter(models.ProjectCSPAccount.csp_account_id == csp_account_id)
        return query.order_by(models.ProjectCSPAccount.id.asc()).all()

    def delete_association(self, association: models.ProjectCSPAccount) -> bool:
        if association:
            self.db.delete(association)
            self.db.commit()
            return True
        return False

    def create_member(self, member: models.CSPAccountMember) -> Optional[models.CSPAccountMember]:
        return self._insert(member)

    def find_member_by_id(self, member_id: int) -> Optional[models.CSPAccountMember]:
        return self.db.query(models.CSPAccountMember).filter(models.CSPAccountMember.id == member_id).first()

    def list_members(
        self,
        csp_account_id: Optional[int] = None,
        project_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> List[models.CSPAccountMember]:
        query = self.db.query(models.CSPAccountMember)
        if csp_account_id is not None:
            query = query.filter(models.CSPAccountMember.csp_account_id == csp_account_id)
        if project_id is not None:
            query = query.filter(models.CSPAccountMember.project_id == project_id)
        if user_id is not None:
            query = query.filter(models.CSPAccountMember.user_id == user_id)
        return query.order_by(models.CSPAccountMember.id.asc()).all()

    def update_member(self, member: models.CSPAccountMember) -> models.CSPAccountMember:
        self.db.commit()
        self.db.refresh(member)
        return member

    def delete_member(self, member: models.CSPAccountMember) -> bool:
        if member:
            self.db.delete(member)
            self.db.commit()
            return True
        return False
