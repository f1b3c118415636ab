from .sqlalchemy_user_repository import SqlalchemyUserRepository
from .sqlalchemy_project_repository import SqlalchemyProjectRepository
from .sqlalchemy_vendor_relation_repository import SqlalchemyVendorRelationRepository
from .sqlalchemy_csp_account_repository import SqlalchemyCSPAccountRepository
from .sqlalchemy_csp_request_repository import SqlalchemyCSPRequestRepository
