from .user import IUserRepository
from .project import IProjectRepository
from .vendor_relation import IVendorRelationRepository
from .csp_account import ICSPAccountRepository
from .csp_request import ICSPRequestRepository

__all__ = [
    "IUserRepository",
    "IProjectRepository",
    "IVendorRelationRepository",
    "ICSPAccountRepository",
    "ICSPRequestRepository",
]
