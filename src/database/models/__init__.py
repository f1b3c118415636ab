from .enums import (
    Role, ProjectStatus, ProjectType, CSPProvider, CSPRequestStatus,
    CSPAccountMemberRole, CSPAccountMemberStatus
)
from .user import User
from .project import Project
from .association import UserProjectRole
from .vendor_relation import ProjectVendorRelation
from .csp_account import CSPAccount, ProjectCSPAccount, CSPAccountMember
from .csp_request import CSPRequest

__all__ = [
    "Role",
    "ProjectStatus",
    "ProjectType",
    "CSPProvider",
    "CSPRequestStatus",
    "CSPAccountMemberRole",
    "CSPAccountMemberStatus",
    "User",
    "Project",
    "UserProjectRole",
    "ProjectVendorRelation",
    "CSPAccount",
    "ProjectCSPAccount",
    "CSPAccountMember",
    "CSPRequest",
]
