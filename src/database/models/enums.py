import enum


class Role(str, enum.Enum):
    """
    프로젝트 안에서 사용자가 가지는 고정된 3단계 역할입니다.
    순위 숫자가 작을수록 더 많은 권한을 가집니다. (owner(1) < admin(2) < viewer(3))
    """
    OWNER = "owner"
    ADMIN = "admin"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def satisfies(self, required: "Role") -> bool:
        """이 역할이 required 역할과 같거나 더 높은 권한인지 확인합니다."""
        return self.rank <= required.rank

    @property
    def can_view(self) -> bool:
        return True

    @property
    def can_edit(self) -> bool:
        return self in (Role.OWNER, Role.ADMIN)

    @property
    def can_manage(self) -> bool:
        return self in (Role.OWNER, Role.ADMIN)

    @classmethod
    def parse(cls, value) -> "Role":
        """문자열을 Role로 변환합니다. 유효하지 않으면 ValueError를 발생시킵니다."""
        if isinstance(value, cls):
            return value
        return cls(value)


_ROLE_RANKS = {
    Role.OWNER: 1,
    Role.ADMIN: 2,
    Role.VIEWER: 3,
}


class ProjectStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class ProjectType(str, enum.Enum):
    CENTRAL_GOV = "centralGov"
    LOCAL_GOV = "localGov"
    PUBLIC_SAAS = "publicSaas"
    INDEPENDENT = "independent"
    VENDOR = "vendor"
    ADMIN = "admin"


class CSPProvider(str, enum.Enum):
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


class CSPRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not CSPRequestStatus.PENDING


class CSPAccountMemberRole(str, enum.Enum):
    """CSP 계정 안에서의 역할입니다. 프로젝트 역할(Role)과는 별개입니다."""
    USER = "user"
    ADMIN = "admin"


class CSPAccountMemberStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


def enum_column_values(enum_cls):
    """SQLAlchemy Enum 컬럼에 멤버 이름 대신 값(value)을 저장하도록 합니다."""
    return [member.value for member in enum_cls]
