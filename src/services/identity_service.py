import hashlib
import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from src.config import settings
from src.database import models
from src.repositories.interfaces import IUserRepository, IProjectRepository
from src.services.exceptions import (
    UserCreationError, UserNotFoundError, AuthenticationError, TokenInvalidError
)

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


class IdentityService:
    """사용자 등록과 인증 토큰 발급/검증을 담당합니다. 토큰은 사용자 ID만 담는 불투명한 값입니다."""
    _token_cache = {}

    def __init__(self, user_repo: IUserRepository, project_repo: IProjectRepository, default_project_name: Optional[str] = None):
        """
        IdentityService를 초기화합니다.

        Args:
            user_repo: 사용자 데이터에 접근하기 위한 리포지토리.
            project_repo: 신규 사용자를 기본 프로젝트에 참여시키기 위한 리포지토리.
            default_project_name: 신규 사용자가 viewer로 참여할 프로젝트 이름. 기본값은 시스템 프로젝트.
        """
        self.user_repo = user_repo
        self.project_repo = project_repo
        self.default_project_name = default_project_name or settings.SYSTEM_PROJECT_NAME

    def register(self, username: str, password: str, email: Optional[str] = None) -> Dict[str, Any]:
        """
        새로운 사용자를 생성하고 기본 프로젝트에 viewer로 참여시킵니다.
        기본 프로젝트 참여에 실패해도 사용자 생성은 성공으로 처리합니다.

        Raises:
            UserCreationError: 동일한 이름의 사용자가 이미 존재할 때.
        """
        if self.user_repo.find_by_username(username):
            raise UserCreationError(f"User with username '{username}' already exists.")

        new_user = models.User(username=username, password_hash=hash_password(password), email=email)
        created_user = self.user_repo.create(new_user)

        default_project = self.project_repo.find_by_name(self.default_project_name)
        if default_project is None:
            logger.warning("Default project '%s' not found; user %s joins no project.", self.default_project_name, created_user.id)
        elif self.project_repo.add_member(default_project.id, created_user.id, models.Role.VIEWER) is None:
            logger.info("User %s is already a member of the default project.", created_user.id)

        return self._serialize(created_user)

    def list_users(self) -> List[Dict[str, Any]]:
        """모든 사용자의 목록을 조회합니다. (비밀번호 제외)"""
        return [self._serialize(u) for u in self.user_repo.list_all()]

    def get_user(self, user_id: int) -> Dict[str, Any]:
        """
        ID로 특정 사용자를 조회합니다. (비밀번호 제외)

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
        """
        user = self.user_repo.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")
        return self._serialize(user)

    def authenticate(self, username: str, password: str) -> Dict[str, str]:
        """
        자격증명을 검증하고, 성공 시 인증 토큰을 발급합니다.
        프로젝트는 토큰에 묶이지 않고 요청마다 경로로 지정됩니다.

        Raises:
            AuthenticationError: 사용자 또는 비밀번호 검증에 실패했을 때.
        """
        user = self.user_repo.find_by_username(username)
        if not user or user.password_hash != hash_password(password):
            raise AuthenticationError("Invalid username or password.")

        self._prune_expired_tokens()
        token = str(uuid.uuid4())
        expires_at = datetime.now() + timedelta(minutes=settings.TOKEN_TTL_MINUTES)
        self._token_cache[token] = {
            'user_id': user.id,
            'expires_at': expires_at
        }
        return {"token": token, "expires_at": expires_at.isoformat()}

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        인증 토큰의 유효성을 검증하고, 유효하면 토큰 데이터를 반환합니다.

        Raises:
            TokenInvalidError: 토큰을 찾을 수 없거나 만료되었을 때.
        """
        token_data = self._token_cache.get(token)
        if not token_data:
            raise TokenInvalidError("Token not found or invalid.")

        if datetime.now() > token_data['expires_at']:
            del self._token_cache[token]
            raise TokenInvalidError("Token has expired.")

        return token_data

    @classmethod
    def _prune_expired_tokens(cls) -> None:
        now = datetime.now()
        for token in [t for t, data in cls._token_cache.items() if now > data['expires_at']]:
            del cls._token_cache[token]

    @staticmethod
    def _serialize(user: models.User) -> Dict[str, Any]:
        return {"id": user.id, "username": user.username, "email": user.email}
