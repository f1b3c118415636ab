"""
두 서비스(리소스 서비스, 신청 접수 서비스)가 공유하는 설정.

pydantic-settings로 환경 변수와 .env 파일에서 값을 읽어 시작 시점에 검증합니다.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── 데이터베이스 ───────────────────────────────────────
    DATABASE_URL: str = "sqlite:///iaas_metadata.db"
    INTAKE_DATABASE_URL: str = "sqlite:///csp_requests.db"

    # ── 서비스 간 호출 (Trust Boundary) ────────────────────
    RESOURCE_SERVICE_URL: str = "http://localhost:8000"
    RESOURCE_SERVICE_TIMEOUT: float = 30.0
    # 비어 있으면 내부망 전용 경계로 간주하고 /internal/* 호출을 검증하지 않습니다.
    INTERNAL_API_TOKEN: str = ""
    # X-Creator-ID 헤더를 숫자로 해석할 수 없을 때 사용하는 관리자 ID
    DEFAULT_CREATOR_ID: int = 1

    # ── 권한 ───────────────────────────────────────────────
    SYSTEM_PROJECT_NAME: str = "system"
    TOKEN_TTL_MINUTES: int = 60

    # ── 서버 ───────────────────────────────────────────────
    RESOURCE_PORT: int = 8000
    INTAKE_PORT: int = 8001
    LOG_LEVEL: str = "INFO"


settings = Settings()

# 두 서비스와 DB 초기화 스크립트가 같은 로그 형식을 사용합니다.
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
