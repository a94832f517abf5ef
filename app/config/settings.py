from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "Internship Admin Server"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "http://localhost:5173,http://localhost:3000"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./internship_admin.db"

    # MinIO Object Storage (requirement files)
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "<your-minio-access-key>"
    MINIO_SECRET_KEY: str = "<your-minio-secret-key>"
    MINIO_BUCKET_NAME: str = "internship-requirements"
    MINIO_SECURE: bool = False
    REQUIREMENTS_PREFIX: str = "requirements"

    # Roster
    INSTITUTIONAL_EMAIL_DOMAIN: str = ".edu.ph"
    ROSTER_PAGE_SIZE: int = 10

    # Requirement file checks
    REQUIREMENT_CHECK_BATCH_SIZE: int = 5
    REQUIREMENT_CHECK_BATCH_DELAY_SECONDS: float = 0.1
    REQUIREMENT_CHECK_TIMEOUT_SECONDS: float = 10.0

    # CSV import
    IMPORT_PASSWORD_POLICY: str = "student_id"
    IMPORT_DEFAULT_PASSWORD: str = ""
    IMPORT_MIN_PASSWORD_LENGTH: int = 6
    IMPORT_MAX_REPORTED_ERRORS: int = 50

    # Notifications
    NOTIFICATION_RETENTION_PER_SENDER: int = 20

    # Collaborator retry policy
    COLLABORATOR_MAX_RETRIES: int = 2
    COLLABORATOR_RETRY_DELAY_SECONDS: float = 0.2

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    @field_validator("IMPORT_PASSWORD_POLICY")
    def validate_password_policy(cls, v: str) -> str:
        allowed = {"student_id", "shared_default", "required"}
        if v not in allowed:
            raise ValueError(f"IMPORT_PASSWORD_POLICY must be one of {sorted(allowed)}")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
