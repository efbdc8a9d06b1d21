"""Configuration management for the direct upload service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "directupload"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Session store
    DATABASE_URL: str = "sqlite:///./directupload.db"

    # Storage Configuration
    STORAGE_BACKEND: str = "local"  # "gcs", "s3" or "local"
    STORAGE_TIMEOUT_SECONDS: float = 10.0

    # GCP Configuration
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""
    GCS_CREDENTIALS_FILE: str = ""  # Empty = sign via IAM signBlob

    # AWS Configuration
    AWS_S3_BUCKET: str = ""
    AWS_REGION: str = "us-east-1"
    AWS_S3_BASE_URL: str = ""  # CloudFront or custom domain, optional

    # Local development backend
    LOCAL_STORAGE_PATH: str = "./data/uploads"
    LOCAL_PUBLIC_BASE_URL: str = "http://localhost:8080/files"
    LOCAL_UPLOAD_BASE_URL: str = "http://localhost:8080/api/v1/uploads/local"
    LOCAL_SIGNING_KEY: str = "change-me"

    # Upload lifecycle
    UPLOAD_VALIDITY_MINUTES: int = 10
    CATEGORY_POLICY_PATH: str = ""  # Optional YAML override of the category table
    PROMOTE_ON_VERIFY: bool = True

    # Reclamation sweeper
    SWEEPER_ENABLED: bool = True
    SWEEP_INTERVAL_SECONDS: int = 300
    FULL_SWEEP_INTERVAL_SECONDS: int = 86400
    SWEEP_BATCH_SIZE: int = 500

    @property
    def upload_validity_seconds(self) -> int:
        """Convert UPLOAD_VALIDITY_MINUTES to seconds."""
        return self.UPLOAD_VALIDITY_MINUTES * 60


# Singleton settings instance
settings = Settings()
