"""Application configuration."""
import sys
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://market_user:market_pass@db:5432/market_db"
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # Environment configuration
    ENVIRONMENT: str = "development"  # "development" or "production"
    LOG_LEVEL: str = "INFO"

    # CORS configuration - comma-separated origins
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:5174"

    # Verification document storage
    DOCUMENT_STORAGE_DIR: str = "uploads/user_documents"
    MAX_DOCUMENT_BYTES: int = 5 * 1024 * 1024

    # Vendor auto-activation on document approval demands both id and permit
    # when enabled; admin review always uses the id-only rule.
    STRICT_VENDOR_AUTO_ACTIVATION: bool = False

    class Config:
        env_file = ".env"

    def get_cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def validate_production_settings(self) -> None:
        """Validate settings for production environment.

        Raises SystemExit if critical security settings are misconfigured.
        """
        if self.ENVIRONMENT == "production":
            if self.SECRET_KEY == "dev-secret-key-change-in-production":
                print("FATAL: SECRET_KEY must be changed in production!", file=sys.stderr)
                print("Set a secure random SECRET_KEY environment variable.", file=sys.stderr)
                sys.exit(1)

            if self.STRICT_VENDOR_AUTO_ACTIVATION:
                print("NOTICE: vendor auto-activation requires id and permit documents.", file=sys.stderr)


settings = Settings()
# Validate on startup
settings.validate_production_settings()
