"""Application configuration"""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_SERVER__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: str = "development"
    port: int = 3500

    # Database
    db_url: str = "sqlite:///data/authserver.db"
    token_store_backend: str = "memory"  # "memory" or "database"

    # Redis
    redis_url: str = "redis://localhost:6379/1"

    # Site
    site_auth_url: str = "http://localhost:3500"

    # RSA Keys
    private_key_path: str = "data/keys/private_key.pem"
    public_key_path: str = "data/keys/public_key.pem"

    # Token lifetimes (seconds)
    access_token_expires_in: int = 3600
    client_token_expires_in: int = 3600
    refresh_token_expires_in: int = 2592000  # 30 days

    # Authorization codes and decision transactions
    auth_code_length: int = 24
    auth_code_expires_in: int = 60
    decision_transaction_id_length: int = 16

    # Expired token sweep interval (seconds)
    token_expires_check_interval: int = 3600

    # Grant switches
    disable_token_grant: bool = False
    disable_code_grant: bool = False
    disable_client_grant: bool = False
    disable_password_grant: bool = False
    disable_refresh_token_grant: bool = False

    # Session cookie
    session_secret: str = "change-me-session-secret"
    session_max_age: int = 604800  # 7 days

    # Security
    bcrypt_rounds: int = 12
    enable_brute_force_protection: bool = True
    brute_force_threshold: int = 5  # failed attempts
    brute_force_lockout_duration: int = 900  # 15 minutes in seconds

    # Data field limits
    client_secret_min_length: int = 8
    client_secret_max_length: int = 64
    username_min_length: int = 1
    username_max_length: int = 40
    password_min_length: int = 8
    password_max_length: int = 64
    name_min_length: int = 1
    name_max_length: int = 64

    # Seed data
    admin_username: str = "admin"
    admin_password: str | None = None

    # Logging
    log_level: str = "INFO"

    # Version
    version: str = "0.1.0"

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.environment.lower() == "development"

    @property
    def issuer(self) -> str:
        """Issuer reported by token introspection"""
        return self.site_auth_url.rstrip("/") + "/oauth/token"


# Create settings instance
settings = Settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("auth-server")
