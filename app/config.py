# ABOUTME: Application configuration and settings
# ABOUTME: Loads database, admin seed and session settings from environment variables

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine import URL, make_url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env")

    log_level: str = "INFO"

    # DATABASE_URL wins over the individual DB_* values when set
    database_url: str | None = None
    db_driver: str = "mysql+pymysql"
    db_host: str = "localhost"
    db_user: str = "root"
    db_password: str = ""
    db_port: int = 3306
    db_name: str = "keyvpn_db"
    db_charset: str = "utf8mb4"

    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_email: str = "admin@keyvpn.com"

    secret_key: str = "change-me-in-production"
    session_ttl_minutes: int = 24 * 60

    @property
    def sqlalchemy_url(self) -> URL:
        """URL of the application database."""
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            self.db_driver,
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
            query={"charset": self.db_charset},
        )


@lru_cache
def get_settings() -> Settings:
    """Returns cached settings instance."""
    return Settings()
