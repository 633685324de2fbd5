from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "data/taskmarket.db"
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"
    jwt_secret: str = "dev-only-secret-change-me-in-production-0123456789"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 30
    upload_dir: str = "public"
    default_page_size: int = 20
    max_page_size: int = 100
    rate_limit_enabled: bool = True
    rate_limit_auth: str = "10/minute"
    rate_limit_write: str = "60/minute"
    rate_limit_read: str = "240/minute"
    seed_reference_data: bool = True
    admin_email: str | None = None
    admin_password: str | None = None

    model_config = {"env_prefix": "TASKMARKET_"}

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
