from pydantic_settings import BaseSettings
from typing import Optional
from urllib.parse import quote_plus

class Settings(BaseSettings):
    env: str = "local"
    log_level: str = "INFO"

    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "pdf_vault"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # full URL wins over the postgres_* parts (sqlite for local runs and tests)
    database_url_override: Optional[str] = None

    base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    firebase_project_id: str = ""
    admin_emails: str = ""

    upload_dir: str = "uploads"
    max_upload_mb: int = 10

    cashfree_client_id: str = ""
    cashfree_client_secret: str = ""
    cashfree_base_url: str = "https://sandbox.cashfree.com/pg"
    cashfree_api_version: str = "2023-08-01"
    cashfree_timeout_seconds: float = 20.0
    default_customer_phone: str = "9999999999"
    currency: str = "INR"

    purchase_session_ttl_minutes: int = 30

    @property
    def database_url(self):
        if self.database_url_override:
            return self.database_url_override
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def admin_email_set(self) -> set[str]:
        return {e.strip().lower() for e in self.admin_emails.split(",") if e.strip()}

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
