from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./dealtracker.db"

    scheduler_enabled: bool = True
    job_cron_hour: int = 9
    job_cron_minute: int = 0

    amadeus_api_key: str = ""
    amadeus_api_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"
    amadeus_max_results: int = 20

    # Amadeus has no historical price, so an offer without a base price is
    # compared against current * markup
    fallback_base_markup: float = 1.5

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_ssl: bool = False
    email_from: str = "deals@localhost"

    webhook_timeout_seconds: float = 10.0

    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_claims_email: str = "mailto:admin@localhost"

    base_url: str = "http://localhost:8000"

    def model_post_init(self, __context):
        if self.env == "prod" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production requires explicit DATABASE_URL (not SQLite)"
            )

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
