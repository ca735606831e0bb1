from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "checkout-fields"
    STORE_NAME: str = "Shop"

    ADMIN_JWT_TTL_MINUTES: int = 240
    ADMIN_JWT_SECRET: str = "change_me_admin"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    DATABASE_URL: str
    REDIS_URL: str

    # Deprecated single-field mode; shown only while no configured field is enabled.
    LEGACY_FIELD_LABEL: str = "Extra Information"

    CHECKOUT_SUBMIT_PATH: str = "/api/public/store/checkout"
    AGENT_RETRY_DELAYS_MS: str = "500,1500,3000"
    SELECT_STRICT_OPTIONS: bool = False
    CHECKOUT_RATE_LIMIT: int = 30
    CHECKOUT_RATE_LIMIT_WINDOW_SECONDS: int = 60

    EMAIL_PROVIDER: str = "dummy"  # dummy | smtp | service
    EMAIL_SERVICE_URL: str = "http://email-service:8010"
    INTERNAL_SERVICE_TOKEN: str = "change_me_internal_service_token"
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    ORDER_EMAIL_ON_CHECKOUT: bool = False

    # Compose/infra vars that may exist in shared .env
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "checkout_fields"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def agent_retry_delays(self) -> List[int]:
        delays = []
        for raw in self.AGENT_RETRY_DELAYS_MS.split(","):
            raw = raw.strip()
            if raw.isdigit():
                delays.append(int(raw))
        return delays or [500, 1500, 3000]

settings = Settings()
