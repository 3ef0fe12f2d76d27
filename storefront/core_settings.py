from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional

class Settings(BaseSettings):
    SERVICE_NAME: str = "storefront"
    SERVICE_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Database
    STORAGE_BACKEND: str = "sql"  # sql, memory
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "storefront"
    POSTGRES_USER: str = "storefront"
    POSTGRES_PASSWORD: str = "storefront"
    AUTO_CREATE_TABLES: bool = True

    # Auth
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 60 * 12

    # Outbound email
    NOTIFICATION_API_URL: str = "http://localhost:9000/notification/email"
    NOTIFICATION_API_KEY: str = ""
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0
    OWNER_EMAIL: str = "owner@example.com"
    FRONTEND_URL: str = "http://localhost:3000"

    # Payments
    PAYMENT_PROVIDER: str = "square"  # square, fake
    SQUARE_ACCESS_TOKEN: str = ""
    SQUARE_ENVIRONMENT: str = "sandbox"
    SQUARE_LOCATION_ID: Optional[str] = None
    SQUARE_API_VERSION: str = "2024-10-17"
    PAYMENT_TIMEOUT_SECONDS: float = 15.0
    CURRENCY: str = "USD"
    BITCOIN_ADDRESS: str = "bc1qln37wa3029gwvka8p24pn8gjneu9kfffhlq04v"

    # Abandoned carts
    ABANDONED_CART_AGE_HOURS: int = 24
    RECOVERY_EMAIL_DELAY_SECONDS: float = 1.0
    ABANDONED_CART_SCAN_INTERVAL_SECONDS: int = 0

    # Free shipping promotion
    FREE_SHIPPING_WEIGHTS: List[int] = [3, 5, 10]
    FREE_SHIPPING_CARRIER: str = "UPS"
    FREE_SHIPPING_SERVICE: str = "UPS 2nd Day Air"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

@lru_cache
def get_settings() -> Settings:
    return Settings()
