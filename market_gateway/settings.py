import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Server Configuration
    port: int = Field(default=5000, alias="PORT")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")
    # Echo unhandled exception messages to clients (ignored in production)
    expose_errors: bool = Field(default=False, alias="EXPOSE_ERRORS")

    # Cache Configuration (empty URL falls back to the in-process store)
    redis_url: str = Field(default="", alias="REDIS_URL")

    # Upstream Request Configuration
    request_timeout: float = Field(default=10.0, alias="REQUEST_TIMEOUT")
    max_attempts: int = Field(default=3, alias="MAX_ATTEMPTS")
    retry_backoff: float = Field(default=1.0, alias="RETRY_BACKOFF")

    # Provider API Keys
    alpha_vantage_key: str = Field(default="", alias="ALPHA_VANTAGE_KEY")
    polygon_key: str = Field(default="", alias="POLYGON_KEY")
    fmp_key: str = Field(default="", alias="FMP_KEY")
    news_api_key: str = Field(default="", alias="NEWS_API_KEY")

    # Provider Base URLs
    alpha_vantage_base_url: str = Field(
        default="https://www.alphavantage.co/query", alias="ALPHA_VANTAGE_BASE_URL"
    )
    polygon_base_url: str = Field(
        default="https://api.polygon.io", alias="POLYGON_BASE_URL"
    )
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3", alias="COINGECKO_BASE_URL"
    )
    fmp_base_url: str = Field(
        default="https://financialmodelingprep.com/api/v3", alias="FMP_BASE_URL"
    )
    exchange_rate_base_url: str = Field(
        default="https://api.exchangerate-api.com/v4", alias="EXCHANGE_RATE_BASE_URL"
    )
    news_api_base_url: str = Field(
        default="https://newsapi.org/v2", alias="NEWS_API_BASE_URL"
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


global_settings = Settings.model_validate(dict(os.environ))
