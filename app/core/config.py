from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    admin_email: Optional[str] = Field(None, alias="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(None, alias="ADMIN_PASSWORD")

    currency_code: str = Field("MVR", alias="CURRENCY_CODE")
    # Due dates are calendar dates in the school's local time
    school_timezone: str = Field("Indian/Maldives", alias="SCHOOL_TIMEZONE")

    # stub | http
    sms_provider: str = Field("stub", alias="SMS_PROVIDER")
    sms_gateway_url: Optional[str] = Field(None, alias="SMS_GATEWAY_URL")
    sms_api_key: Optional[str] = Field(None, alias="SMS_API_KEY")
    sms_timeout_seconds: float = Field(10.0, alias="SMS_TIMEOUT_SECONDS")

    payment_webhook_secret: Optional[str] = Field(None, alias="PAYMENT_WEBHOOK_SECRET")

    notification_max_attempts: int = Field(3, alias="NOTIFICATION_MAX_ATTEMPTS")
    notification_retry_base_seconds: int = Field(60, alias="NOTIFICATION_RETRY_BASE_SECONDS")

    # 0 disables the periodic job
    overdue_sweep_interval_minutes: int = Field(0, alias="OVERDUE_SWEEP_INTERVAL_MINUTES")
    notification_retry_interval_minutes: int = Field(0, alias="NOTIFICATION_RETRY_INTERVAL_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_origins: str = Field("*", alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
