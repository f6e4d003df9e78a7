import logging
from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "foodorder"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    TAX_RATE: Decimal = Decimal("0.05")
    DELIVERY_FEE: Decimal = Decimal("50.00")
    # only ADMIN may edit payment amount/method/transaction id when on
    RESTRICT_PAYMENT_EDITS: bool = False
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()

def setup_logging():
    """Configure logging settings"""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
