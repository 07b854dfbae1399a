# FILE: hospital_ledger/core/config.py
import os
from typing import List
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Hospital Back-Office Ledger")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- MySQL ----------
    MYSQL_HOST: str = os.getenv("MYSQL_HOST", "localhost")
    MYSQL_PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    MYSQL_USER: str = os.getenv("MYSQL_USER", "hospital_user")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "hospital")
    MYSQL_DB: str = os.getenv("MYSQL_DB", "hospital_ledger")
    DB_DRIVER: str = os.getenv("DB_DRIVER", "pymysql")

    # Full URI override (sqlite:///..., postgresql://...)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    SQL_ECHO: bool = _flag("SQL_ECHO")

    # ---------- Locale ----------
    APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "Asia/Dhaka")
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "৳")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ---------- Well-known ledger categories ----------
    OPTICS_INCOME_CATEGORY: str = os.getenv("OPTICS_INCOME_CATEGORY", "Optics Income")
    OPTICS_PURCHASE_CATEGORY: str = os.getenv("OPTICS_PURCHASE_CATEGORY", "Optics Purchase")
    OPTICS_VENDOR_PAYMENT_CATEGORY: str = os.getenv(
        "OPTICS_VENDOR_PAYMENT_CATEGORY", "Optics Vendor Payment")
    OPTICS_PURCHASE_REFUND_CATEGORY: str = os.getenv(
        "OPTICS_PURCHASE_REFUND_CATEGORY", "Optics Purchase Refund")
    OPTICS_SALE_REVERSAL_CATEGORY: str = os.getenv(
        "OPTICS_SALE_REVERSAL_CATEGORY", "Optics Sale Reversal")

    SALE_PAYMENT_METHODS: List[str] = _split_csv(
        os.getenv("SALE_PAYMENT_METHODS", "cash,card,bkash,nagad,rocket"))

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+{self.DB_DRIVER}://{quote_plus(self.MYSQL_USER)}:{quote_plus(self.MYSQL_PASSWORD)}"
            f"@{self.MYSQL_HOST}:{self.MYSQL_PORT}/{self.MYSQL_DB}")


settings = Settings()
