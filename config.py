import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Storage settings
    data_file: str = os.getenv("LIBRARY_DATA_FILE", "library.db")
    storage_key: str = os.getenv("LIBRARY_STORAGE_KEY", "borrows")

    # Loan rules
    borrow_days: int = int(os.getenv("BORROW_DAYS", "14"))
    penalty_per_day: int = int(os.getenv("PENALTY_PER_DAY", "10"))
    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "₹")

    # Web session settings
    session_ttl_seconds: int = int(os.getenv("SESSION_TTL_SECONDS", "3600"))
    max_sessions: int = int(os.getenv("MAX_SESSIONS", "1000"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Management System")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
