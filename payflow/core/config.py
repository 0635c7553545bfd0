from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "payflow"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Remote API
    API_BASE_URL: str = "https://afrivest.countrywealth.ug/api"
    REQUEST_TIMEOUT: float = 30.0
    CONNECT_TIMEOUT: float = 10.0
    SLOW_REQUEST_THRESHOLD: float = 1.0  # seconds

    # Currencies
    SUPPORTED_CURRENCIES: List[str] = ["UGX", "USD", "EUR", "GBP"]
    DEFAULT_CURRENCY: str = "UGX"

    # Settlement polling
    POLL_INTERVAL_SECONDS: float = 5.0
    POLL_TIMEOUT_SECONDS: float = 300.0  # 5 minutes

    # Card webview completion markers (matched as substrings of the URL)
    WEBVIEW_RETURN_MARKERS: List[str] = ["/deposits/return", "action=close_webview"]

    # Status values sent to /deposits/sdk/verify
    SDK_VERIFY_SUCCESS_STATUS: str = "successful"
    SDK_VERIFY_FAILURE_STATUS: str = "failed"

    # Withdrawal fees
    WITHDRAWAL_FLAT_FEE: Decimal = Decimal("1000")
    WITHDRAWAL_FLAT_FEE_CEILING: Decimal = Decimal("125000")
    WITHDRAWAL_FEE_RATE: Decimal = Decimal("0.012")  # 1.2%

    # Uploads
    AVATAR_MAX_SIZE: int = 5 * 1024 * 1024  # 5MB

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
