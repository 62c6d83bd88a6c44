import os
import logging
from pydantic import BaseModel, Field
from typing import Dict, List
from dotenv import load_dotenv

load_dotenv()


def _default_allowances() -> Dict[str, float]:
    return {
        "CASUAL": float(os.getenv("LEAVE_ALLOWANCE_CASUAL", "12")),
        "SICK": float(os.getenv("LEAVE_ALLOWANCE_SICK", "12")),
        "ANNUAL": float(os.getenv("LEAVE_ALLOWANCE_ANNUAL", "21")),
        "MATERNITY": float(os.getenv("LEAVE_ALLOWANCE_MATERNITY", "180")),
        "PATERNITY": float(os.getenv("LEAVE_ALLOWANCE_PATERNITY", "15")),
    }


class Config(BaseModel):
    app_name: str = "Lucia HRMS"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./lucia_hrms.db")
    db_retry_attempts: int = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    login_rate_limit_per_minute: int = int(os.getenv("LOGIN_RATE_LIMIT_PER_MINUTE", "10"))

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    # Leave workflow
    default_leave_allowances: Dict[str, float] = Field(default_factory=_default_allowances)

    # Bootstrap
    seed_demo_data: bool = os.getenv("SEED_DEMO_DATA", "false").lower() == "true"


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
elif "dev-only" in settings.secret_key:
    _logger.warning("Using insecure default SECRET_KEY, only acceptable in development.")
