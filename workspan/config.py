import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./workspan.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Tokens are issued by the auth service and only verified here
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Activity log is shipped to the arq worker after each successful operation
ACTIVITY_LOG_ENABLED = os.getenv("ACTIVITY_LOG_ENABLED", "true").lower() == "true"

# Milestones must be started in priority order (earlier ones approved first)
ENFORCE_SEQUENTIAL_MILESTONES = (
    os.getenv("ENFORCE_SEQUENTIAL_MILESTONES", "true").lower() == "true"
)
