import os

# --- Store ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./localfix.db")
# Upper bound on how long a transaction waits for a row/table lock
LOCK_TIMEOUT_SECONDS = int(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# --- HTTP ---
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "https://localhost:8080,http://localhost:8080").split(",")
    if origin.strip()
]

# --- Auth (tokens are minted by the auth service, we only verify them) ---
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# --- Notifications ---
NOTIFICATION_URL = os.getenv("NOTIFICATION_URL", "")
NOTIFICATION_TIMEOUT = float(os.getenv("NOTIFICATION_TIMEOUT", "10"))

# --- Ledger ---
CURRENCY = os.getenv("CURRENCY", "BDT")
ALLOW_EVIDENCE_RESUBMISSION = os.getenv("ALLOW_EVIDENCE_RESUBMISSION", "false").lower() in ("1", "true", "yes")
